"""
Command-line interface and main entry point for the database access manager.

Wires the API client, reconciler and orchestrator together and turns the run
result into a process exit code.
"""

from __future__ import annotations

import logging
import signal
import sys

from .api_client import ApiClient
from .args_parser import parse_args
from .config import current_job_id
from .exceptions import ResolutionFailed
from .orchestrator import AccessOrchestrator, RunContext
from .reconciler import RuleReconciler


def _raise_system_exit(signum, _frame):
    """Turn a termination signal into SystemExit so cleanup scopes unwind."""
    logging.warning("⚠️  Received signal %s, stopping", signum)
    raise SystemExit(128 + signum)


def install_signal_handlers() -> None:
    """Route SIGINT and SIGTERM (CI job cancellation) through _raise_system_exit."""
    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, _raise_system_exit)


def create_orchestrator(token: str, rate_limit_retries: int = 0) -> AccessOrchestrator:
    """Factory function to create AccessOrchestrator with all dependencies"""
    client = ApiClient(token)
    reconciler = RuleReconciler(
        client, job_id=current_job_id(), rate_limit_retries=rate_limit_retries
    )
    return AccessOrchestrator(reconciler)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the database access CLI."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
    logging.debug("Environment file consulted: %s", args.env_path)
    install_signal_handlers()
    logging.info("✅ Input validation passed")

    orchestrator = create_orchestrator(args.token, args.rate_limit_retries)
    context = RunContext(
        action=args.action,
        resources=args.targets,
        ip=args.ip,
        timeout=args.timeout,
    )
    try:
        success = orchestrator.run(context)
    except ResolutionFailed:
        return 1
    return 0 if success else 1


if __name__ == "__main__":  # pragma: no cover - script entry point
    raise SystemExit(main())

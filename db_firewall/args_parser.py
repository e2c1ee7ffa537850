"""
Argument parsing for the database access CLI.

Every option falls back to the environment variable the CI workflow sets, so
the tool runs with no flags at all inside a configured job.
"""

from __future__ import annotations

import argparse
import os

from .config import (
    ACTION_VAR,
    DEFAULT_TIMEOUT_SECONDS,
    POSTGRES_ID_VAR,
    REDIS_ID_VAR,
    TIMEOUT_VAR,
    TOKEN_VAR,
    VERBOSE_VAR,
    env_flag,
    load_environment,
    require_token,
)
from .exceptions import ConfigurationError
from .ip_resolver import is_ipv4_like
from .models import build_targets
from .orchestrator import Action

EPILOG = """\
actions:
  add         Add current runner IP to database firewall rules
  remove      Remove specific IP from database firewall rules
  cleanup     Remove all CI-added IPs (based on description pattern)

examples:
  manage-db-access --action add --postgres-id abc123 --redis-id def456 --token $DO_TOKEN
  manage-db-access --action remove --postgres-id abc123 --redis-id def456 --token $DO_TOKEN
  manage-db-access --action cleanup --postgres-id abc123 --redis-id def456 --token $DO_TOKEN
"""


def add_target_arguments(parser: argparse.ArgumentParser) -> None:
    """Add cluster and credential arguments."""
    parser.add_argument(
        "--postgres-id",
        default=os.environ.get(POSTGRES_ID_VAR, ""),
        metavar="CLUSTER_ID",
        help=f"PostgreSQL cluster ID (env: {POSTGRES_ID_VAR}).",
    )
    parser.add_argument(
        "--redis-id",
        default=os.environ.get(REDIS_ID_VAR, ""),
        metavar="CLUSTER_ID",
        help=f"Redis/Valkey cluster ID (env: {REDIS_ID_VAR}).",
    )
    parser.add_argument(
        "--token",
        default=os.environ.get(TOKEN_VAR, ""),
        help=f"DigitalOcean API token (env: {TOKEN_VAR}).",
    )


def add_behaviour_arguments(parser: argparse.ArgumentParser) -> None:
    """Add action selection and tuning arguments."""
    parser.add_argument(
        "-a",
        "--action",
        default=os.environ.get(ACTION_VAR, Action.ADD.value),
        help="Action: add|remove|cleanup (default: add).",
    )
    parser.add_argument(
        "--ip",
        help="Address to remove instead of the detected one (remove only).",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=os.environ.get(TIMEOUT_VAR, str(DEFAULT_TIMEOUT_SECONDS)),
        help=f"Operation timeout in seconds (default: {DEFAULT_TIMEOUT_SECONDS}).",
    )
    parser.add_argument(
        "--rate-limit-retries",
        type=int,
        default=0,
        help="Re-attempt reads/writes this many times after HTTP 429 (default: 0).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=env_flag(VERBOSE_VAR),
        help="Verbose output.",
    )
    parser.add_argument(
        "--env-file",
        help="Optional .env file to read before applying defaults (default: ~/.env).",
    )


def build_parser() -> argparse.ArgumentParser:
    """Create the parser; defaults reflect the environment at call time."""
    parser = argparse.ArgumentParser(
        description="Manage IP access for DigitalOcean managed databases during CI/CD",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_behaviour_arguments(parser)
    add_target_arguments(parser)
    return parser


def _validate_and_transform_args(
    args: argparse.Namespace, parser: argparse.ArgumentParser
) -> None:
    """Validate parsed arguments and attach derived values."""
    valid_actions = [action.value for action in Action]
    if args.action not in valid_actions:
        parser.error(
            f"Invalid action: {args.action} (valid actions: {', '.join(valid_actions)})"
        )
    args.action = Action(args.action)

    try:
        args.token = require_token(args.token)
    except ConfigurationError as exc:
        parser.error(str(exc))

    if not args.postgres_id and not args.redis_id:
        parser.error("At least one cluster ID is required (--postgres-id or --redis-id)")
    if args.timeout <= 0:
        parser.error("--timeout must be positive.")
    if args.rate_limit_retries < 0:
        parser.error("--rate-limit-retries cannot be negative.")
    if args.ip is not None:
        if args.action is not Action.REMOVE:
            parser.error("--ip can only be used with --action remove.")
        if not is_ipv4_like(args.ip):
            parser.error(f"--ip is not an IPv4 address: {args.ip}")

    args.targets = build_targets(args.postgres_id, args.redis_id)


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse and validate command-line arguments."""
    preparser = argparse.ArgumentParser(add_help=False)
    preparser.add_argument("--env-file")
    known, _ = preparser.parse_known_args(argv)
    env_path = load_environment(known.env_file)

    parser = build_parser()
    args = parser.parse_args(argv)
    args.env_path = env_path
    _validate_and_transform_args(args, parser)
    return args

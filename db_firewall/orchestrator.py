"""
Sequencing of IP detection and per-cluster reconciliation.

Flow: resolve IP (unless cleaning up or given an explicit address), reconcile
each configured cluster in turn (relational first), aggregate. For ``add`` each
rule is registered for rollback as soon as its write succeeds; the
rollback runs on any exit from the add scope unless every cluster succeeded
and the propagation wait completed.
"""

from __future__ import annotations

import logging
import time
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .config import (
    DEFAULT_TIMEOUT_SECONDS,
    PROPAGATION_POLL_SECONDS,
    PROPAGATION_SETTLE_SECONDS,
)
from .ip_resolver import IPResolver
from .models import AddIp, FirewallRule, RemoveIp, RemoveMatching, TargetResource
from .reconciler import ReconcileResult, RuleReconciler


class Action(Enum):
    """Operations selectable from the command line."""

    ADD = "add"
    REMOVE = "remove"
    CLEANUP = "cleanup"

    @property
    def needs_ip(self) -> bool:
        """Whether the runner's address must be known for this action."""
        return self is not Action.CLEANUP


@dataclass
class RunContext:
    """Everything one invocation knows, threaded through each step."""

    action: Action
    resources: list[TargetResource]
    ip: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    results: list[ReconcileResult] = field(default_factory=list)
    created_rules: list[tuple[TargetResource, FirewallRule]] = field(default_factory=list)
    rolled_back: list[tuple[TargetResource, FirewallRule]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """True when every reconciled resource reported success."""
        return all(result.ok for result in self.results)


class PropagationWaiter:  # pylint: disable=too-few-public-methods
    """Time-based wait for firewall changes to take effect on the provider side."""

    def __init__(
        self,
        settle_seconds: float = PROPAGATION_SETTLE_SECONDS,
        poll_seconds: float = PROPAGATION_POLL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settle_seconds = settle_seconds
        self.poll_seconds = poll_seconds
        self.sleep = sleep
        self.clock = clock

    def wait(self, timeout: float) -> bool:
        """Return True once the settle period passed, False if the timeout came first."""
        logging.info("Waiting for database connectivity (timeout: %ss)...", timeout)
        started = self.clock()
        while True:
            elapsed = self.clock() - started
            if elapsed >= timeout:
                logging.error("❌ Timeout waiting for database connectivity")
                return False
            logging.debug("Testing connectivity... (%ds elapsed)", elapsed)
            if elapsed >= self.settle_seconds:
                logging.info("✅ Firewall rules should be active")
                return True
            self.sleep(self.poll_seconds)


class AccessOrchestrator:
    """Drives one add / remove / cleanup run across the configured clusters."""

    def __init__(
        self,
        reconciler: RuleReconciler,
        resolver: Optional[IPResolver] = None,
        waiter: Optional[PropagationWaiter] = None,
    ):
        self.reconciler = reconciler
        self.resolver = resolver if resolver is not None else IPResolver()
        self.waiter = waiter if waiter is not None else PropagationWaiter()

    def run(self, context: RunContext) -> bool:
        """
        Execute the configured action.

        Returns:
            bool: True when every cluster was reconciled successfully.

        Raises:
            ResolutionFailed: If the IP is needed and cannot be detected.
        """
        logging.info("=== DigitalOcean Database Access Management ===")
        if context.action.needs_ip and not context.ip:
            context.ip = self.resolver.resolve()
        self._log_summary(context)

        if context.action is Action.ADD:
            success = self._run_add(context)
        elif context.action is Action.REMOVE:
            success = self._run_remove(context)
        else:
            success = self._run_cleanup(context)

        if success:
            logging.info("✅ === Database Access Management Complete ===")
        return success

    @staticmethod
    def _log_summary(context: RunContext) -> None:
        logging.info("Action: %s", context.action.value)
        if context.ip:
            logging.info("Current IP: %s", context.ip)
        for resource in context.resources:
            logging.info("%s cluster: %s", resource.display_name, resource.resource_id)

    def _run_add(self, context: RunContext) -> bool:
        with ExitStack() as rollback_scope:
            def register_rollback(resource: TargetResource, rule: FirewallRule) -> None:
                context.created_rules.append((resource, rule))
                rollback_scope.callback(self._rollback_rule, context, resource, rule)

            change = AddIp(context.ip)
            for resource in context.resources:
                context.results.append(
                    self.reconciler.apply(resource, change, on_created=register_rollback)
                )

            success = context.succeeded and self.waiter.wait(context.timeout)
            if success:
                rollback_scope.pop_all()
                logging.info("✅ IP access successfully added to databases")
            else:
                logging.error("❌ Failed to add IP access to some databases")
                if context.created_rules:
                    logging.warning("⚠️  Run failed, cleaning up added firewall rules...")
        return success

    def _rollback_rule(
        self, context: RunContext, resource: TargetResource, rule: FirewallRule
    ) -> None:
        """Best-effort removal of one rule created earlier in this run."""
        removed = self.reconciler.discard(resource, rule)
        if removed:
            context.rolled_back.append((resource, rule))
        else:
            logging.warning(
                "⚠️  Could not roll back rule for %s on %s cluster",
                rule.value,
                resource.display_name,
            )

    def _run_remove(self, context: RunContext) -> bool:
        change = RemoveIp(context.ip)
        for resource in context.resources:
            context.results.append(self.reconciler.apply(resource, change))
        if context.succeeded:
            logging.info("✅ IP removal completed")
        else:
            logging.error("❌ IP removal failed for some databases")
        return context.succeeded

    def _run_cleanup(self, context: RunContext) -> bool:
        change = RemoveMatching()
        for resource in context.resources:
            context.results.append(self.reconciler.apply(resource, change))
        if context.succeeded:
            logging.info("✅ CI cleanup completed")
        else:
            logging.error("❌ CI cleanup failed for some databases")
        return context.succeeded

"""
Firewall rule reconciliation.

Every change is read-modify-write against a full-replace endpoint: the rule
list is fetched, edited locally and written back (or pruned with per-rule
deletes). There is no concurrency token, so a write overwrites whatever the
provider held at read time; callers must not run two invocations against the
same cluster at once.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .api_client import ApiClient, ApiResponse, Outcome
from .config import CI_RULE_MARKER, CLEANUP_DELETE_DELAY_SECONDS
from .models import (
    AddIp,
    ChangeRequest,
    FirewallRule,
    RemoveIp,
    RemoveMatching,
    TargetResource,
    build_ci_label,
    new_ip_rule,
    parse_rule_set,
    serialize_rule_set,
)

CreatedCallback = Callable[[TargetResource, FirewallRule], None]


@dataclass
class ReconcileResult:  # pylint: disable=too-many-instance-attributes
    """Per-resource outcome reported back to the orchestrator."""

    resource: TargetResource
    ok: bool  # pylint: disable=invalid-name
    outcome: Outcome = Outcome.SUCCESS
    removed: int = 0
    failed: int = 0
    created_rule: Optional[FirewallRule] = None


class RuleReconciler:
    """Apply add / remove / cleanup changes to a cluster's firewall."""

    def __init__(
        self,
        client: ApiClient,
        job_id: Optional[str] = None,
        rate_limit_retries: int = 0,
        delete_delay: float = CLEANUP_DELETE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.job_id = job_id
        self.rate_limit_retries = max(rate_limit_retries, 0)
        self.delete_delay = delete_delay
        self.sleep = sleep

    def _with_rate_limit_retries(self, request: Callable[[], ApiResponse]) -> ApiResponse:
        """Re-issue a request that came back RATE_LIMITED, up to the configured limit."""
        response = request()
        attempts_left = self.rate_limit_retries
        while response.outcome is Outcome.RATE_LIMITED and attempts_left > 0:
            attempts_left -= 1
            logging.debug("Retrying after rate limit (%d retries left)", attempts_left)
            response = request()
        return response

    def fetch_rules(self, resource: TargetResource) -> tuple[ApiResponse, list[FirewallRule]]:
        """Read the current rule set; the list is empty unless the read succeeded."""
        response = self._with_rate_limit_retries(
            lambda: self.client.get_firewall_rules(resource.resource_id)
        )
        if not response.ok:
            logging.error(
                "❌ Failed to get current firewall rules for %s", resource.display_name
            )
            return response, []
        return response, parse_rule_set(response.body)

    def apply(
        self,
        resource: TargetResource,
        change: ChangeRequest,
        on_created: Optional[CreatedCallback] = None,
    ) -> ReconcileResult:
        """Dispatch a ChangeRequest to the matching operation; on_created only applies to AddIp."""
        if isinstance(change, AddIp):
            return self.add(resource, change.ip, on_created)
        if isinstance(change, RemoveIp):
            return self.remove_ip(resource, change.ip)
        if isinstance(change, RemoveMatching):
            return self.remove_matching(resource, change.label_substring)
        raise TypeError(f"Unsupported change request: {change!r}")

    def add(
        self,
        resource: TargetResource,
        ip: str,
        on_created: Optional[CreatedCallback] = None,
    ) -> ReconcileResult:
        """
        Append an ip_addr rule for ``ip`` and write the full list back.

        ``on_created(resource, rule)`` runs as soon as the write succeeds,
        before the id read-back; ``rule.id`` is filled in afterwards when the
        read-back finds it.

        Existing rules with the same value are left alone, so repeated adds
        create duplicate entries with distinct ids.
        """
        name = resource.display_name
        logging.info("Adding IP %s to %s cluster %s...", ip, name, resource.resource_id)

        read, rules = self.fetch_rules(resource)
        if not read.ok:
            return ReconcileResult(resource, False, read.outcome)

        known_ids = {rule.id for rule in rules if rule.id}
        new_rule = new_ip_rule(ip, build_ci_label(self.job_id))
        body = serialize_rule_set([*rules, new_rule])
        logging.debug("Updated rules data: %s", body)

        write = self._with_rate_limit_retries(
            lambda: self.client.replace_firewall_rules(resource.resource_id, body)
        )
        if not write.ok:
            logging.error("❌ Failed to add IP to %s firewall", name)
            return ReconcileResult(resource, False, write.outcome)

        if on_created is not None:
            on_created(resource, new_rule)
        new_rule.id = self._lookup_created_id(resource, new_rule, known_ids)
        logging.info("✅ IP %s added to %s firewall", ip, name)
        return ReconcileResult(resource, True, created_rule=new_rule)

    def _lookup_created_id(
        self, resource: TargetResource, rule: FirewallRule, known_ids: set
    ) -> Optional[str]:
        """Re-read once to learn the id the provider gave the rule we just wrote."""
        response = self._with_rate_limit_retries(
            lambda: self.client.get_firewall_rules(resource.resource_id)
        )
        if not response.ok:
            logging.warning(
                "⚠️  Could not read back %s firewall to capture the new rule id",
                resource.display_name,
            )
            return None
        for candidate in parse_rule_set(response.body):
            if (
                candidate.id
                and candidate.id not in known_ids
                and candidate.value == rule.value
                and candidate.label == rule.label
            ):
                logging.debug("Captured rule id %s for %s", candidate.id, resource.display_name)
                return candidate.id
        return None

    def remove_ip(self, resource: TargetResource, ip: str) -> ReconcileResult:
        """Delete every rule whose value is exactly ``ip``."""
        logging.info(
            "Removing IP %s from %s cluster %s...", ip, resource.display_name, resource.resource_id
        )
        result = self._remove_where(resource, lambda rule: rule.value == ip, delay=0)
        if result.ok:
            if result.removed == 0 and result.failed == 0:
                logging.info(
                    "No firewall rules found for IP %s in %s cluster", ip, resource.display_name
                )
            else:
                logging.info(
                    "Removed %d firewall rule(s) for IP %s from %s",
                    result.removed,
                    ip,
                    resource.display_name,
                )
        return result

    def remove_matching(
        self, resource: TargetResource, label_substring: str = CI_RULE_MARKER
    ) -> ReconcileResult:
        """Delete every rule whose label contains ``label_substring``, pacing the deletes."""
        logging.info(
            "Cleaning up CI-added IPs from %s cluster %s...",
            resource.display_name,
            resource.resource_id,
        )
        result = self._remove_where(
            resource, lambda rule: rule.is_ci_rule(label_substring), delay=self.delete_delay
        )
        if result.ok:
            if result.removed == 0 and result.failed == 0:
                logging.info("No CI-added firewall rules found in %s cluster", resource.display_name)
            else:
                logging.info(
                    "Removed %d CI-added firewall rule(s) from %s",
                    result.removed,
                    resource.display_name,
                )
        return result

    def _remove_where(
        self,
        resource: TargetResource,
        predicate: Callable[[FirewallRule], bool],
        delay: float,
    ) -> ReconcileResult:
        """Best-effort delete of matching rules in provider order."""
        read, rules = self.fetch_rules(resource)
        if not read.ok:
            return ReconcileResult(resource, False, read.outcome)

        matches = [rule for rule in rules if rule.id and predicate(rule)]
        result = ReconcileResult(resource, True)
        for index, rule in enumerate(matches):
            if index and delay:
                self.sleep(delay)
            if self.delete_rule(resource, rule.id):
                result.removed += 1
            else:
                result.failed += 1
        return result

    def discard(self, resource: TargetResource, rule: FirewallRule) -> int:
        """
        Undo a rule created by add(); returns the number of rules deleted.

        Uses the captured id when there is one. Otherwise the rule is found
        again by its value and exact label, which include this run's timestamp
        and job id.
        """
        if rule.id:
            return int(self.delete_rule(resource, rule.id))
        read, rules = self.fetch_rules(resource)
        if not read.ok:
            return 0
        removed = 0
        for candidate in rules:
            if candidate.id and candidate.value == rule.value and candidate.label == rule.label:
                removed += int(self.delete_rule(resource, candidate.id))
        return removed

    def delete_rule(self, resource: TargetResource, rule_id: str) -> bool:
        """Delete one rule; failures are logged and reported as False."""
        logging.debug("Removing rule %s from %s", rule_id, resource.display_name)
        response = self.client.delete_firewall_rule(resource.resource_id, rule_id)
        if response.ok:
            logging.info("✅ Removed rule %s from %s", rule_id, resource.display_name)
            return True
        logging.error("❌ Failed to remove rule %s from %s", rule_id, resource.display_name)
        return False

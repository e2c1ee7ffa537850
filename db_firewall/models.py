"""Firewall rule data model and change requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from .config import CI_RULE_MARKER, DEFAULT_JOB_ID, RULE_TYPE_IP

# Wire fields owned by FirewallRule; anything else is carried in ``extra``.
_KNOWN_FIELDS = {"uuid", "type", "value", "description"}


@dataclass
class FirewallRule:
    """One entry of a cluster's trusted-sources list."""

    kind: str
    value: str
    label: str = ""
    id: Optional[str] = None  # pylint: disable=invalid-name
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: dict) -> "FirewallRule":
        """Build a rule from a provider JSON object."""
        return cls(
            kind=payload.get("type", ""),
            value=payload.get("value", ""),
            label=payload.get("description") or "",
            id=payload.get("uuid"),
            extra={k: v for k, v in payload.items() if k not in _KNOWN_FIELDS},
        )

    def to_api(self) -> dict:
        """Serialize back to the provider format, keeping unknown fields intact."""
        payload = dict(self.extra)
        if self.id:
            payload["uuid"] = self.id
        payload["type"] = self.kind
        payload["value"] = self.value
        if self.label:
            payload["description"] = self.label
        return payload

    def is_ci_rule(self, marker: str = CI_RULE_MARKER) -> bool:
        """True when the label carries the automation marker (case-sensitive)."""
        return marker in self.label


def parse_rule_set(payload: Optional[dict]) -> list[FirewallRule]:
    """Extract the ordered rule list from a GET /firewall response."""
    if not payload:
        return []
    return [FirewallRule.from_api(rule) for rule in payload.get("rules") or []]


def serialize_rule_set(rules: list[FirewallRule]) -> dict:
    """Build the full-replace PUT body."""
    return {"rules": [rule.to_api() for rule in rules]}


def build_ci_label(job_id: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """Label for rules created by this tool: marker, UTC timestamp, job id."""
    moment = now or datetime.now(timezone.utc)
    stamp = moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"{CI_RULE_MARKER} - {stamp} - Job: {job_id or DEFAULT_JOB_ID}"


def new_ip_rule(ip: str, label: str) -> FirewallRule:
    """Create a not-yet-persisted ip_addr rule."""
    return FirewallRule(kind=RULE_TYPE_IP, value=ip, label=label)


class ResourceKind(Enum):
    """Kinds of managed database clusters the tool can target."""

    RELATIONAL = "postgres"
    KEY_VALUE = "redis"


@dataclass(frozen=True)
class TargetResource:
    """A managed database cluster whose firewall is reconciled."""

    resource_id: str
    kind: ResourceKind

    @property
    def display_name(self) -> str:
        """Short name used in log lines."""
        return self.kind.value


def build_targets(postgres_id: Optional[str], redis_id: Optional[str]) -> list[TargetResource]:
    """Return the configured targets, relational first."""
    targets = []
    if postgres_id:
        targets.append(TargetResource(postgres_id, ResourceKind.RELATIONAL))
    if redis_id:
        targets.append(TargetResource(redis_id, ResourceKind.KEY_VALUE))
    return targets


@dataclass(frozen=True)
class AddIp:
    """Whitelist one address."""

    ip: str


@dataclass(frozen=True)
class RemoveIp:
    """Remove every rule whose value is exactly this address."""

    ip: str


@dataclass(frozen=True)
class RemoveMatching:
    """Remove every rule whose label contains the substring."""

    label_substring: str = CI_RULE_MARKER


ChangeRequest = Union[AddIp, RemoveIp, RemoveMatching]

"""Tests for db_firewall/models.py."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from db_firewall.models import (
    FirewallRule,
    ResourceKind,
    build_ci_label,
    build_targets,
    new_ip_rule,
    parse_rule_set,
    serialize_rule_set,
)
from tests.assertions import assert_equal
from tests.firewall_test_utils import ci_rule, manual_rule


def test_from_api_maps_wire_fields():
    """uuid/type/description map onto id/kind/label; other fields are kept aside."""
    rule = FirewallRule.from_api(ci_rule("abc", "1.2.3.4"))

    assert_equal(rule.id, "abc")
    assert_equal(rule.kind, "ip_addr")
    assert_equal(rule.value, "1.2.3.4")
    assert rule.label.startswith("GitHub Actions CI/CD")
    assert_equal(rule.extra, {"cluster_uuid": "cluster", "created_at": "2024-01-01T00:00:00Z"})


def test_round_trip_preserves_provider_payload():
    """Existing rules are written back exactly as they were read."""
    payload = {
        "uuid": "k8s-1",
        "cluster_uuid": "cluster",
        "type": "k8s",
        "value": "cluster-abc",
        "created_at": "2023-01-01T00:00:00Z",
    }

    assert_equal(FirewallRule.from_api(payload).to_api(), payload)


def test_new_rule_has_no_uuid():
    """A rule not yet created serializes without a uuid."""
    rule = new_ip_rule("203.0.113.5", "GitHub Actions CI/CD - x - Job: manual")

    assert_equal(
        rule.to_api(),
        {"type": "ip_addr", "value": "203.0.113.5", "description": "GitHub Actions CI/CD - x - Job: manual"},
    )


def test_parse_rule_set_handles_empty_and_missing():
    """Missing bodies or a null rules list give an empty rule set."""
    assert parse_rule_set(None) == []
    assert parse_rule_set({}) == []
    assert parse_rule_set({"rules": None}) == []


def test_parse_rule_set_keeps_provider_order():
    """Order of the provider response is preserved."""
    rules = parse_rule_set({"rules": [manual_rule("b", "2.2.2.2"), manual_rule("a", "1.1.1.1")]})

    assert [rule.id for rule in rules] == ["b", "a"]


def test_serialize_rule_set_wraps_rules():
    """The PUT body wraps the list under 'rules'."""
    rules = [FirewallRule.from_api(manual_rule("a", "1.1.1.1"))]

    assert_equal(serialize_rule_set(rules), {"rules": [manual_rule("a", "1.1.1.1")]})


def test_build_ci_label_format():
    """Marker, UTC timestamp and job id make up the label."""
    moment = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)

    assert_equal(
        build_ci_label("98765", now=moment),
        "GitHub Actions CI/CD - 2024-05-06T07:08:09Z - Job: 98765",
    )


def test_build_ci_label_converts_to_utc_and_defaults_job():
    """Non-UTC timestamps are normalised; a missing job id becomes 'manual'."""
    moment = datetime(2024, 5, 6, 9, 8, 9, tzinfo=timezone(timedelta(hours=2)))

    assert_equal(build_ci_label(None, now=moment), "GitHub Actions CI/CD - 2024-05-06T07:08:09Z - Job: manual")


def test_is_ci_rule_is_case_sensitive():
    """Only the exact marker text counts."""
    assert FirewallRule("ip_addr", "1.1.1.1", "GitHub Actions CI/CD - run").is_ci_rule()
    assert not FirewallRule("ip_addr", "1.1.1.1", "github actions ci/cd - run").is_ci_rule()
    assert not FirewallRule("ip_addr", "1.1.1.1", "manual-entry").is_ci_rule()
    assert not FirewallRule("ip_addr", "1.1.1.1").is_ci_rule()


def test_build_targets_relational_first():
    """Targets come out relational first and skip missing ids."""
    targets = build_targets("pg", "rd")
    assert [(t.resource_id, t.kind) for t in targets] == [
        ("pg", ResourceKind.RELATIONAL),
        ("rd", ResourceKind.KEY_VALUE),
    ]
    assert [t.display_name for t in targets] == ["postgres", "redis"]
    assert [t.resource_id for t in build_targets("", "rd")] == ["rd"]
    assert build_targets(None, None) == []

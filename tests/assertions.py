"""Assertion helpers with readable failure messages for the firewall tests."""

from __future__ import annotations


def assert_equal(actual, expected, *, message: str | None = None) -> None:
    """Assert equality with a clearer error message."""
    failure_message = message or f"Expected {expected!r} but received {actual!r}"
    assert actual == expected, failure_message


def assert_rule_ids(api, resource_id: str, expected: list[str]) -> None:
    """Assert the uuids stored on a fake cluster, in provider order."""
    actual = [rule["uuid"] for rule in api.rules(resource_id)]
    assert_equal(actual, expected, message=f"{resource_id} rules: expected {expected!r}, got {actual!r}")

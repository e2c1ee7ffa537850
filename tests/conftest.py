"""Shared pytest fixtures for test files."""

from __future__ import annotations

import pytest

from db_firewall.models import ResourceKind, TargetResource
from db_firewall.reconciler import RuleReconciler
from tests.firewall_test_utils import FakeClock, FakeFirewallApi

POSTGRES_ID = "pg-cluster-1"
REDIS_ID = "redis-cluster-1"


@pytest.fixture
def postgres():
    """Relational target."""
    return TargetResource(POSTGRES_ID, ResourceKind.RELATIONAL)


@pytest.fixture
def redis():
    """Key-value target."""
    return TargetResource(REDIS_ID, ResourceKind.KEY_VALUE)


@pytest.fixture
def fake_api():
    """Fake provider with two empty clusters."""
    return FakeFirewallApi({POSTGRES_ID: [], REDIS_ID: []})


@pytest.fixture
def clock():
    """Fake clock whose sleep advances time instantly."""
    return FakeClock()


@pytest.fixture
def reconciler(fake_api, clock):
    """RuleReconciler bound to the fake provider with instant sleeps."""
    return RuleReconciler(fake_api, job_id="1234", sleep=clock.sleep)

"""Test suite package marker."""

import pytest

# Ensure helper modules are assertion-rewritten before import.
pytest.register_assert_rewrite("tests.firewall_test_utils")
pytest.register_assert_rewrite("tests.assertions")

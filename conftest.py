"""Pytest configuration and shared fixtures for the database access manager."""

# pylint: disable=wrong-import-position

import os
import sys
from pathlib import Path
from unittest import mock

PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from db_firewall import config

_MANAGED_VARS = (
    config.ACTION_VAR,
    config.ENV_FILE_VAR,
    config.JOB_ID_VAR,
    config.POSTGRES_ID_VAR,
    config.REDIS_ID_VAR,
    config.TIMEOUT_VAR,
    config.TOKEN_VAR,
    config.VERBOSE_VAR,
)


@pytest.fixture(autouse=True)
def isolated_env_file(tmp_path):
    """Auto-use fixture that isolates the process environment for every test.

    Clears the variables the CLI reads, points DB_FIREWALL_ENV_FILE at an empty
    temporary .env so ~/.env is never consulted, and restores os.environ
    afterwards, including any keys python-dotenv added during the test.
    """
    env_file = tmp_path / ".env"
    env_file.write_text("")
    with mock.patch.dict(os.environ):
        for name in _MANAGED_VARS:
            os.environ.pop(name, None)
        os.environ[config.ENV_FILE_VAR] = str(env_file)
        yield env_file

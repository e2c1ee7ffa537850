"""
Configuration for the database firewall access manager.

Holds the provider endpoints, timeouts and labelling constants, plus the
environment loading used by the CLI. Values set by the CI environment always
win over values read from an env file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

# DigitalOcean REST API
API_BASE_URL: str = "https://api.digitalocean.com/v2"
API_CONNECT_TIMEOUT: int = 30
API_READ_TIMEOUT: int = 60
RATE_LIMIT_BACKOFF_SECONDS: int = 5

# Public IP detection, tried in this order
IP_SERVICES: tuple[str, ...] = (
    "https://ipv4.icanhazip.com",
    "https://api.ipify.org",
    "https://checkip.amazonaws.com",
    "https://ifconfig.me/ip",
)
IP_CONNECT_TIMEOUT: int = 10
IP_TOTAL_TIMEOUT: int = 15

# Rule labelling
RULE_TYPE_IP: str = "ip_addr"
CI_RULE_MARKER: str = "GitHub Actions CI/CD"
DEFAULT_JOB_ID: str = "manual"

# Pacing
CLEANUP_DELETE_DELAY_SECONDS: int = 1
PROPAGATION_POLL_SECONDS: int = 5
PROPAGATION_SETTLE_SECONDS: int = 30
DEFAULT_TIMEOUT_SECONDS: int = 300

# Environment variable names
ENV_FILE_VAR = "DB_FIREWALL_ENV_FILE"
TOKEN_VAR = "DIGITALOCEAN_ACCESS_TOKEN"
POSTGRES_ID_VAR = "DATABASE_CLUSTER_ID"
REDIS_ID_VAR = "REDIS_CLUSTER_ID"
ACTION_VAR = "ACTION"
VERBOSE_VAR = "VERBOSE"
TIMEOUT_VAR = "TIMEOUT"
JOB_ID_VAR = "GITHUB_RUN_ID"


def _resolve_env_path(env_path: Optional[str] = None) -> str:
    """
    Determine which .env file should be consulted.

    Priority order:
      1. Explicit parameter
      2. DB_FIREWALL_ENV_FILE environment variable
      3. ~/.env
    """
    if env_path:
        return env_path
    env_file = os.environ.get(ENV_FILE_VAR)
    if env_file:
        return env_file
    return str(Path.home() / ".env")


def load_environment(env_path: Optional[str] = None) -> str:
    """
    Load variables from the resolved .env file without overriding the process environment.

    Returns:
        str: The path that was consulted (it may not exist).
    """
    resolved_path = _resolve_env_path(env_path)
    load_dotenv(resolved_path, override=False)
    return resolved_path


def require_token(token: Optional[str]) -> str:
    """Return the API token or raise when it is missing."""
    if not token:
        raise ConfigurationError(f"DigitalOcean API token is required (--token or {TOKEN_VAR})")
    return token


def env_flag(name: str) -> bool:
    """Interpret a true/false style environment variable."""
    return os.environ.get(name, "false").strip().lower() in {"1", "true", "yes"}


def current_job_id() -> str:
    """Job identifier used when labelling rules."""
    return os.environ.get(JOB_ID_VAR) or DEFAULT_JOB_ID

"""
Database firewall access package.

Whitelist a CI runner's public IP on DigitalOcean managed database clusters
and remove it again afterwards.
"""

from . import api_client, args_parser, cli, config, exceptions, ip_resolver, models
from . import orchestrator, reconciler
from .api_client import ApiClient, ApiResponse, Outcome
from .exceptions import ConfigurationError, DbFirewallError, ResolutionFailed
from .ip_resolver import IPResolver
from .models import FirewallRule, ResourceKind, TargetResource
from .orchestrator import AccessOrchestrator, Action, RunContext
from .reconciler import ReconcileResult, RuleReconciler

__all__ = [
    "AccessOrchestrator",
    "Action",
    "ApiClient",
    "ApiResponse",
    "ConfigurationError",
    "DbFirewallError",
    "FirewallRule",
    "IPResolver",
    "Outcome",
    "ReconcileResult",
    "ResolutionFailed",
    "ResourceKind",
    "RuleReconciler",
    "RunContext",
    "TargetResource",
    "api_client",
    "args_parser",
    "cli",
    "config",
    "exceptions",
    "ip_resolver",
    "models",
    "orchestrator",
    "reconciler",
]

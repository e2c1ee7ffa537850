"""Custom exceptions for the database firewall access manager."""


class DbFirewallError(Exception):
    """Base class for errors raised by db_firewall."""


class ConfigurationError(DbFirewallError):
    """Raised when required configuration is missing or invalid."""


class ResolutionFailed(DbFirewallError):
    """Raised when no IP detection endpoint returned a usable IPv4 address"""

    def __init__(self, endpoints):
        self.endpoints = list(endpoints)
        super().__init__(
            f"Failed to detect current public IP from all services ({len(self.endpoints)} tried)"
        )


class EndpointError(DbFirewallError):
    """Raised when a single IP detection endpoint cannot be used."""

    def __init__(self, endpoint, reason):
        self.endpoint = endpoint
        super().__init__(f"{endpoint}: {reason}")

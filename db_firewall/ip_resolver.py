"""Detect the runner's current public IPv4 address."""

from __future__ import annotations

import http.client
import logging
import re
import time
from typing import Iterable, Optional
from urllib.parse import urlsplit

from .config import IP_CONNECT_TIMEOUT, IP_SERVICES, IP_TOTAL_TIMEOUT
from .exceptions import EndpointError, ResolutionFailed

HTTP_OK = 200
READ_CHUNK_BYTES = 256

# Four dotted groups of one to three digits. Octet ranges are not checked.
IPV4_PATTERN = re.compile(r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}")


def is_ipv4_like(text: str) -> bool:
    """Return True when text looks like a dotted-quad IPv4 address."""
    return IPV4_PATTERN.fullmatch(text) is not None


def _limit_to_deadline(connection: http.client.HTTPSConnection, deadline: float) -> None:
    """Shrink the socket timeout to what is left before the deadline."""
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise TimeoutError("overall timeout exceeded")
    if connection.sock is not None:
        connection.sock.settimeout(remaining)


def _read_before_deadline(connection, response, deadline: float) -> bytes:
    chunks = []
    while True:
        _limit_to_deadline(connection, deadline)
        chunk = response.read(READ_CHUNK_BYTES)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def _fetch_from_endpoint(
    url: str,
    connect_timeout: float = IP_CONNECT_TIMEOUT,
    total_timeout: float = IP_TOTAL_TIMEOUT,
) -> str:
    """
    Fetch the plain-text body of an IP detection endpoint with all whitespace removed.

    ``total_timeout`` is a deadline for the whole exchange, checked before
    every socket operation including each chunk of the body.
    """
    parts = urlsplit(url)
    deadline = time.monotonic() + total_timeout
    try:
        connection = http.client.HTTPSConnection(parts.netloc, timeout=connect_timeout)
    except (OSError, http.client.HTTPException) as exc:
        raise EndpointError(url, f"request failed ({exc})") from exc

    try:
        connection.connect()
        _limit_to_deadline(connection, deadline)
        connection.request("GET", parts.path or "/")
        response = connection.getresponse()
        if response.status != HTTP_OK:
            raise EndpointError(url, f"unexpected status code {response.status}")
        body = _read_before_deadline(connection, response, deadline)
    except (OSError, http.client.HTTPException) as exc:
        raise EndpointError(url, f"request failed ({exc})") from exc
    finally:
        connection.close()

    return "".join(body.decode("utf-8", errors="replace").split())


class IPResolver:  # pylint: disable=too-few-public-methods
    """Query detection endpoints in priority order and return the first valid address."""

    def __init__(
        self,
        endpoints: Optional[Iterable[str]] = None,
        connect_timeout: float = IP_CONNECT_TIMEOUT,
        total_timeout: float = IP_TOTAL_TIMEOUT,
    ):
        self.endpoints = list(endpoints) if endpoints is not None else list(IP_SERVICES)
        self.connect_timeout = connect_timeout
        self.total_timeout = total_timeout

    def resolve(self) -> str:
        """
        Return the caller's public IPv4 address.

        The first endpoint answering with a dotted quad wins; its answer is
        returned as-is, with no cross-checking against other endpoints.

        Raises:
            ResolutionFailed: If every endpoint failed or returned garbage.
        """
        logging.info("Getting current public IP...")
        for endpoint in self.endpoints:
            logging.debug("Trying IP service: %s", endpoint)
            try:
                candidate = _fetch_from_endpoint(
                    endpoint, self.connect_timeout, self.total_timeout
                )
            except EndpointError as exc:
                logging.debug("Failed to get IP from %s", exc)
                continue

            if is_ipv4_like(candidate):
                logging.info("✅ Current IP detected: %s", candidate)
                return candidate
            logging.debug("Failed to get IP from %s: invalid payload %r", endpoint, candidate[:64])

        logging.error("❌ Failed to detect current public IP from all services")
        raise ResolutionFailed(self.endpoints)

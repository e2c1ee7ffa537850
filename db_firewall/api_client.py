#!/usr/bin/env python3
"""
DigitalOcean API Gateway Client
Authenticated calls against the managed-database firewall endpoints.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import requests

from .config import (
    API_BASE_URL,
    API_CONNECT_TIMEOUT,
    API_READ_TIMEOUT,
    RATE_LIMIT_BACKOFF_SECONDS,
)

SUCCESS_CODES = frozenset({200, 201, 204})
HTTP_UNAUTHORIZED = 401
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429


class Outcome(Enum):
    """Result categories for a single API call."""

    SUCCESS = "success"
    AUTH_FAILURE = "auth_failure"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    OTHER_FAILURE = "other_failure"


def classify_status(status: int) -> Outcome:
    """Map an HTTP status code onto the outcome taxonomy."""
    if status in SUCCESS_CODES:
        return Outcome.SUCCESS
    if status == HTTP_UNAUTHORIZED:
        return Outcome.AUTH_FAILURE
    if status == HTTP_NOT_FOUND:
        return Outcome.NOT_FOUND
    if status == HTTP_TOO_MANY_REQUESTS:
        return Outcome.RATE_LIMITED
    return Outcome.OTHER_FAILURE


@dataclass(frozen=True)
class ApiResponse:
    """Outcome of one call plus whatever the provider sent back."""

    outcome: Outcome
    status: int
    body: Any = None

    @property
    def ok(self) -> bool:  # pylint: disable=invalid-name
        """True for 200/201/204."""
        return self.outcome is Outcome.SUCCESS


def _decode_body(response: requests.Response) -> Any:
    """Return parsed JSON when possible, otherwise the raw text (None when empty)."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiClient:
    """Thin wrapper over requests with the provider's status handling."""

    def __init__(
        self,
        token: str,
        base_url: str = API_BASE_URL,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        timeout: tuple[float, float] = (API_CONNECT_TIMEOUT, API_READ_TIMEOUT),
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            }
        )
        self.sleep = sleep
        self.timeout = timeout

    def call(self, method: str, path: str, body: Optional[dict] = None) -> ApiResponse:
        """
        Perform one API call and classify the result.

        A 429 makes this method pause for the back-off period before it
        returns RATE_LIMITED; it never re-sends the request itself.
        Transport errors (timeouts, refused connections) come back as
        OTHER_FAILURE with status 0.
        """
        url = f"{self.base_url}{path}"
        logging.debug("API Call: %s %s", method, path)
        try:
            response = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            logging.error("❌ API call %s %s failed: %s", method, path, exc)
            return ApiResponse(Outcome.OTHER_FAILURE, 0, str(exc))

        status = response.status_code
        payload = _decode_body(response)
        logging.debug("HTTP response code: %s", status)
        outcome = classify_status(status)

        if outcome is Outcome.AUTH_FAILURE:
            logging.error("❌ API authentication failed. Check DIGITALOCEAN_ACCESS_TOKEN")
        elif outcome is Outcome.NOT_FOUND:
            logging.error("❌ Resource not found. Check cluster IDs")
        elif outcome is Outcome.RATE_LIMITED:
            logging.warning("⚠️  Rate limited. Waiting before retry...")
            self.sleep(RATE_LIMIT_BACKOFF_SECONDS)
        elif outcome is Outcome.OTHER_FAILURE:
            logging.error("❌ API call failed with HTTP %s", status)
            logging.debug("Response: %s", payload)

        return ApiResponse(outcome, status, payload)

    def get_firewall_rules(self, resource_id: str) -> ApiResponse:
        """GET the full trusted-sources list of a cluster."""
        return self.call("GET", f"/databases/{resource_id}/firewall")

    def replace_firewall_rules(self, resource_id: str, body: dict) -> ApiResponse:
        """PUT a complete replacement list."""
        return self.call("PUT", f"/databases/{resource_id}/firewall", body)

    def delete_firewall_rule(self, resource_id: str, rule_id: str) -> ApiResponse:
        """DELETE one rule by its provider id."""
        return self.call("DELETE", f"/databases/{resource_id}/firewall/{rule_id}")

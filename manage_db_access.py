#!/usr/bin/env python3
"""
Whitelist the CI runner's public IP on DigitalOcean managed databases.

Adds the current IP to the PostgreSQL and/or Redis cluster firewalls, removes
it again, or cleans up every rule a CI run left behind.

This is a thin wrapper around the db_firewall package.
"""
from __future__ import annotations

from db_firewall.cli import main

if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""Preflight check: verify ProjectWise WSG settings, token and connectivity.

Exits 0 if the repository is reachable and the token is accepted.
Exits 1 with a descriptive error message on any failure.

Usage:
    python3 preflight.py
"""

import asyncio
import sys

import httpx

from projectwise_mcp.client import ApiError, WsgClient
from projectwise_mcp.config import ConfigurationError, load_config


async def check(config):
    async with httpx.AsyncClient(timeout=httpx.Timeout(30.0)) as http:
        await WsgClient(config, http).get_repository()


def main():
    try:
        config = load_config()
    except ConfigurationError as exc:
        print(f"ERROR: {exc}.")
        print("       Set PW_TOKEN, or run scripts/fetch_token.py to save one.")
        sys.exit(1)

    try:
        asyncio.run(check(config))
    except ApiError as exc:
        if exc.status_code == 401:
            print("ERROR: ProjectWise token is invalid or expired (HTTP 401 Unauthorized).")
            print("       Run scripts/fetch_token.py to sign in again.")
        elif exc.status_code == 403:
            print("ERROR: ProjectWise access forbidden (HTTP 403).")
            print("       Check that your account can read this repository.")
        elif exc.status_code == 404:
            print(f"ERROR: Repository {config.repository_id} not found (HTTP 404).")
            print("       Check PW_WSG_BASE_URL and PW_REPOSITORY_ID.")
        else:
            print(f"ERROR: WSG returned HTTP {exc.status_code} {exc.reason}.")
            if exc.body:
                print(f"       Response: {exc.body}")
        sys.exit(1)
    except httpx.TimeoutException:
        print("ERROR: WSG timed out after 30 seconds.")
        print("       Check your network connectivity.")
        sys.exit(1)
    except httpx.TransportError as exc:
        print(f"ERROR: Cannot connect to {config.base_url}: {exc}")
        print("       Check your network connectivity.")
        sys.exit(1)

    print(f"PASS: ProjectWise repository {config.repository_id} is available.")
    sys.exit(0)


if __name__ == "__main__":
    main()

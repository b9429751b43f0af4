#!/usr/bin/env python3
"""Sign in to ProjectWise in a real browser and save the OIDC access token.

Usage:
    python3 fetch_token.py [--login-url URL] [--storage-key KEY] [--timeout SECONDS]
                           [--output PATH] [--scan] [--headless]

Opens Chromium at the login page, waits for you to finish signing in, then
writes the token record to PW_TOKEN_FILE (default ~/.projectwise-mcp/token.json),
where the MCP server picks it up when PW_TOKEN is not set.

Exit 0 once the token is saved, 1 on timeout or browser failure.
"""

import argparse
import dataclasses
import os
import sys

from playwright.sync_api import Error as PlaywrightError, sync_playwright

from projectwise_mcp.config import token_file_path
from projectwise_mcp.token import (
    DEFAULT_TIMEOUT,
    PollState,
    TokenAcquisitionTimeout,
    TransientReadError,
    poll_for_token,
    save_token,
)

DEFAULT_LOGIN_URL = "https://projectwise365.bentley.com/"
DEFAULT_STORAGE_KEY = "oidc.user:https://imsoidc.bentley.com/:projectwise-365"

_READ_KEY_JS = "(key) => sessionStorage.getItem(key)"

# Looks through both storages for oidc-client style entries.
_SCAN_JS = """
() => {
  const markers = ['oidc', 'token', 'user', 'auth'];
  for (const storage of [localStorage, sessionStorage]) {
    for (let i = 0; i < storage.length; i++) {
      const key = storage.key(i);
      if (!key || !markers.some((m) => key.includes(m))) continue;
      const value = storage.getItem(key);
      if (!value) continue;
      try {
        if (JSON.parse(value).access_token) return {key, value};
      } catch (e) {
        if (value.startsWith('eyJ')) return {key, value};
      }
    }
  }
  return null;
}
"""


class StorageReader:
    """Reads the token entry from the page; navigation errors become retries."""

    def __init__(self, page, storage_key, scan=False):
        self.page = page
        self.storage_key = storage_key
        self.scan = scan
        self.found_key = storage_key

    def __call__(self):
        try:
            if not self.scan:
                return self.page.evaluate(_READ_KEY_JS, self.storage_key)
            hit = self.page.evaluate(_SCAN_JS)
        except PlaywrightError as exc:
            raise TransientReadError(str(exc)) from exc
        if not hit:
            return None
        self.found_key = hit["key"]
        return hit["value"]


def _print_state(state, attempt=0):
    if state is PollState.LAUNCHING:
        print("Opening browser for ProjectWise login...")
    elif state is PollState.AWAITING_LOGIN:
        print("Please complete login in the opened browser window. Leave this window open.")
    elif state is PollState.TRANSIENT_ERROR:
        print(f"[attempt {attempt}] page was navigating, retrying...", file=sys.stderr)
    elif state is PollState.POLLING and attempt % 15 == 0:
        print(f"[attempt {attempt}] still waiting for sign-in...", file=sys.stderr)


def main():
    parser = argparse.ArgumentParser(description="Fetch a ProjectWise OIDC token via browser login.")
    parser.add_argument("--login-url", default=os.environ.get("PW_LOGIN_URL", DEFAULT_LOGIN_URL))
    parser.add_argument(
        "--storage-key",
        default=os.environ.get("PW_OIDC_STORAGE_KEY", DEFAULT_STORAGE_KEY),
        help="sessionStorage key holding the OIDC user record",
    )
    parser.add_argument(
        "--timeout", type=float,
        default=float(os.environ.get("PW_LOGIN_TIMEOUT", DEFAULT_TIMEOUT)),
        help=f"Seconds to wait for sign-in (default: {DEFAULT_TIMEOUT})",
    )
    parser.add_argument("--output", help="Token file path (default: PW_TOKEN_FILE or ~/.projectwise-mcp/token.json)")
    parser.add_argument(
        "--scan", action="store_true",
        help="Search all oidc/token/auth keys in local and session storage instead of one key",
    )
    parser.add_argument("--headless", action="store_true", help="Run without a visible window")
    args = parser.parse_args()

    output = args.output or token_file_path(os.environ)

    _print_state(PollState.LAUNCHING)
    print(f"Login URL: {args.login_url}")
    if args.scan:
        print(f"Waiting up to {args.timeout:g}s for a token in browser storage")
    else:
        print(f"Waiting up to {args.timeout:g}s for sessionStorage key: {args.storage_key}")

    with sync_playwright() as pw:
        browser = pw.chromium.launch(headless=args.headless)
        try:
            page = browser.new_page()
            page.goto(args.login_url, wait_until="load")
            _print_state(PollState.AWAITING_LOGIN)

            reader = StorageReader(page, args.storage_key, scan=args.scan)
            try:
                record = poll_for_token(
                    reader,
                    args.storage_key,
                    timeout=args.timeout,
                    # Waiting through the page keeps Playwright's event dispatch running.
                    sleep=lambda seconds: page.wait_for_timeout(seconds * 1000),
                    on_state=_print_state,
                )
            except TokenAcquisitionTimeout as exc:
                print(f"ERROR: {exc}", file=sys.stderr)
                sys.exit(1)
        except PlaywrightError as exc:
            print(f"ERROR: Token fetch failed: {exc}", file=sys.stderr)
            sys.exit(1)
        finally:
            browser.close()

    if reader.found_key != record.source_key:
        record = dataclasses.replace(record, source_key=reader.found_key)
    save_token(output, record)
    print(f"Token saved to {output}")


if __name__ == "__main__":
    main()

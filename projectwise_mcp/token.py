"""OIDC access-token acquisition from a browser session.

The login utility opens a browser, the operator signs in, and the poller
keeps reading the OIDC user record from web storage until it carries an
access token or the time budget runs out.

The poller knows nothing about browsers: it calls ``read_raw()`` for the
current storage value, and the caller supplies ``sleep`` and ``clock`` so
tests can drive it without waiting.
"""

import json
import math
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path

DEFAULT_TIMEOUT = 120
POLL_INTERVAL = 2.0
TRANSIENT_BACKOFF = 0.5

# A bare JWT (base64url of '{"') stored without the oidc-client JSON wrapper.
RAW_JWT_PREFIX = "eyJ"


class TokenAcquisitionTimeout(Exception):
    """No token showed up before the attempt budget ran out."""

    def __init__(self, source_key: str, attempts: int):
        self.source_key = source_key
        self.attempts = attempts
        super().__init__(
            f"No token found under {source_key!r} after {attempts} attempts. "
            "Make sure you are fully signed in and the storage key exists."
        )


class TransientReadError(Exception):
    """The storage read failed in a way worth retrying (e.g. a page navigation)."""


class PollState(Enum):
    LAUNCHING = "launching"
    AWAITING_LOGIN = "awaiting_login"
    POLLING = "polling"
    FOUND = "found"
    TIMED_OUT = "timed_out"
    TRANSIENT_ERROR = "transient_error"


@dataclass(frozen=True)
class TokenRecord:
    access_token: str
    token_type: str
    expires_at: int | None
    fetched_at: int
    source_key: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TokenRecord":
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type") or "Bearer",
            expires_at=data.get("expires_at"),
            fetched_at=data.get("fetched_at") or 0,
            source_key=data.get("source_key") or "",
        )


def parse_token_value(raw: str | None, source_key: str, now: float) -> TokenRecord | None:
    """Turn a raw storage value into a TokenRecord, or None if not ready yet.

    oidc-client stores a JSON user object; the key may exist before
    ``access_token`` is written, so a missing field or broken JSON means
    "keep waiting". A non-JSON value that looks like a JWT is taken as the
    access token itself.
    """
    if not raw:
        return None

    try:
        parsed = json.loads(raw)
    except ValueError:
        if raw.startswith(RAW_JWT_PREFIX):
            return TokenRecord(
                access_token=raw,
                token_type="Bearer",
                expires_at=None,
                fetched_at=int(now),
                source_key=source_key,
            )
        return None

    if not isinstance(parsed, dict) or not parsed.get("access_token"):
        return None

    return TokenRecord(
        access_token=parsed["access_token"],
        token_type=parsed.get("token_type") or "Bearer",
        expires_at=parsed.get("expires_at") or None,
        fetched_at=int(now),
        source_key=source_key,
    )


def attempt_budget(timeout: float, interval: float) -> int:
    return max(1, math.ceil(timeout / interval))


def poll_for_token(
    read_raw: Callable[[], str | None],
    source_key: str,
    timeout: float = DEFAULT_TIMEOUT,
    interval: float = POLL_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.time,
    on_state: Callable[[PollState, int], None] | None = None,
) -> TokenRecord:
    """Poll ``read_raw`` until it yields a token.

    Raises TokenAcquisitionTimeout once ``ceil(timeout / interval)``
    attempts have come up empty.
    """

    def report(state, attempt):
        if on_state is not None:
            on_state(state, attempt)

    attempts = attempt_budget(timeout, interval)
    for attempt in range(1, attempts + 1):
        report(PollState.POLLING, attempt)
        try:
            raw = read_raw()
        except TransientReadError:
            # Redirects destroy the page's execution context mid-read.
            report(PollState.TRANSIENT_ERROR, attempt)
            sleep(TRANSIENT_BACKOFF)
            raw = None

        record = parse_token_value(raw, source_key, clock())
        if record is not None:
            report(PollState.FOUND, attempt)
            return record

        if attempt < attempts:
            sleep(interval)

    report(PollState.TIMED_OUT, attempts)
    raise TokenAcquisitionTimeout(source_key, attempts)


def save_token(path, record: TokenRecord):
    """Write a token record as JSON, replacing any previous file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(record.to_dict(), f, indent=2)


def load_token(path) -> TokenRecord:
    """Read a token record written by save_token."""
    with open(path, "r", encoding="utf-8") as f:
        return TokenRecord.from_dict(json.load(f))

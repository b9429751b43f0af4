"""Connection settings for the ProjectWise WSG API.

Settings come from a plain key/value mapping (normally ``os.environ``) so
they can be resolved without touching the process environment in tests.
"""

import logging
import os
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from projectwise_mcp.token import load_token

logger = logging.getLogger(__name__)

BASE_URL_VAR = "PW_WSG_BASE_URL"
REPOSITORY_ID_VAR = "PW_REPOSITORY_ID"
TOKEN_VAR = "PW_TOKEN"
APP_GUID_VAR = "PW_APP_GUID"
SESSION_UUID_VAR = "PW_SESSION_UUID"
TOKEN_FILE_VAR = "PW_TOKEN_FILE"

DEFAULT_APP_GUID = "projectwise-mcp-server"
DEFAULT_TOKEN_FILE = Path.home() / ".projectwise-mcp" / "token.json"

# Checked in this order; the first missing one is reported.
REQUIRED_VARS = (BASE_URL_VAR, REPOSITORY_ID_VAR, TOKEN_VAR)


class ConfigurationError(Exception):
    """A required setting is missing."""

    kind = "MissingField"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} environment variable is required")


@dataclass(frozen=True)
class Config:
    base_url: str
    repository_id: str
    token: str
    app_guid: str
    session_uuid: str


def _value(env: Mapping[str, str], key: str) -> str:
    return (env.get(key) or "").strip()


def resolve_config(env: Mapping[str, str]) -> Config:
    """Build a Config from ``env`` or raise ConfigurationError."""
    for key in REQUIRED_VARS:
        if not _value(env, key):
            raise ConfigurationError(key)

    return Config(
        base_url=_value(env, BASE_URL_VAR),
        repository_id=_value(env, REPOSITORY_ID_VAR),
        token=_value(env, TOKEN_VAR),
        app_guid=_value(env, APP_GUID_VAR) or DEFAULT_APP_GUID,
        session_uuid=_value(env, SESSION_UUID_VAR) or str(uuid.uuid4()),
    )


def token_file_path(env: Mapping[str, str]) -> Path:
    configured = _value(env, TOKEN_FILE_VAR)
    return Path(configured).expanduser() if configured else DEFAULT_TOKEN_FILE


def load_config(environ: Mapping[str, str] | None = None, token_file: Path | None = None) -> Config:
    """Resolve settings from the environment.

    When PW_TOKEN is not set, the access token saved by
    ``scripts/fetch_token.py`` is used instead.
    """
    env = dict(os.environ if environ is None else environ)

    if not _value(env, TOKEN_VAR):
        path = token_file or token_file_path(env)
        if path.is_file():
            try:
                record = load_token(path)
            except (ValueError, KeyError, TypeError, OSError) as exc:
                # Left without a token, resolve_config reports PW_TOKEN missing.
                logger.warning("Ignoring unreadable token file %s: %r", path, exc)
                record = None
            if record is not None:
                if record.expires_at is not None and record.expires_at < time.time():
                    logger.warning("Token in %s expired at %s; requests will likely fail with 401", path, record.expires_at)
                logger.info("Using access token from %s", path)
                env[TOKEN_VAR] = record.access_token

    return resolve_config(env)

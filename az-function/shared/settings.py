import os
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Mapping, Optional

logger = logging.getLogger("settings")

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_FILE_PATH = "data.json"
DEFAULT_BRANCH = "main"
DEFAULT_USER_AGENT = "SaveDataFunction/0.1"

KEYVAULT_PREFIX = "@Microsoft.KeyVault("


class ConfigurationError(Exception):
    """Required settings are absent or malformed; no outbound call is made."""

    status_code = 500

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.missing = missing or []

    def to_payload(self) -> dict:
        payload = {"error": self.message}
        if self.missing:
            payload["missing"] = self.missing
        return payload


class SecretsUnresolvedError(ConfigurationError):
    """App setting still holds a Key Vault reference the host failed to resolve."""

    status_code = 503

    def __init__(self, which: str):
        super().__init__("secrets_unresolved")
        self.which = which

    def to_payload(self) -> dict:
        return {"error": "secrets_unresolved", "which": self.which}


@dataclass(frozen=True)
class StoreSettings:
    token: str
    repo: str
    file_path: str = DEFAULT_FILE_PATH
    branch: str = DEFAULT_BRANCH
    api_url: str = DEFAULT_API_URL
    user_agent: str = DEFAULT_USER_AGENT
    timeout_s: Optional[float] = None


def _get(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name)
    value = value.strip() if value else value
    return value or None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> StoreSettings:
    """Build settings from environment variables.

    Raises ConfigurationError when GITHUB_TOKEN or GITHUB_REPO is missing and
    SecretsUnresolvedError when the token is an unresolved Key Vault reference.
    """
    env = os.environ if environ is None else environ
    token = _get(env, "GITHUB_TOKEN")
    repo = _get(env, "GITHUB_REPO")

    missing = [name for name, value in (("GITHUB_TOKEN", token), ("GITHUB_REPO", repo)) if not value]
    if missing:
        raise ConfigurationError("Missing GITHUB_TOKEN or GITHUB_REPO environment variables", missing)
    if token.startswith(KEYVAULT_PREFIX):
        logger.warning("secrets_unresolved", extra={"which": "GITHUB_TOKEN"})
        raise SecretsUnresolvedError("GITHUB_TOKEN")

    timeout_s = None
    raw_timeout = _get(env, "HTTP_TIMEOUT_SECONDS")
    if raw_timeout is not None:
        try:
            timeout_s = float(raw_timeout)
        except ValueError:
            raise ConfigurationError("HTTP_TIMEOUT_SECONDS must be a number") from None
        if timeout_s <= 0:
            raise ConfigurationError("HTTP_TIMEOUT_SECONDS must be positive")

    return StoreSettings(
        token=token,
        repo=repo,
        file_path=_get(env, "GITHUB_FILE_PATH") or DEFAULT_FILE_PATH,
        branch=_get(env, "BRANCH") or DEFAULT_BRANCH,
        api_url=(_get(env, "GITHUB_API_URL") or DEFAULT_API_URL).rstrip("/"),
        user_agent=_get(env, "USER_AGENT") or DEFAULT_USER_AGENT,
        timeout_s=timeout_s,
    )


@lru_cache(maxsize=1)
def get_settings() -> StoreSettings:
    # Failed loads raise and are not cached, so a fixed app setting is picked up on the next call.
    return load_settings()

import json
import base64
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

import httpx

from .settings import StoreSettings

logger = logging.getLogger("github_contents")

ACCEPT_RAW = "application/vnd.github.v3.raw"
ACCEPT_JSON = "application/vnd.github.v3+json"


@dataclass(frozen=True)
class ParsedDocument:
    value: Any


@dataclass(frozen=True)
class RawText:
    text: str


FetchedDocument = Union[ParsedDocument, RawText]


class UpstreamRejection(Exception):
    """The contents API answered with a non-success status."""

    def __init__(self, status_code: int, error: str, reason: str = "", detail: Any = None):
        super().__init__(f"{error} ({status_code})")
        self.status_code = status_code
        self.error = error
        self.reason = reason
        self.detail = detail

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error, "status": self.reason}
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def loads_strict(text: Any) -> Any:
    """json.loads that rejects NaN, Infinity and -Infinity."""
    return json.loads(text, parse_constant=_reject_constant)


def parse_document(text: str) -> FetchedDocument:
    # Non-JSON content is still a successful read.
    try:
        return ParsedDocument(loads_strict(text))
    except ValueError:
        return RawText(text)


def encode_document(document: Any) -> str:
    content = json.dumps(document, indent=2, ensure_ascii=False, allow_nan=False)
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def build_put_payload(document: Any, message: str, branch: str, sha: Optional[str]) -> Dict[str, Any]:
    payload = {
        "message": message,
        "content": encode_document(document),
        "branch": branch,
    }
    if sha is not None:
        payload["sha"] = sha
    return payload


def _json_or_text(resp: httpx.Response) -> Any:
    try:
        return loads_strict(resp.text)
    except ValueError:
        return resp.text


class GitHubContentsClient:
    """Reads and writes a single file through the GitHub contents API.

    Calls are synchronous; callers on the event loop run them through
    asyncio.to_thread. Nothing is retried.
    """

    def __init__(self, settings: StoreSettings, transport: Optional[httpx.BaseTransport] = None, trace_id: str = ""):
        self.settings = settings
        self.transport = transport
        self.trace_id = trace_id

    @property
    def contents_url(self) -> str:
        path = quote(self.settings.file_path, safe="")
        return f"{self.settings.api_url}/repos/{self.settings.repo}/contents/{path}"

    def _headers(self, accept: str) -> Dict[str, str]:
        return {
            "Authorization": f"token {self.settings.token}",
            "User-Agent": self.settings.user_agent,
            "Accept": accept,
        }

    def _request(self, operation: str, method: str, **kwargs: Any) -> httpx.Response:
        started = time.perf_counter()
        with httpx.Client(timeout=self.settings.timeout_s, transport=self.transport, follow_redirects=True) as client:
            resp = client.request(method, self.contents_url, **kwargs)
        elapsed_ms = (time.perf_counter() - started) * 1000
        telemetry = {
            "event": "github_contents_call",
            "operation": operation,
            "repo": self.settings.repo,
            "path": self.settings.file_path,
            "status": resp.status_code,
            "elapsed_ms": round(elapsed_ms, 2),
            "trace_id": self.trace_id,
        }
        logger.info("github_contents: " + json.dumps(telemetry))
        return resp

    def fetch_raw(self) -> FetchedDocument:
        resp = self._request(
            "read", "GET",
            headers=self._headers(ACCEPT_RAW),
            params={"ref": self.settings.branch},
        )
        if not resp.is_success:
            raise UpstreamRejection(resp.status_code, "GitHub GET failed", resp.reason_phrase)
        return parse_document(resp.text)

    def fetch_metadata(self) -> Optional[str]:
        """Return the current revision sha, or None when the file does not exist yet."""
        resp = self._request(
            "metadata", "GET",
            headers=self._headers(ACCEPT_JSON),
            params={"ref": self.settings.branch},
        )
        if resp.status_code == 404:
            logger.info("file_not_found", extra={"path": self.settings.file_path, "trace_id": self.trace_id})
            return None
        if not resp.is_success:
            raise UpstreamRejection(resp.status_code, "Could not fetch file metadata", resp.reason_phrase)
        meta = resp.json()
        sha = meta.get("sha") if isinstance(meta, dict) else None
        return sha if isinstance(sha, str) else None

    def put_document(self, document: Any, message: str, sha: Optional[str]) -> Any:
        payload = build_put_payload(document, message, self.settings.branch, sha)
        headers = self._headers(ACCEPT_JSON)
        headers["Content-Type"] = "application/json"
        resp = self._request("write", "PUT", headers=headers, content=json.dumps(payload).encode("utf-8"))
        result = _json_or_text(resp)
        if not resp.is_success:
            raise UpstreamRejection(resp.status_code, "GitHub PUT failed", resp.reason_phrase, detail=result)
        return result

import json
import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

import azure.functions as func
import httpx

from .github_contents import GitHubContentsClient, ParsedDocument, UpstreamRejection, loads_strict
from .settings import StoreSettings

logger = logging.getLogger("store_proxy")

DEFAULT_COMMIT_MESSAGE = "Update data.json via app"
SAVED_MESSAGE = "Data saved to GitHub"
ALLOWED_METHODS = "GET,POST"


def json_response(status_code: int, payload: Any, headers: Optional[Dict[str, str]] = None) -> func.HttpResponse:
    body = json.dumps(payload, ensure_ascii=False, allow_nan=False).encode("utf-8")
    return func.HttpResponse(status_code=status_code, mimetype="application/json", body=body, headers=headers)


async def _read(client: GitHubContentsClient, hdrs: Dict[str, str]) -> func.HttpResponse:
    fetched = await asyncio.to_thread(client.fetch_raw)
    if isinstance(fetched, ParsedDocument):
        return json_response(200, fetched.value, hdrs)
    return json_response(200, {"raw": fetched.text}, hdrs)


async def _write(req: func.HttpRequest, client: GitHubContentsClient, hdrs: Dict[str, str]) -> func.HttpResponse:
    try:
        document = loads_strict(req.get_body() or b"")
    except ValueError:
        return json_response(400, {"error": "invalid_json"}, hdrs)

    # The write must not be attempted until the current sha is known.
    sha = await asyncio.to_thread(client.fetch_metadata)
    message = req.params.get("message") or DEFAULT_COMMIT_MESSAGE
    result = await asyncio.to_thread(client.put_document, document, message, sha)
    logger.info("document_saved", extra={"new_file": sha is None, "trace_id": client.trace_id})
    return json_response(200, {"message": SAVED_MESSAGE, "result": result}, hdrs)


async def handle_store_request(
    req: func.HttpRequest,
    settings: StoreSettings,
    transport: Optional[httpx.BaseTransport] = None,
) -> func.HttpResponse:
    """Serve GET (read the stored document) and POST (replace it) against the GitHub file."""
    trace_id = str(uuid.uuid4())
    hdrs = {"X-Trace-Id": trace_id}
    method = (req.method or "").upper()

    if method not in ("GET", "POST"):
        hdrs["Allow"] = ALLOWED_METHODS
        return json_response(405, {"error": "Method not allowed"}, hdrs)

    client = GitHubContentsClient(settings, transport=transport, trace_id=trace_id)
    try:
        if method == "GET":
            return await _read(client, hdrs)
        return await _write(req, client, hdrs)
    except UpstreamRejection as e:
        logger.warning(
            "upstream_rejected",
            extra={"method": method, "status": e.status_code, "error": e.error, "trace_id": trace_id},
        )
        return json_response(e.status_code, e.to_payload(), hdrs)
    except httpx.HTTPError as e:
        logger.exception("HTTP error contacting GitHub", extra={"method": method, "trace_id": trace_id})
        return json_response(500, {"error": "Server error", "detail": str(e), "trace_id": trace_id}, hdrs)
    except Exception as e:
        logger.exception("Unexpected error handling store request", extra={"method": method, "trace_id": trace_id})
        return json_response(500, {"error": "Server error", "detail": str(e), "trace_id": trace_id}, hdrs)

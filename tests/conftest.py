"""Pytest configuration and fixtures for the SaveData function app."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Callable, List

import httpx
import pytest


def pytest_sessionstart() -> None:
    """Add the function app root to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    app_root = project_root / "az-function"
    if str(app_root) not in sys.path:
        sys.path.insert(0, str(app_root))


class RecordingTransport(httpx.MockTransport):
    """Mock GitHub transport that keeps every outbound request."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    def put_bodies(self) -> List[dict]:
        return [json.loads(r.content) for r in self.requests if r.method == "PUT"]


@pytest.fixture
def settings():
    from shared.settings import StoreSettings

    return StoreSettings(token="ghp_test", repo="octo/house")


@pytest.fixture
def recording_transport():
    return RecordingTransport


@pytest.fixture
def make_request():
    import azure.functions as func

    def _make(method: str = "GET", body: bytes = b"", params: dict = None) -> func.HttpRequest:
        return func.HttpRequest(
            method=method,
            url="https://example.azurewebsites.net/api/savedata",
            headers={"Content-Type": "application/json"},
            params=params or {},
            body=body,
        )

    return _make

"""
Shared test fixtures.

FakeService stands in for the verification service: it records every request
sent through httpx.MockTransport and answers from per-type reply queues, so
no test touches the network.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Union

import httpx
import pytest
import pytest_asyncio

from oslc_verify.config import ClientConfig
from oslc_verify.transport import ServiceClient

Reply = Union[tuple, type]


class FakeService:
    """Scripted verification service keyed on the ``type`` header."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._replies: Dict[str, List[Reply]] = {}

    def reply(self, kind: str, text: str, status: Optional[str] = "OK", http_status: int = 200) -> None:
        self._replies.setdefault(kind, []).append((text, status, http_status))

    def fail(self, kind: str, exc_type: type = httpx.ConnectError) -> None:
        self._replies.setdefault(kind, []).append(exc_type)

    def of_type(self, kind: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.headers.get("type") == kind]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        kind = request.headers.get("type", "")
        queue = self._replies.get(kind)
        if not queue:
            return httpx.Response(200, text="Request unrecognised.", headers={"Status": "NOK"})
        # The last scripted reply repeats once the queue is drained.
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, type):
            raise item("Connection refused", request=request)
        text, status, http_status = item
        headers = {"Status": status} if status else {}
        return httpx.Response(http_status, text=text, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class LineFeeder:
    """Stands in for input(): returns scripted lines, then raises EOFError."""

    def __init__(self, lines: List[str]) -> None:
        self._lines = list(lines)
        self.consumed = 0

    def __call__(self) -> str:
        if not self._lines:
            raise EOFError
        self.consumed += 1
        return self._lines.pop(0)


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def artifact(tmp_path: Path) -> Path:
    path = tmp_path / "pf_mon_mac.cpp"
    path.write_text("int main() { return 0; }\n", encoding="utf-8")
    return path


@pytest.fixture
def config(tmp_path: Path, artifact: Path) -> ClientConfig:
    return ClientConfig(
        base_url="http://verifier.test:6000",
        artifact_path=str(artifact),
        plan_path=str(tmp_path / "scratch" / "temp.xml"),
        timeout_s=5.0,
    )


@pytest_asyncio.fixture
async def client(config: ClientConfig, service: FakeService):
    async with ServiceClient(config, transport=service.transport) as c:
        yield c

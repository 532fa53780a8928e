"""
HTTP transport for the verification service.

Every operation is a POST to the service root. The ``type`` header selects
the operation (upload, verify, monitor, query, workspace); the payload is a
multipart ``file`` part or a handful of extra headers. Replies are plain
text, and identifiers are cut out of that text.

Uses httpx for async HTTP. Network faults surface as TransportError; replies
that lack the expected delimiter surface as MalformedResponse. Status codes
are not inspected: the service answers 200 even for rejected requests and
flags those with a ``Status: NOK`` header instead.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import httpx

from oslc_verify.config import PLAN_CONTENT_TYPE, ClientConfig
from oslc_verify.errors import FilesystemError, MalformedResponse, ServiceError, TransportError
from oslc_verify.models import (
    RequestKind,
    ServiceReply,
    SubmissionReceipt,
    UploadReceipt,
    WorkspaceReceipt,
)
from oslc_verify.plan import VerificationPlan, write_plan

LOG = logging.getLogger("oslc_verify.transport")

TOKEN_MARKER = "n."
# Token starts this many characters after the marker ("n. 17" -> "17").
TOKEN_OFFSET = 3
# Prefer "n. " so the "known." in "result already known.\nRequest report n. 17" is skipped.
_TOKEN_MARKER_RE = re.compile(r"n\. ")
_WORKSPACE_ID_RE = re.compile(r"^\s*id:(\S+)", re.MULTILINE)
_WORKSPACE_PATH_RE = re.compile(r'^\s*path:"([^"]*)"', re.MULTILINE)
ERROR_PREFIX = "Error:"


def _check_not_error(operation: str, text: str) -> None:
    # The service reports failures as "Error: <reason>", which also contains ":" and may contain "n. ".
    if text.lstrip().startswith(ERROR_PREFIX):
        raise ServiceError(operation, text)


def extract_artifact_ref(text: str) -> str:
    """Return the text after the first colon of an upload reply."""
    _check_not_error("upload", text)
    _, sep, tail = text.partition(":")
    ref = tail.strip()
    if not sep or not ref:
        raise MalformedResponse("upload", text, ":")
    return ref


def extract_execution_token(text: str) -> str:
    """Return the execution token that follows the ``n.`` marker of a verify reply."""
    _check_not_error("verify", text)
    match = _TOKEN_MARKER_RE.search(text)
    start = match.start() if match else text.find(TOKEN_MARKER)
    if start < 0:
        raise MalformedResponse("verify", text, TOKEN_MARKER)
    token = text[start + TOKEN_OFFSET:].strip()
    if not token:
        raise MalformedResponse("verify", text, TOKEN_MARKER)
    return token


def extract_workspace(text: str) -> tuple[str, str | None]:
    """Return ``(workspace_id, path)`` from a workspace creation reply."""
    id_match = _WORKSPACE_ID_RE.search(text)
    if id_match is None:
        raise MalformedResponse("workspace", text, "id:")
    path_match = _WORKSPACE_PATH_RE.search(text)
    return id_match.group(1), path_match.group(1) if path_match else None


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FilesystemError(path, f"cannot read: {exc.strerror or exc}") from exc


class ServiceClient:
    """
    Async client for one verification service endpoint.

    Usage::

        async with ServiceClient(config) as client:
            receipt = await client.upload("model.cpp")
            sub = await client.submit(plan, "plan.xml")
            reply = await client.monitor(sub.executionToken)

    Args:
        config: Endpoint, timeout and content-type settings.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self.workspace: str | None = config.workspace
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_s,
            transport=transport,
        )

    async def __aenter__(self) -> "ServiceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self, kind: RequestKind, **extra: str) -> dict[str, str]:
        headers = {"type": kind.value}
        if self.workspace:
            headers["workspace"] = self.workspace
        headers.update(extra)
        return headers

    async def _post(
        self,
        kind: RequestKind,
        headers: dict[str, str],
        files: dict[str, tuple[str, bytes, str]] | None = None,
    ) -> ServiceReply:
        try:
            resp = await self._client.post("/", headers=headers, files=files)
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError) as exc:
            # UnicodeEncodeError: header values (tokens, workspace ids) must be ASCII.
            LOG.error("%s request to %s failed: %r", kind.value, self._config.base_url, exc)
            raise TransportError(kind.value, str(exc) or type(exc).__name__) from exc

        reply = ServiceReply(
            kind=kind,
            httpStatus=resp.status_code,
            serviceStatus=resp.headers.get("status"),
            text=resp.text,
        )
        if reply.rejected:
            LOG.warning("Service rejected %s request: %s", kind.value, reply.text.strip())
        else:
            LOG.debug("%s reply (HTTP %d): %s", kind.value, reply.httpStatus, reply.text)
        return reply

    async def upload(self, artifact_path: str | Path) -> UploadReceipt:
        """
        Upload a source artifact and return the server-assigned reference.

        Raises:
            FilesystemError: The artifact could not be read.
            TransportError: The request did not complete.
            MalformedResponse: The reply has no ``:`` delimiter.
            ServiceError: The service answered "Error: ...".
        """
        path = Path(artifact_path)
        data = _read_bytes(path)
        LOG.info("Uploading %s (%d bytes)", path.name, len(data))
        reply = await self._post(
            RequestKind.UPLOAD,
            self._headers(RequestKind.UPLOAD),
            files={"file": (path.name, data, self._config.artifact_content_type)},
        )
        receipt = UploadReceipt(artifactRef=extract_artifact_ref(reply.text), reply=reply)
        LOG.info("Artifact %s stored as %s", path.name, receipt.artifactRef)
        return receipt

    async def submit(self, plan: VerificationPlan, plan_path: str | Path) -> SubmissionReceipt:
        """
        Write *plan* to *plan_path*, submit it, and return the execution token.

        Raises:
            FilesystemError: The plan could not be written or read back.
            TransportError: The request did not complete.
            MalformedResponse: The reply has no ``n.`` marker.
            ServiceError: The service answered "Error: ...".
        """
        path = write_plan(plan, plan_path)
        data = _read_bytes(path)
        LOG.info("Submitting plan for tool %s with inputs %s", plan.tool_name, plan.input_parameters)
        reply = await self._post(
            RequestKind.VERIFY,
            self._headers(RequestKind.VERIFY),
            files={"file": (path.name, data, PLAN_CONTENT_TYPE)},
        )
        receipt = SubmissionReceipt(executionToken=extract_execution_token(reply.text), reply=reply)
        LOG.info("Verification started, execution token %s", receipt.executionToken)
        return receipt

    async def monitor(self, token: str) -> ServiceReply:
        """Ask for the status of job *token*; the reply text is returned verbatim."""
        LOG.debug("Monitoring execution %s", token)
        return await self._post(RequestKind.MONITOR, self._headers(RequestKind.MONITOR, id=token))

    async def query(self, command: str) -> ServiceReply:
        """Send a free-form ``cmd`` query to the service."""
        return await self._post(RequestKind.QUERY, self._headers(RequestKind.QUERY, cmd=command))

    async def availability(self) -> ServiceReply:
        return await self.query("availability")

    async def kill(self, token: str) -> ServiceReply:
        return await self.query(f"kill {token}")

    async def create_workspace(self, tool: str) -> WorkspaceReceipt:
        """
        Create a server workspace for *tool* and send its id on later requests.

        Raises:
            TransportError: The request did not complete.
            MalformedResponse: The reply carries no ``id:`` line.
        """
        reply = await self._post(
            RequestKind.WORKSPACE,
            # A new workspace never inherits the current one.
            {"type": RequestKind.WORKSPACE.value, "cmd": "new", "tool": tool},
        )
        workspace_id, path = extract_workspace(reply.text)
        self.workspace = workspace_id
        LOG.info("Created workspace %s for %s", workspace_id, tool)
        return WorkspaceReceipt(workspaceId=workspace_id, path=path, reply=reply)

    async def destroy_workspace(self) -> ServiceReply:
        if not self.workspace:
            raise ValueError("No workspace to destroy")
        reply = await self._post(
            RequestKind.WORKSPACE, self._headers(RequestKind.WORKSPACE, cmd="destroy")
        )
        LOG.info("Destroyed workspace %s", self.workspace)
        self.workspace = None
        return reply

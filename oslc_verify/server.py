"""
MCP tools over the verification service.

Each tool opens its own ServiceClient, performs one request and returns the
pydantic receipt or reply as JSON. Client failures propagate to FastMCP,
which reports them to the caller as tool errors.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional

import httpx
from pydantic import BaseModel

from oslc_verify.config import ClientConfig
from oslc_verify.errors import VerifyClientError
from oslc_verify.plan import VerificationPlan
from oslc_verify.transport import ServiceClient

try:
    from mcp.server.fastmcp import FastMCP
except ImportError as exc:  # pragma: no cover - dependency is optional at import time
    FastMCP = None
    _IMPORT_ERROR = exc
else:
    _IMPORT_ERROR = None

LOG = logging.getLogger("oslc_verify.server")

Operation = Callable[[ServiceClient], Awaitable[BaseModel]]


def _new_server() -> "FastMCP":
    if FastMCP is None:
        raise SystemExit(
            "oslc-verify-mcp needs the optional mcp dependency: "
            "pip install 'oslc-verify[server]'"
        ) from _IMPORT_ERROR
    return FastMCP("oslc-verify")


def _require_text(argument: str, value: Optional[str]) -> str:
    """Return *value* stripped, or raise ValueError naming the blank tool argument."""
    text = (value or "").strip()
    if not text:
        raise ValueError(f"{argument} must not be blank")
    return text


async def _call(
    config: ClientConfig,
    tool: str,
    operation: Operation,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict:
    async with ServiceClient(config, transport=transport) as client:
        try:
            result = await operation(client)
        except VerifyClientError as exc:
            LOG.warning("%s tool failed: %s", tool, exc)
            raise
    return result.model_dump(mode="json")


def build_server(
    config: Optional[ClientConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> "FastMCP":
    server = _new_server()
    config = config or ClientConfig.from_env()

    @server.tool(description="Upload a source file to the verification service and return its artifact id.")
    async def upload_artifact(artifactPath: str) -> dict:
        path = _require_text("artifactPath", artifactPath)
        return await _call(config, "upload_artifact", lambda c: c.upload(path), transport)

    @server.tool(
        description="Submit an automation plan verifying an uploaded artifact and return the execution token."
    )
    async def submit_plan(
        artifactRef: str,
        tool: Optional[str] = None,
        parameters: Optional[List[str]] = None,
    ) -> dict:
        plan = VerificationPlan(
            tool_name=tool or config.tool,
            parameter_definitions=list(parameters if parameters is not None else config.parameters),
            input_parameters=[_require_text("artifactRef", artifactRef)],
        )
        return await _call(
            config, "submit_plan", lambda c: c.submit(plan, config.plan_path), transport
        )

    @server.tool(description="Return the raw status report of a running or finished verification.")
    async def monitor_job(executionToken: str) -> dict:
        token = _require_text("executionToken", executionToken)
        return await _call(config, "monitor_job", lambda c: c.monitor(token), transport)

    @server.tool(description="Send a query command (e.g. 'availability' or 'kill <token>') to the service.")
    async def query_service(command: str) -> dict:
        cmd = _require_text("command", command)
        return await _call(config, "query_service", lambda c: c.query(cmd), transport)

    return server


def main() -> None:
    config = ClientConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    LOG.info("Serving MCP tools for %s", config.base_url)
    build_server(config).run()


if __name__ == "__main__":
    main()

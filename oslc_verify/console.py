"""
Console driver for the verification workflow.

The operator presses enter to move from upload to verify to the first status
poll, and again for every further poll. A line containing the stop marker
ends the session. Under the halt policy a failed stage is retried on the
next enter instead of advancing.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from typing import Callable, Optional

import httpx

from oslc_verify.config import ClientConfig, FailurePolicy
from oslc_verify.errors import VerifyClientError
from oslc_verify.transport import ServiceClient
from oslc_verify.workflow import VerificationSession, VerificationWorkflow

LOG = logging.getLogger("oslc_verify.console")

LineReader = Callable[[], str]
Writer = Callable[[str], None]


async def _read_line(read_line: LineReader) -> Optional[str]:
    try:
        return await asyncio.to_thread(read_line)
    except EOFError:
        return None


def _wants_stop(line: Optional[str], stop_marker: str) -> bool:
    return line is None or stop_marker in line


async def _until_advanced(
    workflow: VerificationWorkflow,
    action,
    label: str,
    read_line: LineReader,
    write: Writer,
    stop_marker: str,
) -> bool:
    """Run *action* until the workflow leaves its current stage. False if the operator quits."""
    start = workflow.stage
    while True:
        await action()
        if workflow.stage != start:
            return True
        write(f"{label} failed: {workflow.session.errors[-1]}")
        write(f"Press enter to retry, or type {stop_marker!r} to quit.")
        if _wants_stop(await _read_line(read_line), stop_marker):
            return False


async def run_console(
    workflow: VerificationWorkflow,
    read_line: LineReader = input,
    write: Writer = print,
    stop_marker: str = "q",
) -> VerificationSession:
    """Drive *workflow* from operator input and return the final session."""
    session = workflow.session

    write("Uploading artifact to the verification service...")
    if not await _until_advanced(workflow, workflow.upload, "Upload", read_line, write, stop_marker):
        workflow.stop()
        return session
    write(f"Artifact stored under id {session.artifact_ref!r}. Press enter to verify.")
    if _wants_stop(await _read_line(read_line), stop_marker):
        workflow.stop()
        return session

    write(f"Verifying artifact {session.artifact_ref!r}...")
    if not await _until_advanced(workflow, workflow.verify, "Verify", read_line, write, stop_marker):
        workflow.stop()
        return session
    write(f"Execution {session.execution_token!r} started. Press enter to poll its status.")
    if _wants_stop(await _read_line(read_line), stop_marker):
        workflow.stop()
        return session

    while True:
        write(f"Getting result of verification n. {session.execution_token}...")
        status = await workflow.poll()
        if status is None:
            write(f"Poll failed: {session.errors[-1]}")
        else:
            write(status)
        if _wants_stop(await _read_line(read_line), stop_marker):
            break
    workflow.stop()
    return session


def setup_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oslc-verify",
        description="Upload a source artifact to an OSLC verification service and follow the job.",
    )
    parser.add_argument("artifact", nargs="?", help="Source file to verify (default: $OSLC_VERIFY_ARTIFACT)")
    parser.add_argument("--base-url", help="Service base address")
    parser.add_argument("--plan-path", help="Where to write the generated automation plan")
    parser.add_argument("--timeout", type=float, help="Per-request timeout in seconds")
    parser.add_argument("--tool", help="Verification tool named in the plan")
    parser.add_argument(
        "--parameter",
        action="append",
        dest="parameters",
        help="Plan parameter definition (repeatable, replaces the default)",
    )
    parser.add_argument("--workspace", help="Existing workspace id to send with every request")
    parser.add_argument(
        "--new-workspace",
        action="store_true",
        help="Create a workspace for the tool first and destroy it afterwards",
    )
    parser.add_argument(
        "--failure-policy",
        choices=[p.value for p in FailurePolicy],
        help="halt: retry a failed stage; lenient: advance anyway",
    )
    parser.add_argument("--stop-marker", help="Input that ends status polling (default: q)")
    parser.add_argument(
        "--availability", action="store_true", help="Print the service's tool availability and exit"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def config_from_args(args: argparse.Namespace, base: Optional[ClientConfig] = None) -> ClientConfig:
    """Overlay the options the operator gave on top of *base* (default: env config)."""
    base = base or ClientConfig.from_env()
    overrides = {
        "artifact_path": args.artifact,
        "base_url": args.base_url,
        "plan_path": args.plan_path,
        "timeout_s": args.timeout,
        "tool": args.tool,
        "parameters": args.parameters,
        "workspace": args.workspace,
        "failure_policy": args.failure_policy,
        "stop_marker": args.stop_marker,
    }
    config = dataclasses.replace(base, **{k: v for k, v in overrides.items() if v is not None})
    if args.verbose:
        config.log_level = "DEBUG"
    return config


async def _run(
    config: ClientConfig,
    args: argparse.Namespace,
    read_line: LineReader = input,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """Run one CLI invocation; 0 once the job answered at least one poll, 1 otherwise."""
    async with ServiceClient(config, transport=transport) as client:
        if args.availability:
            try:
                reply = await client.availability()
            except VerifyClientError as exc:
                print(f"Error: {exc}", file=sys.stderr)
                return 1
            print(reply.text)
            return 0

        if args.new_workspace:
            try:
                ws = await client.create_workspace(config.tool)
            except VerifyClientError as exc:
                print(f"Error: {exc}", file=sys.stderr)
                return 1
            print(f"Using workspace {ws.workspaceId}")

        workflow = VerificationWorkflow(client, config)
        try:
            session = await run_console(workflow, read_line, stop_marker=config.stop_marker)
        finally:
            if args.new_workspace and client.workspace:
                try:
                    await client.destroy_workspace()
                except VerifyClientError as exc:
                    LOG.warning("Could not destroy workspace %s: %s", client.workspace, exc)
    # Errors retried away under the halt policy do not count against the run.
    return 0 if session.poll_count else 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = setup_argument_parser()
    args = parser.parse_args(argv)
    try:
        config = config_from_args(args)
    except ValueError as exc:
        parser.error(str(exc))

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    try:
        return asyncio.run(_run(config, args))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())

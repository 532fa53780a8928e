"""
Verification workflow: upload, submit, then poll until stopped.

The workflow owns a VerificationSession and moves it through

    idle -> uploaded -> verifying -> polling (repeatable) -> done

Each stage awaits its request to completion before returning, so the next
stage always sees the state the previous one wrote. A session field has one
writer (the stage that produces it) and one reader (the stage after it).

Stage failures (network, unparseable reply, scratch file) are logged and
recorded on the session and never propagate. Whether the stage still
advances is decided by the configured FailurePolicy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from oslc_verify.config import ClientConfig, FailurePolicy
from oslc_verify.errors import VerifyClientError, WorkflowError
from oslc_verify.plan import VerificationPlan
from oslc_verify.transport import ServiceClient

LOG = logging.getLogger("oslc_verify.workflow")


class WorkflowStage(StrEnum):
    IDLE = "idle"
    UPLOADED = "uploaded"
    VERIFYING = "verifying"
    POLLING = "polling"
    DONE = "done"


@dataclass
class VerificationSession:
    """State carried between stages of one verification job."""

    stage: WorkflowStage = WorkflowStage.IDLE
    artifact_ref: str | None = None
    execution_token: str | None = None
    last_status: str | None = None
    poll_count: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return self.stage == WorkflowStage.DONE


class VerificationWorkflow:
    """
    Sequences the upload, verify and monitor requests for one job.

    Usage::

        async with ServiceClient(config) as client:
            wf = VerificationWorkflow(client, config)
            await wf.upload()
            await wf.verify()
            print(await wf.poll())
            wf.stop()
    """

    def __init__(
        self,
        client: ServiceClient,
        config: ClientConfig,
        session: VerificationSession | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self.session = session or VerificationSession()

    @property
    def stage(self) -> WorkflowStage:
        return self.session.stage

    def _require(self, action: str, *allowed: WorkflowStage) -> None:
        if self.session.stage not in allowed:
            raise WorkflowError(
                f"Cannot {action} while {self.session.stage.value}; "
                f"expected {' or '.join(s.value for s in allowed)}"
            )

    def _record_failure(self, action: str, exc: VerifyClientError) -> None:
        LOG.error("%s failed: %s", action, exc)
        self.session.errors.append(f"{action}: {exc}")

    @property
    def _lenient(self) -> bool:
        return self._config.failure_policy == FailurePolicy.LENIENT

    def build_plan(self) -> VerificationPlan:
        """Plan for the configured tool with the uploaded artifact as sole input."""
        return VerificationPlan(
            tool_name=self._config.tool,
            parameter_definitions=list(self._config.parameters),
            input_parameters=[self.session.artifact_ref or ""],
        )

    async def upload(self) -> str | None:
        """Upload the configured artifact. Returns the artifact reference, or None on failure."""
        self._require("upload", WorkflowStage.IDLE)
        try:
            receipt = await self._client.upload(self._config.artifact_path)
        except VerifyClientError as exc:
            self._record_failure("upload", exc)
            if self._lenient:
                self.session.artifact_ref = ""
                self.session.stage = WorkflowStage.UPLOADED
            return None
        self.session.artifact_ref = receipt.artifactRef
        self.session.stage = WorkflowStage.UPLOADED
        return receipt.artifactRef

    async def verify(self) -> str | None:
        """Submit a plan for the uploaded artifact. Returns the execution token, or None on failure."""
        self._require("verify", WorkflowStage.UPLOADED)
        plan = self.build_plan()
        try:
            receipt = await self._client.submit(plan, self._config.plan_path)
        except VerifyClientError as exc:
            self._record_failure("verify", exc)
            if self._lenient:
                self.session.execution_token = ""
                self.session.stage = WorkflowStage.VERIFYING
            return None
        self.session.execution_token = receipt.executionToken
        self.session.stage = WorkflowStage.VERIFYING
        return receipt.executionToken

    async def poll(self) -> str | None:
        """Fetch the job status. Returns the reply text verbatim, or None on failure."""
        self._require("poll", WorkflowStage.VERIFYING, WorkflowStage.POLLING)
        try:
            reply = await self._client.monitor(self.session.execution_token or "")
        except VerifyClientError as exc:
            self._record_failure("poll", exc)
            if self._lenient:
                self.session.stage = WorkflowStage.POLLING
            return None
        self.session.poll_count += 1
        self.session.last_status = reply.text
        self.session.stage = WorkflowStage.POLLING
        return reply.text

    def stop(self) -> None:
        """End the workflow; no further polls are allowed."""
        if self.session.stage != WorkflowStage.DONE:
            LOG.info("Workflow stopped after %d polls", self.session.poll_count)
        self.session.stage = WorkflowStage.DONE

"""
OSLC verification service client.

Uploads a source artifact, submits an OSLC automation plan naming a
verification tool, and polls the resulting job until the operator stops.
"""

from __future__ import annotations

from oslc_verify.config import ClientConfig, FailurePolicy
from oslc_verify.errors import (
    FilesystemError,
    MalformedResponse,
    PlanFormatError,
    ServiceError,
    TransportError,
    VerifyClientError,
    WorkflowError,
)
from oslc_verify.models import (
    RequestKind,
    ServiceReply,
    SubmissionReceipt,
    UploadReceipt,
    WorkspaceReceipt,
)
from oslc_verify.plan import VerificationPlan, parse_plan, render_plan, write_plan
from oslc_verify.transport import ServiceClient
from oslc_verify.workflow import VerificationSession, VerificationWorkflow, WorkflowStage

__all__ = [
    "ClientConfig",
    "FailurePolicy",
    "FilesystemError",
    "MalformedResponse",
    "PlanFormatError",
    "RequestKind",
    "ServiceClient",
    "ServiceError",
    "ServiceReply",
    "SubmissionReceipt",
    "TransportError",
    "UploadReceipt",
    "VerificationPlan",
    "VerificationSession",
    "VerificationWorkflow",
    "VerifyClientError",
    "WorkflowError",
    "WorkflowStage",
    "WorkspaceReceipt",
    "parse_plan",
    "render_plan",
    "write_plan",
]

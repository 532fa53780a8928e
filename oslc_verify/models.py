from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class RequestKind(str, Enum):
    UPLOAD = "upload"
    VERIFY = "verify"
    MONITOR = "monitor"
    QUERY = "query"
    WORKSPACE = "workspace"


class ServiceReply(BaseModel):
    kind: RequestKind
    httpStatus: int
    serviceStatus: Optional[str] = None
    text: str

    @property
    def rejected(self) -> bool:
        return self.serviceStatus == "NOK"


class UploadReceipt(BaseModel):
    artifactRef: str
    reply: ServiceReply


class SubmissionReceipt(BaseModel):
    executionToken: str
    reply: ServiceReply


class WorkspaceReceipt(BaseModel):
    workspaceId: str
    path: Optional[str] = None
    reply: ServiceReply

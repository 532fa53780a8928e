"""Client configuration.

Loads settings from environment variables with defaults matching the
service's stock deployment. CLI flags override individual fields.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import StrEnum

LOG = logging.getLogger("oslc_verify.config")

DEFAULT_BASE_URL = "http://127.0.0.1:6000"
DEFAULT_TOOL = "divine"
DEFAULT_PARAMETERS = ("compile -f -c -std=c++11",)
# The service only looks at the part body; this label is what it has always been sent.
PLAN_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class FailurePolicy(StrEnum):
    """What a workflow stage does when its request fails."""

    HALT = "halt"  # stay on the current stage, operator re-triggers it
    LENIENT = "lenient"  # advance with an empty value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        LOG.warning("Ignoring %s=%r: not a number, using %s", name, raw, default)
        return default


def _env_list(name: str, default: tuple[str, ...]) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [p.strip() for p in raw.split(";") if p.strip()]


@dataclass
class ClientConfig:
    """Everything the client needs to reach the service and build plans."""
    base_url: str = DEFAULT_BASE_URL
    artifact_path: str = "model.cpp"
    plan_path: str = "plan.xml"
    timeout_s: float = 30.0
    tool: str = DEFAULT_TOOL
    parameters: list[str] = field(default_factory=lambda: list(DEFAULT_PARAMETERS))
    workspace: str | None = None
    failure_policy: FailurePolicy = FailurePolicy.HALT
    stop_marker: str = "q"
    artifact_content_type: str = "text/x-c"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        # Accepts plain strings from env/CLI; raises ValueError for unknown policies.
        self.failure_policy = FailurePolicy(self.failure_policy)
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive, got {self.timeout_s}")
        if not self.stop_marker:
            raise ValueError("stop_marker must not be empty")

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            base_url=os.getenv("OSLC_VERIFY_BASE_URL", DEFAULT_BASE_URL),
            artifact_path=os.getenv("OSLC_VERIFY_ARTIFACT", "model.cpp"),
            plan_path=os.getenv("OSLC_VERIFY_PLAN_PATH", "plan.xml"),
            timeout_s=_env_float("OSLC_VERIFY_TIMEOUT", 30.0),
            tool=os.getenv("OSLC_VERIFY_TOOL", DEFAULT_TOOL),
            parameters=_env_list("OSLC_VERIFY_PARAMETERS", DEFAULT_PARAMETERS),
            workspace=os.getenv("OSLC_VERIFY_WORKSPACE") or None,
            failure_policy=os.getenv("OSLC_VERIFY_FAILURE_POLICY", "halt").lower(),
            stop_marker=os.getenv("OSLC_VERIFY_STOP_MARKER", "q"),
            log_level=os.getenv("OSLC_VERIFY_LOG_LEVEL", "INFO").upper(),
        )

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class DeploymentState(str, Enum):
    NOT_STARTED = "not_started"
    CHECKPOINT_CREATED = "checkpoint_created"
    VALIDATED = "validated"
    ACTIVATED = "activated"
    HEALTH_CHECKED = "health_checked"
    SUCCEEDED = "succeeded"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


class ValidationResult(BaseModel):
    valid: bool
    score: int
    critical: bool
    issues: list[str] = Field(default_factory=list)
    critical_issues: list[str] = Field(default_factory=list)


class HealthCheckResult(BaseModel):
    score: int
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    failure_rate: float | None = None


class RollbackResult(BaseModel):
    success: bool
    actions: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class DeploymentResult(BaseModel):
    success: bool
    workflow_id: str
    state: DeploymentState
    checkpoint_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    rollback: RollbackResult | None = None

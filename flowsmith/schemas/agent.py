from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class AgentRole(str, Enum):
    ORCHESTRATOR = "orchestrator"
    WORKFLOW_DESIGNER = "workflow_designer"
    DEPLOYMENT = "deployment"
    SYSTEM = "system"


class AgentState(BaseModel):
    """Continuity data kept per (session, agent role)."""

    model_config = ConfigDict(extra="ignore")

    last_interaction: str | None = None
    conversation_phase: str | None = None
    context_summary: str | None = None
    workflow_id: str | None = None
    workflow_status: str | None = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    def to_blob(self) -> dict:
        return self.model_dump(exclude_none=True)

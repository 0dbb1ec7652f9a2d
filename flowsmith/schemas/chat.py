from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, Field, field_validator

from flowsmith.schemas.agent import AgentRole


class Turn(BaseModel):
    role: str
    content: str
    agent_type: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    id: str | None = None


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=20000)
    user_id: str
    session_id: str | None = None
    agent_type: AgentRole | None = None

    @field_validator("message")
    @classmethod
    def validate_message(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message is required and must be a non-empty string")
        return value

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, value: str) -> str:
        """User ids come from the identity provider and must be UUIDs."""
        try:
            uuid.UUID(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(
                "Invalid user ID format - must be a valid UUID "
                "(e.g., 123e4567-e89b-12d3-a456-426614174000)"
            ) from exc
        return value


class WorkflowProgress(BaseModel):
    phase: str
    status: str
    workflow_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class ChatResponse(BaseModel):
    response: str
    agent_type: AgentRole
    message_id: str
    session_id: str
    processing_time: int
    tokens_used: int = 0
    conversation_context: dict[str, Any] = Field(default_factory=dict)
    next_agent: AgentRole | None = None
    workflow_progress: WorkflowProgress | None = None


class ChatErrorResponse(BaseModel):
    error: str
    response: str
    agent_type: AgentRole = AgentRole.SYSTEM
    message_id: str = "error"
    session_id: str | None = None
    processing_time: int = 0
    tokens_used: int = 0

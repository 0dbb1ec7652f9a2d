from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class WorkflowCandidate(BaseModel):
    """n8n workflow definition pulled out of a model response."""

    name: str
    nodes: list[dict[str, Any]]
    connections: dict[str, Any]
    settings: dict[str, Any] = Field(default_factory=dict)
    static_data: dict[str, Any] | None = None

    def to_engine_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "nodes": self.nodes,
            "connections": self.connections,
            "settings": self.settings,
        }
        if self.static_data is not None:
            payload["staticData"] = self.static_data
        return payload

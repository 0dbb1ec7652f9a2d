"""
Keyword router that picks the specialist agent for a user message.

Ordered rule list, first match wins. It is a pragmatic heuristic, not a
classifier: deployment wording beats design wording, which beats
troubleshooting wording; everything else goes to the orchestrator.
"""
from __future__ import annotations

from typing import Any, Sequence

from flowsmith.schemas.agent import AgentRole

ROUTING_RULES: tuple[tuple[AgentRole, tuple[str, ...]], ...] = (
    (AgentRole.DEPLOYMENT, ("deploy", "publish", "production", "live", "activate workflow")),
    (AgentRole.WORKFLOW_DESIGNER, ("workflow", "automation", "n8n", "trigger", "node", "api integration")),
    (AgentRole.SYSTEM, ("error", "debug", "not working", "failed", "issue")),
)

DEFAULT_ROLE = AgentRole.ORCHESTRATOR


def route(message: str, history: Sequence[Any] | None = None) -> AgentRole:
    """Return the agent role for ``message``. ``history`` is accepted but unused."""
    lowered = (message or "").lower()
    for role, keywords in ROUTING_RULES:
        if any(keyword in lowered for keyword in keywords):
            return role
    return DEFAULT_ROLE


def suggest_next_agent(
    role: AgentRole,
    response_text: str,
    workflow_id: str | None = None,
) -> AgentRole | None:
    lowered = (response_text or "").lower()
    if role == AgentRole.ORCHESTRATOR and ("workflow" in lowered or "automation" in lowered):
        return AgentRole.WORKFLOW_DESIGNER
    if role == AgentRole.WORKFLOW_DESIGNER and (workflow_id or "deploy" in lowered):
        return AgentRole.DEPLOYMENT
    return None

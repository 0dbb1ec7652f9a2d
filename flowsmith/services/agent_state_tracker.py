from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from flowsmith.schemas.agent import AgentRole, AgentState
from flowsmith.services.conversation_store import ConversationStore

logger = logging.getLogger(__name__)

DEPLOYED_STATUS = "deployed_and_active"
CREATED_STATUS = "created"
CONTEXT_SUMMARY_LENGTH = 200


class AgentStateTracker:
    """Typed view over the per-(session, agent) state blobs."""

    def __init__(self, store: ConversationStore) -> None:
        self.store = store

    def load(self, session_id: str, user_id: str, role: AgentRole) -> AgentState:
        blob = self.store.get_agent_state(session_id, user_id, role.value)
        try:
            return AgentState.model_validate(blob)
        except ValidationError as exc:
            logger.warning("Discarding malformed %s state for session %s: %s", role.value, session_id, exc)
            return AgentState()

    def save(self, session_id: str, user_id: str, role: AgentRole, state: AgentState) -> None:
        self.store.put_agent_state(session_id, user_id, role.value, state.to_blob())

    def pending_workflow_id(self, session_id: str, user_id: str) -> str | None:
        """Workflow waiting for deployment.

        A workflow the designer created since the last deployment wins; otherwise
        the deployment agent's own workflow is retried.
        """
        deployment = self.load(session_id, user_id, AgentRole.DEPLOYMENT)
        designer = self.load(session_id, user_id, AgentRole.WORKFLOW_DESIGNER)
        if (
            designer.workflow_id
            and designer.workflow_status == CREATED_STATUS
            and designer.workflow_id != deployment.workflow_id
        ):
            return designer.workflow_id
        return deployment.workflow_id or designer.workflow_id

    @staticmethod
    def merge(
        prior: AgentState,
        role: AgentRole,
        message: str,
        outcome: dict[str, Any] | None = None,
    ) -> AgentState:
        outcome = outcome or {}
        workflow_id = outcome.get("workflow_id") or prior.workflow_id
        workflow_status = outcome.get("status") or prior.workflow_status
        if outcome.get("status") == DEPLOYED_STATUS and outcome.get("success") is not True:
            # only a confirmed read-back may mark a workflow live
            workflow_status = prior.workflow_status
        return AgentState(
            last_interaction=datetime.now(timezone.utc).isoformat(),
            conversation_phase="coordination" if role == AgentRole.ORCHESTRATOR else "specialized_task",
            context_summary=(message or "")[:CONTEXT_SUMMARY_LENGTH],
            workflow_id=workflow_id,
            workflow_status=workflow_status,
        )

"""
Multi-agent chat pipeline.

user turn -> route -> prior state -> model call -> (design) create workflow
-> (deployment) safe deploy -> assistant turn -> state update.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any

from flowsmith.config import settings
from flowsmith.core.exceptions import ChatProcessingError, IntegrationError
from flowsmith.integrations.n8n import N8NClient
from flowsmith.prompts.agent_prompts import AGENT_STATE_CONTEXT, APOLOGY_MESSAGE
from flowsmith.schemas.agent import AgentRole
from flowsmith.schemas.chat import ChatResponse, Turn, WorkflowProgress
from flowsmith.schemas.deployment import DeploymentResult
from flowsmith.services import agent_router, workflow_extractor
from flowsmith.services.agent_state_tracker import AgentStateTracker
from flowsmith.services.conversation_store import ConversationStore
from flowsmith.services.deployment_orchestrator import DeploymentOrchestrator
from flowsmith.services.llm_invoker import LLMInvoker

logger = logging.getLogger(__name__)

PHASES = {
    AgentRole.WORKFLOW_DESIGNER: "design",
    AgentRole.DEPLOYMENT: "deployment",
}


def workflow_editor_url(workflow_id: str) -> str:
    return f"{settings.n8n_editor_base}/workflow/{workflow_id}"


def format_created_section(created: dict[str, Any], node_count: int) -> str:
    workflow_id = created.get("id")
    return (
        "\n\n**Workflow Created Successfully!**\n\n"
        f"- **Workflow ID**: {workflow_id}\n"
        f"- **Name**: {created.get('name')}\n"
        f"- **Nodes**: {node_count} nodes configured\n"
        "- **Status**: Created and ready for activation\n"
        f"- **View in n8n**: {workflow_editor_url(str(workflow_id))}\n\n"
        "Would you like me to activate this workflow and make it live?"
    )


def format_deployment_section(result: DeploymentResult) -> str:
    details = result.details
    if result.success:
        lines = [
            "\n\n**Deployment Successful!**\n",
            f"- **Workflow ID**: {result.workflow_id}",
            "- **Status**: Active and running",
            f"- **Health Score**: {details.get('health_score')}/100",
            f"- **Deployed**: {details.get('activation_time')}",
            f"- **View in n8n**: {workflow_editor_url(result.workflow_id)}",
        ]
        if details.get("webhook_urls"):
            lines.append("\n**Webhook URLs:**")
            lines.extend(f"- {url}" for url in details["webhook_urls"])
        if result.warnings:
            lines.append("\n**Warnings:**")
            lines.extend(f"- {warning}" for warning in result.warnings)
        if details.get("degraded"):
            lines.append("\nThe workflow is live but its health score is low; keep an eye on its executions.")
        else:
            lines.append("\nYour workflow is now live and ready to process requests!")
        lines.append(f"\n**Rollback Checkpoint**: {result.checkpoint_id}")
        return "\n".join(lines)

    lines = [
        "\n\n**Deployment Failed**\n",
        f"- **Workflow ID**: {result.workflow_id}",
        "- **Status**: Deployment failed",
    ]
    if result.errors:
        lines.append("\n**Error Details:**")
        lines.extend(f"- {error}" for error in result.errors)
    rollback_status = details.get("rollback_status")
    if rollback_status == "clean":
        lines.append(
            f"\n**Rollback**: Completed (checkpoint {result.checkpoint_id}). "
            "The previous version is restored, so it is safe to fix the issues above and deploy again."
        )
    elif rollback_status == "partial":
        lines.append(
            f"\n**Rollback**: Incomplete (checkpoint {result.checkpoint_id}). "
            "The workflow could not be fully restored; check it in n8n manually before retrying."
        )
    else:
        lines.append("\nNothing was changed. Please review the issues above and try deploying again.")
    return "\n".join(lines)


class ChatPipeline:
    def __init__(
        self,
        store: ConversationStore,
        invoker: LLMInvoker,
        n8n: N8NClient,
        orchestrator: DeploymentOrchestrator,
        history_window: int | None = None,
    ) -> None:
        self.store = store
        self.invoker = invoker
        self.n8n = n8n
        self.orchestrator = orchestrator
        self.tracker = AgentStateTracker(store)
        self.history_window = history_window or settings.history_window

    async def process(
        self,
        session_id: str,
        user_id: str,
        message: str,
        requested_agent: AgentRole | None = None,
    ) -> ChatResponse:
        start = time.monotonic()
        try:
            return await self._process(session_id, user_id, message, requested_agent, start)
        except Exception as exc:
            logger.exception("Error in chat pipeline for session %s", session_id)
            message_id = self._store_apology(session_id, user_id)
            raise ChatProcessingError(str(exc), APOLOGY_MESSAGE, session_id, message_id) from exc

    async def _process(
        self,
        session_id: str,
        user_id: str,
        message: str,
        requested_agent: AgentRole | None,
        start: float,
    ) -> ChatResponse:
        self.store.append_turn(session_id, user_id, "user", message)
        history = self.store.list_recent_turns(session_id, user_id, limit=self.history_window)

        role = requested_agent or agent_router.route(message, history)
        prior = self.tracker.load(session_id, user_id, role)
        logger.info("Routing message in session %s to %s agent", session_id, role.value)

        context = list(history)
        if not prior.is_empty():
            state_json = json.dumps(prior.to_blob())
            context.append(Turn(role="system", content=AGENT_STATE_CONTEXT.format(state_json=state_json)))

        result = await self.invoker.invoke(role, context, user_id)
        enhanced = result.text
        workflow_results: dict[str, Any] = {}

        if role == AgentRole.WORKFLOW_DESIGNER:
            workflow_results, section = await self._create_workflow(result.text)
            enhanced += section

        if role == AgentRole.DEPLOYMENT:
            pending = self.tracker.pending_workflow_id(session_id, user_id)
            if pending:
                deployment = await self.orchestrator.deploy(pending, session_id, user_id)
                workflow_results = {
                    **deployment.details,
                    "success": deployment.success,
                    "errors": deployment.errors,
                    "warnings": deployment.warnings,
                }
                if deployment.rollback is not None:
                    workflow_results["rollback"] = deployment.rollback.model_dump()
                enhanced += format_deployment_section(deployment)

        processing_ms = int((time.monotonic() - start) * 1000)
        message_id = self.store.append_turn(
            session_id,
            user_id,
            "assistant",
            enhanced,
            agent_type=role.value,
            metadata={
                "tokens_used": result.tokens_used,
                "processing_time": processing_ms,
                "model": result.model,
                "workflow_results": workflow_results,
            },
        )

        updated = self.tracker.merge(prior, role, message, workflow_results)
        self.tracker.save(session_id, user_id, role, updated)
        self.store.touch_session(session_id, user_id)

        next_agent = agent_router.suggest_next_agent(role, result.text, workflow_results.get("workflow_id"))
        return ChatResponse(
            response=enhanced,
            agent_type=role,
            message_id=message_id,
            session_id=session_id,
            processing_time=int((time.monotonic() - start) * 1000),
            tokens_used=result.tokens_used,
            conversation_context=updated.to_blob(),
            next_agent=next_agent,
            workflow_progress=WorkflowProgress(
                phase=PHASES.get(role, "coordination"),
                status=workflow_results.get("status") or "in_progress",
                workflow_id=workflow_results.get("workflow_id"),
                details=workflow_results,
            ),
        )

    async def _create_workflow(self, response_text: str) -> tuple[dict[str, Any], str]:
        candidate = workflow_extractor.extract(response_text)
        if candidate is None:
            return {}, ""

        logger.info("Valid workflow definition found, creating n8n workflow %r", candidate.name)
        try:
            created = await self.n8n.create_workflow(candidate.to_engine_payload())
        except IntegrationError as exc:
            logger.error("Failed to create workflow %r: %s", candidate.name, exc)
            return (
                {"status": "error", "error": str(exc)},
                f"\n\n**Workflow Creation Failed**: {exc}\n\nPlease check the workflow definition and try again.",
            )

        if not created.get("id"):
            logger.error("n8n returned no id for workflow %r", candidate.name)
            return (
                {"status": "error", "error": "n8n did not return a workflow id"},
                "\n\n**Workflow Creation Failed**: n8n did not return a workflow id.",
            )

        workflow_id = str(created["id"])
        return (
            {
                "workflow_id": workflow_id,
                "workflow_name": created.get("name") or candidate.name,
                "node_count": len(candidate.nodes),
                "status": "created",
                "n8n_url": workflow_editor_url(workflow_id),
            },
            format_created_section(created, len(candidate.nodes)),
        )

    def _store_apology(self, session_id: str, user_id: str) -> str | None:
        try:
            self.store.db.rollback()
            return self.store.append_turn(session_id, user_id, "assistant", APOLOGY_MESSAGE, agent_type="system")
        except Exception:
            logger.exception("Could not record apology turn for session %s", session_id)
            return None

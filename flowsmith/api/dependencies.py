"""Shared API dependencies."""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from flowsmith.database import get_db
from flowsmith.integrations.n8n import n8n_client
from flowsmith.services.chat_pipeline import ChatPipeline
from flowsmith.services.conversation_store import ConversationStore
from flowsmith.services.deployment_orchestrator import DeploymentOrchestrator
from flowsmith.services.llm_invoker import LLMInvoker
from flowsmith.services.secret_resolver import SecretResolver


@lru_cache
def get_deployment_orchestrator() -> DeploymentOrchestrator:
    """One orchestrator per process so checkpoints and workflow locks are shared."""
    return DeploymentOrchestrator(n8n_client)


def get_chat_pipeline(
    db: Session = Depends(get_db),
    orchestrator: DeploymentOrchestrator = Depends(get_deployment_orchestrator),
) -> ChatPipeline:
    return ChatPipeline(
        store=ConversationStore(db),
        invoker=LLMInvoker(SecretResolver(db)),
        n8n=n8n_client,
        orchestrator=orchestrator,
    )


__all__ = ["get_chat_pipeline", "get_deployment_orchestrator"]

"""
Agent-specific calls to the Anthropic Messages API.

Every failure mode resolves to an ``LLMResult`` with zero tokens, so the chat
pipeline only ever handles one shape.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

import anthropic

from flowsmith.config import settings
from flowsmith.core.anthropic_client import get_anthropic_client
from flowsmith.prompts.agent_prompts import (
    AUTH_ERROR_MESSAGE,
    DEPLOYMENT_PROMPT,
    GENERIC_ERROR_MESSAGE,
    MISSING_CREDENTIAL_MESSAGE,
    NETWORK_ERROR_MESSAGE,
    ORCHESTRATOR_PROMPT,
    QUOTA_MESSAGE,
    RATE_LIMIT_MESSAGE,
    SYSTEM_PROMPT,
    TIMEOUT_MESSAGE,
    WORKFLOW_DESIGNER_PROMPT,
)
from flowsmith.schemas.agent import AgentRole
from flowsmith.schemas.chat import Turn
from flowsmith.services.secret_resolver import SecretResolver

logger = logging.getLogger(__name__)

CREDENTIAL_SERVICE = "anthropic"


@dataclass(frozen=True)
class AgentProfile:
    role: AgentRole
    system_prompt: str
    temperature: float
    max_tokens: int


AGENT_PROFILES: dict[AgentRole, AgentProfile] = {
    AgentRole.ORCHESTRATOR: AgentProfile(AgentRole.ORCHESTRATOR, ORCHESTRATOR_PROMPT.strip(), 0.8, 4000),
    AgentRole.WORKFLOW_DESIGNER: AgentProfile(
        AgentRole.WORKFLOW_DESIGNER, WORKFLOW_DESIGNER_PROMPT.strip(), 0.6, 6000
    ),
    AgentRole.DEPLOYMENT: AgentProfile(AgentRole.DEPLOYMENT, DEPLOYMENT_PROMPT.strip(), 0.5, 4000),
    AgentRole.SYSTEM: AgentProfile(AgentRole.SYSTEM, SYSTEM_PROMPT.strip(), 0.3, 4000),
}


@dataclass
class LLMResult:
    text: str
    tokens_used: int = 0
    model: str | None = None


def get_agent_profile(role: AgentRole) -> AgentProfile:
    return AGENT_PROFILES.get(role, AGENT_PROFILES[AgentRole.SYSTEM])


def build_request(profile: AgentProfile, context_turns: Sequence[Turn]) -> tuple[str, list[dict[str, str]]]:
    """Return the system instruction and an alternating user/assistant message list."""
    system_parts = [profile.system_prompt]
    messages: list[dict[str, str]] = []
    for turn in context_turns:
        if not turn.content:
            continue
        if turn.role == "system":
            system_parts.append(turn.content)
            continue
        role = "assistant" if turn.role == "assistant" else "user"
        if not messages and role == "assistant":
            continue
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n\n" + turn.content
        else:
            messages.append({"role": role, "content": turn.content})
    return "\n\n".join(system_parts), messages


def classify_error(exc: BaseException) -> str:
    if isinstance(exc, (asyncio.TimeoutError, anthropic.APITimeoutError)):
        return TIMEOUT_MESSAGE
    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return AUTH_ERROR_MESSAGE
    if isinstance(exc, anthropic.RateLimitError):
        return RATE_LIMIT_MESSAGE
    if isinstance(exc, anthropic.APIStatusError):
        text = str(exc).lower()
        if "quota" in text or "credit balance" in text or "billing" in text:
            return QUOTA_MESSAGE
        return GENERIC_ERROR_MESSAGE
    if isinstance(exc, anthropic.APIConnectionError):
        return NETWORK_ERROR_MESSAGE
    return GENERIC_ERROR_MESSAGE


def _response_text(message: Any) -> str:
    parts = [getattr(block, "text", "") for block in (message.content or [])]
    text = "".join(part for part in parts if part)
    return text or "No response generated"


def _tokens_used(message: Any) -> int:
    usage = getattr(message, "usage", None)
    if usage is None:
        return 0
    return int(getattr(usage, "input_tokens", 0) or 0) + int(getattr(usage, "output_tokens", 0) or 0)


class LLMInvoker:
    def __init__(
        self,
        secrets: SecretResolver,
        client_factory: Callable[[str], Any] = get_anthropic_client,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.secrets = secrets
        self.client_factory = client_factory
        self.model = model or settings.anthropic_model
        self.timeout_seconds = timeout_seconds or settings.llm_timeout_seconds

    async def invoke(self, role: AgentRole, context_turns: Sequence[Turn], user_id: str | None) -> LLMResult:
        profile = get_agent_profile(role)
        api_key = self.secrets.resolve(CREDENTIAL_SERVICE, user_id)
        if not api_key:
            logger.warning("No model credential for user %s; returning setup instructions", user_id)
            return LLMResult(text=MISSING_CREDENTIAL_MESSAGE, tokens_used=0, model=self.model)

        system, messages = build_request(profile, context_turns)
        if not messages:
            logger.warning("Empty conversation context for %s agent", role.value)
            return LLMResult(text=GENERIC_ERROR_MESSAGE, tokens_used=0, model=self.model)

        logger.info("Calling %s for %s agent (%d messages)", self.model, role.value, len(messages))
        try:
            client = self.client_factory(api_key)
            message = await asyncio.wait_for(
                client.messages.create(
                    model=self.model,
                    system=system,
                    messages=messages,
                    temperature=profile.temperature,
                    max_tokens=profile.max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Model call timed out after %.0fs", self.timeout_seconds)
            return LLMResult(text=TIMEOUT_MESSAGE, tokens_used=0, model=self.model)
        except Exception as exc:
            logger.error("Model call failed for %s agent: %s", role.value, exc)
            return LLMResult(text=classify_error(exc), tokens_used=0, model=self.model)

        tokens = _tokens_used(message)
        logger.info("Model call succeeded - tokens used: %d", tokens)
        return LLMResult(text=_response_text(message), tokens_used=tokens, model=self.model)

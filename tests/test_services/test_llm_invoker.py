from __future__ import annotations

import asyncio

import anthropic
import httpx
import pytest

from flowsmith.core.anthropic_client import CLIENT_CACHE_SIZE, get_anthropic_client
from flowsmith.prompts.agent_prompts import (
    AUTH_ERROR_MESSAGE,
    GENERIC_ERROR_MESSAGE,
    MISSING_CREDENTIAL_MESSAGE,
    NETWORK_ERROR_MESSAGE,
    QUOTA_MESSAGE,
    RATE_LIMIT_MESSAGE,
    TIMEOUT_MESSAGE,
)
from flowsmith.schemas.agent import AgentRole
from flowsmith.schemas.chat import Turn
from flowsmith.services.llm_invoker import (
    AGENT_PROFILES,
    LLMInvoker,
    build_request,
    classify_error,
    get_agent_profile,
)

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class StaticSecrets:
    def __init__(self, key):
        self.key = key
        self.calls = []

    def resolve(self, service_name, user_id=None):
        self.calls.append((service_name, user_id))
        return self.key


def status_error(cls, status_code, message):
    return cls(message, response=httpx.Response(status_code, request=REQUEST), body=None)


def test_profiles_match_agent_roles():
    assert AGENT_PROFILES[AgentRole.ORCHESTRATOR].temperature == 0.8
    assert AGENT_PROFILES[AgentRole.WORKFLOW_DESIGNER].max_tokens == 6000
    assert AGENT_PROFILES[AgentRole.DEPLOYMENT].temperature == 0.5
    assert AGENT_PROFILES[AgentRole.SYSTEM].temperature == 0.3
    assert get_agent_profile(AgentRole.DEPLOYMENT).role == AgentRole.DEPLOYMENT


def test_build_request_folds_system_turns_and_merges_roles():
    profile = get_agent_profile(AgentRole.ORCHESTRATOR)
    turns = [
        Turn(role="assistant", content="Welcome back"),
        Turn(role="user", content="first"),
        Turn(role="user", content="second"),
        Turn(role="assistant", content="reply"),
        Turn(role="system", content='Previous agent state: {"workflow_id": "7"}'),
    ]

    system, messages = build_request(profile, turns)

    assert system.startswith(profile.system_prompt)
    assert system.endswith('Previous agent state: {"workflow_id": "7"}')
    assert messages == [
        {"role": "user", "content": "first\n\nsecond"},
        {"role": "assistant", "content": "reply"},
    ]


@pytest.mark.parametrize(
    "exc, expected",
    [
        (asyncio.TimeoutError(), TIMEOUT_MESSAGE),
        (anthropic.APITimeoutError(request=REQUEST), TIMEOUT_MESSAGE),
        (status_error(anthropic.AuthenticationError, 401, "invalid x-api-key"), AUTH_ERROR_MESSAGE),
        (status_error(anthropic.RateLimitError, 429, "rate limited"), RATE_LIMIT_MESSAGE),
        (
            status_error(anthropic.BadRequestError, 400, "Your credit balance is too low"),
            QUOTA_MESSAGE,
        ),
        (status_error(anthropic.InternalServerError, 500, "overloaded"), GENERIC_ERROR_MESSAGE),
        (anthropic.APIConnectionError(request=REQUEST), NETWORK_ERROR_MESSAGE),
        (ValueError("boom"), GENERIC_ERROR_MESSAGE),
    ],
)
def test_classify_error(exc, expected):
    assert classify_error(exc) == expected


@pytest.mark.asyncio
async def test_missing_credential_returns_setup_instructions(fake_anthropic, user_id):
    invoker = LLMInvoker(StaticSecrets(None), client_factory=fake_anthropic.factory)

    result = await invoker.invoke(AgentRole.ORCHESTRATOR, [Turn(role="user", content="hi")], user_id)

    assert result.text == MISSING_CREDENTIAL_MESSAGE
    assert result.tokens_used == 0
    assert fake_anthropic.requests == []


@pytest.mark.asyncio
async def test_successful_call_uses_profile_and_counts_tokens(fake_anthropic, user_id):
    secrets = StaticSecrets("sk-user")
    invoker = LLMInvoker(secrets, client_factory=fake_anthropic.factory, model="claude-test")

    result = await invoker.invoke(AgentRole.WORKFLOW_DESIGNER, [Turn(role="user", content="hi")], user_id)

    assert result.text == "Hello from the model"
    assert result.tokens_used == 42
    assert result.model == "claude-test"
    assert secrets.calls == [("anthropic", user_id)]
    assert fake_anthropic.api_keys == ["sk-user"]
    sent = fake_anthropic.requests[0]
    assert sent["temperature"] == 0.6
    assert sent["max_tokens"] == 6000
    assert sent["messages"] == [{"role": "user", "content": "hi"}]


@pytest.mark.asyncio
async def test_timeout_returns_timeout_message(fake_anthropic, user_id):
    fake_anthropic.delay = 0.5
    invoker = LLMInvoker(StaticSecrets("sk"), client_factory=fake_anthropic.factory, timeout_seconds=0.01)

    result = await invoker.invoke(AgentRole.SYSTEM, [Turn(role="user", content="hi")], user_id)

    assert result.text == TIMEOUT_MESSAGE
    assert result.tokens_used == 0


@pytest.mark.asyncio
async def test_provider_error_is_classified_not_raised(fake_anthropic, user_id):
    fake_anthropic.error = status_error(anthropic.RateLimitError, 429, "slow down")
    invoker = LLMInvoker(StaticSecrets("sk"), client_factory=fake_anthropic.factory)

    result = await invoker.invoke(AgentRole.ORCHESTRATOR, [Turn(role="user", content="hi")], user_id)

    assert result.text == RATE_LIMIT_MESSAGE
    assert result.tokens_used == 0


@pytest.mark.asyncio
async def test_empty_context_does_not_call_model(fake_anthropic, user_id):
    invoker = LLMInvoker(StaticSecrets("sk"), client_factory=fake_anthropic.factory)

    result = await invoker.invoke(AgentRole.ORCHESTRATOR, [], user_id)

    assert result.text == GENERIC_ERROR_MESSAGE
    assert fake_anthropic.requests == []


def test_client_cache_is_bounded_and_reused():
    get_anthropic_client.cache_clear()

    first = get_anthropic_client("sk-one")

    assert get_anthropic_client("sk-one") is first
    assert get_anthropic_client("sk-two") is not first
    assert first.max_retries == 0
    assert get_anthropic_client.cache_info().maxsize == CLIENT_CACHE_SIZE
    for i in range(CLIENT_CACHE_SIZE + 5):
        get_anthropic_client(f"sk-user-{i}")
    assert get_anthropic_client.cache_info().currsize == CLIENT_CACHE_SIZE
    get_anthropic_client.cache_clear()

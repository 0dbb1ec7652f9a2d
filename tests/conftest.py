import copy
import os
import sys
import uuid
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("N8N_API_URL", "http://n8n.test/api/v1")
os.environ.setdefault("N8N_API_KEY", "test-n8n-key")
os.environ.setdefault("ACTIVATION_SETTLE_SECONDS", "0")
os.environ.pop("ANTHROPIC_API_KEY", None)

from flowsmith.core.exceptions import N8NAPIError  # noqa: E402
from flowsmith.models import Base  # noqa: E402

USER_ID = "123e4567-e89b-42d3-a456-426614174000"


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


class FakeN8N:
    """In-memory stand-in for the n8n REST API."""

    base_url = "http://n8n.test"

    def __init__(self):
        self.workflows = {}
        self.executions = {}
        self.calls = []
        self.fail = set()
        self.activation_sticks = True
        self._next_id = 1

    def _check(self, op):
        self.calls.append(op)
        if op in self.fail:
            raise N8NAPIError(f"n8n API error 500: {op} failed", status_code=500)

    def add_workflow(self, definition, workflow_id=None):
        workflow_id = workflow_id or f"wf-{self._next_id}"
        self._next_id += 1
        stored = {"id": workflow_id, "active": False, **copy.deepcopy(definition)}
        self.workflows[workflow_id] = stored
        return workflow_id

    async def create_workflow(self, definition):
        self._check("create")
        workflow_id = self.add_workflow(definition)
        return {"id": workflow_id, "name": definition.get("name")}

    async def get_workflow(self, workflow_id):
        self._check("get")
        if workflow_id not in self.workflows:
            raise N8NAPIError("n8n API error 404: Not Found", status_code=404)
        return copy.deepcopy(self.workflows[workflow_id])

    async def update_workflow(self, workflow_id, definition):
        self._check("update")
        self.workflows[workflow_id] = copy.deepcopy(definition)
        return copy.deepcopy(definition)

    async def activate_workflow(self, workflow_id):
        self._check("activate")
        if self.activation_sticks:
            self.workflows[workflow_id]["active"] = True
        return {"id": workflow_id, "active": True}

    async def deactivate_workflow(self, workflow_id):
        self._check("deactivate")
        self.workflows[workflow_id]["active"] = False
        return {"id": workflow_id, "active": False}

    async def list_executions(self, workflow_id, limit=10):
        self._check("executions")
        return list(self.executions.get(workflow_id, []))[:limit]

    async def execute_workflow(self, workflow_id, payload=None):
        self._check("execute")
        return {"executionId": "exec-1", "data": payload}


@pytest.fixture
def fake_n8n():
    return FakeN8N()


class FakeMessages:
    def __init__(self, owner):
        self.owner = owner

    async def create(self, **kwargs):
        self.owner.requests.append(kwargs)
        if self.owner.delay:
            import asyncio

            await asyncio.sleep(self.owner.delay)
        if self.owner.error is not None:
            raise self.owner.error
        return SimpleNamespace(
            content=[SimpleNamespace(type="text", text=self.owner.reply)],
            usage=SimpleNamespace(input_tokens=12, output_tokens=30),
        )


class FakeAnthropic:
    def __init__(self, reply="Hello from the model", error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.requests = []
        self.api_keys = []
        self.messages = FakeMessages(self)

    def factory(self, api_key):
        self.api_keys.append(api_key)
        return self


@pytest.fixture
def fake_anthropic():
    return FakeAnthropic()


def trigger_workflow(**overrides):
    definition = {
        "name": "Lead Intake",
        "nodes": [
            {
                "name": "Webhook",
                "type": "n8n-nodes-base.webhook",
                "parameters": {"path": "lead-intake", "httpMethod": "POST"},
            },
            {
                "name": "Notify",
                "type": "n8n-nodes-base.slack",
                "parameters": {"channel": "#leads"},
            },
        ],
        "connections": {
            "Webhook": {"main": [[{"node": "Notify", "type": "main", "index": 0}]]},
        },
        "settings": {},
    }
    definition.update(overrides)
    return definition


@pytest.fixture
def valid_definition():
    return trigger_workflow()


@pytest.fixture
def new_uuid():
    return lambda: str(uuid.uuid4())

import uuid

from flowsmith.models import AgentStateRecord
from flowsmith.schemas.agent import AgentRole, AgentState
from flowsmith.services.agent_state_tracker import AgentStateTracker
from flowsmith.services.conversation_store import ConversationStore


def test_get_or_create_session_reuses_owned_session(db_session, user_id):
    store = ConversationStore(db_session)
    session_id = store.get_or_create_session(user_id)

    assert store.get_or_create_session(user_id, session_id) == session_id
    assert store.get_or_create_session(str(uuid.uuid4()), session_id) != session_id
    assert store.get_or_create_session(user_id, "garbage") != session_id


def test_turns_are_sequenced_and_windowed(db_session, user_id):
    store = ConversationStore(db_session)
    session_id = store.get_or_create_session(user_id)
    for i in range(12):
        store.append_turn(session_id, user_id, "user" if i % 2 == 0 else "assistant", f"turn {i}")

    turns = store.list_recent_turns(session_id, user_id, limit=10)

    assert len(turns) == 10
    assert turns[0].content == "turn 2"
    assert turns[-1].content == "turn 11"


def test_turn_metadata_round_trips(db_session, user_id):
    store = ConversationStore(db_session)
    session_id = store.get_or_create_session(user_id)
    message_id = store.append_turn(
        session_id, user_id, "assistant", "done", agent_type="deployment", metadata={"tokens_used": 7}
    )

    [turn] = store.list_recent_turns(session_id, user_id)

    assert turn.id == message_id
    assert turn.agent_type == "deployment"
    assert turn.metadata == {"tokens_used": 7}


def test_agent_state_upsert_keeps_one_row(db_session, user_id):
    store = ConversationStore(db_session)
    session_id = store.get_or_create_session(user_id)

    store.put_agent_state(session_id, user_id, "deployment", {"workflow_id": "1"})
    store.put_agent_state(session_id, user_id, "deployment", {"workflow_id": "2"})

    assert store.get_agent_state(session_id, user_id, "deployment") == {"workflow_id": "2"}
    assert db_session.query(AgentStateRecord).count() == 1
    assert store.get_agent_state(session_id, user_id, "orchestrator") == {}


def test_tracker_treats_malformed_state_as_empty(db_session, user_id):
    store = ConversationStore(db_session)
    session_id = store.get_or_create_session(user_id)
    store.put_agent_state(session_id, user_id, "deployment", {"workflow_id": {"nested": True}})

    state = AgentStateTracker(store).load(session_id, user_id, AgentRole.DEPLOYMENT)

    assert state.is_empty()


def test_pending_workflow_falls_back_to_designer(db_session, user_id):
    store = ConversationStore(db_session)
    session_id = store.get_or_create_session(user_id)
    tracker = AgentStateTracker(store)
    tracker.save(session_id, user_id, AgentRole.WORKFLOW_DESIGNER, AgentState(workflow_id="wf-9"))

    assert tracker.pending_workflow_id(session_id, user_id) == "wf-9"

    tracker.save(session_id, user_id, AgentRole.DEPLOYMENT, AgentState(workflow_id="wf-10"))
    assert tracker.pending_workflow_id(session_id, user_id) == "wf-10"


def test_merge_sets_phase_and_truncates_summary():
    merged = AgentStateTracker.merge(AgentState(), AgentRole.ORCHESTRATOR, "x" * 500)
    assert merged.conversation_phase == "coordination"
    assert len(merged.context_summary) == 200

    merged = AgentStateTracker.merge(AgentState(), AgentRole.WORKFLOW_DESIGNER, "build it", {"workflow_id": "3"})
    assert merged.conversation_phase == "specialized_task"
    assert merged.workflow_id == "3"


def test_merge_only_marks_live_on_confirmed_success():
    prior = AgentState(workflow_id="5", workflow_status="created")

    failed = AgentStateTracker.merge(
        prior, AgentRole.DEPLOYMENT, "deploy", {"status": "deployed_and_active", "success": False}
    )
    assert failed.workflow_status == "created"

    deployed = AgentStateTracker.merge(
        prior, AgentRole.DEPLOYMENT, "deploy", {"status": "deployed_and_active", "success": True}
    )
    assert deployed.workflow_status == "deployed_and_active"
    assert deployed.workflow_id == "5"


def test_newer_design_wins_over_deployed_workflow(db_session, user_id):
    store = ConversationStore(db_session)
    session_id = store.get_or_create_session(user_id)
    tracker = AgentStateTracker(store)
    tracker.save(
        session_id, user_id, AgentRole.DEPLOYMENT, AgentState(workflow_id="wf-1", workflow_status="deployed_and_active")
    )
    tracker.save(session_id, user_id, AgentRole.WORKFLOW_DESIGNER, AgentState(workflow_id="wf-2", workflow_status="created"))

    assert tracker.pending_workflow_id(session_id, user_id) == "wf-2"

    tracker.save(session_id, user_id, AgentRole.WORKFLOW_DESIGNER, AgentState(workflow_id="wf-1", workflow_status="created"))
    assert tracker.pending_workflow_id(session_id, user_id) == "wf-1"

from flowsmith.schemas.agent import AgentRole
from flowsmith.services import agent_router


def test_deployment_wording_beats_design_wording():
    assert agent_router.route("Deploy this workflow to production") == AgentRole.DEPLOYMENT


def test_design_keywords_route_to_designer():
    assert agent_router.route("Build an automation that posts new leads to Slack") == AgentRole.WORKFLOW_DESIGNER
    assert agent_router.route("Which N8N node handles webhooks?") == AgentRole.WORKFLOW_DESIGNER


def test_troubleshooting_keywords_route_to_system():
    assert agent_router.route("I keep getting an error when I log in") == AgentRole.SYSTEM


def test_design_beats_troubleshooting():
    assert agent_router.route("my workflow is not working") == AgentRole.WORKFLOW_DESIGNER


def test_everything_else_goes_to_orchestrator():
    assert agent_router.route("Hello there") == AgentRole.ORCHESTRATOR
    assert agent_router.route("") == AgentRole.ORCHESTRATOR


def test_history_does_not_change_routing():
    history = [{"role": "assistant", "content": "Let's deploy"}]
    assert agent_router.route("thanks", history) == AgentRole.ORCHESTRATOR


def test_suggest_next_agent():
    assert (
        agent_router.suggest_next_agent(AgentRole.ORCHESTRATOR, "I can design a workflow for that")
        == AgentRole.WORKFLOW_DESIGNER
    )
    assert agent_router.suggest_next_agent(AgentRole.WORKFLOW_DESIGNER, "done", "wf-1") == AgentRole.DEPLOYMENT
    assert agent_router.suggest_next_agent(AgentRole.WORKFLOW_DESIGNER, "Ready to deploy?") == AgentRole.DEPLOYMENT
    assert agent_router.suggest_next_agent(AgentRole.DEPLOYMENT, "workflow deployed", "wf-1") is None
    assert agent_router.suggest_next_agent(AgentRole.SYSTEM, "fixed") is None


def test_deploy_request_after_design_turn_goes_to_deployment():
    history = [{"role": "assistant", "agent_type": "workflow_designer", "content": "Workflow created"}]
    assert agent_router.route("deploy this to production", history) == AgentRole.DEPLOYMENT

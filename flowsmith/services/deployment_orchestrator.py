"""
Safe deployment of an n8n workflow.

checkpoint -> validate -> activate (confirmed by read-back) -> health check ->
smoke test. A critical failure in the first three steps rolls the workflow
back to the checkpointed definition. Health and smoke-test problems are only
reported as warnings.
"""
from __future__ import annotations

import asyncio
import copy
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable

from flowsmith.config import settings
from flowsmith.core.exceptions import (
    ActivationNotConfirmedError,
    CheckpointError,
    CriticalValidationError,
)
from flowsmith.integrations.n8n import N8NClient
from flowsmith.models.workflow import DeploymentCheckpoint
from flowsmith.schemas.deployment import (
    DeploymentResult,
    DeploymentState,
    HealthCheckResult,
    RollbackResult,
    ValidationResult,
)

logger = logging.getLogger(__name__)

WEBHOOK_NODE_TYPES = frozenset({"n8n-nodes-base.webhook"})
TRIGGER_NODE_TYPES = frozenset(
    {
        "n8n-nodes-base.webhook",
        "n8n-nodes-base.cron",
        "n8n-nodes-base.start",
        "n8n-nodes-base.scheduleTrigger",
        "n8n-nodes-base.manualTrigger",
    }
)
FAILED_EXECUTION_STATUSES = frozenset({"error", "crashed", "failed"})

NO_NODES_PENALTY = 50
NO_CONNECTIONS_PENALTY = 30
NO_TRIGGER_PENALTY = 40
ORPHAN_PENALTY = 5

INACTIVE_PENALTY = 20
HIGH_FAILURE_PENALTY = 40
MODERATE_FAILURE_PENALTY = 20
LONG_RUNNING_PENALTY = 15
EMPTY_CONFIG_PENALTY = 5
HEALTH_WARNING_THRESHOLD = 50
RECENT_EXECUTION_LIMIT = 10


def is_trigger_node(node: dict[str, Any]) -> bool:
    node_type = str(node.get("type") or "")
    return node_type in TRIGGER_NODE_TYPES or node_type.endswith("Trigger")


def connected_node_names(connections: dict[str, Any]) -> set[str]:
    """Names appearing as a source or a target anywhere in ``connections``."""
    names: set[str] = set()
    if not isinstance(connections, dict):
        return names
    for source, outputs in connections.items():
        names.add(source)
        if not isinstance(outputs, dict):
            continue
        for lanes in outputs.values():
            for lane in lanes or []:
                for target in lane or []:
                    if isinstance(target, dict) and target.get("node"):
                        names.add(target["node"])
    return names


def validate_workflow_definition(workflow: dict[str, Any]) -> ValidationResult:
    """Score the structure of a workflow definition. Pure; same input, same score."""
    nodes = [n for n in (workflow.get("nodes") or []) if isinstance(n, dict)]
    connections = workflow.get("connections")
    if not isinstance(connections, dict):
        connections = {}
    issues: list[str] = []
    critical_issues: list[str] = []
    score = 100

    if not nodes:
        issue = "Workflow has no nodes"
        issues.append(issue)
        critical_issues.append(issue)
        score -= NO_NODES_PENALTY

    if not connections:
        issue = "Workflow has no connections between nodes"
        issues.append(issue)
        # A lone trigger has nothing to connect to.
        if len(nodes) > 1:
            critical_issues.append(issue)
        score -= NO_CONNECTIONS_PENALTY

    if not any(is_trigger_node(n) for n in nodes):
        issue = "Workflow has no trigger node (Webhook, Schedule, Cron, Manual or Start)"
        issues.append(issue)
        critical_issues.append(issue)
        score -= NO_TRIGGER_PENALTY

    connected = connected_node_names(connections)
    orphans = [n.get("name") for n in nodes if not is_trigger_node(n) and n.get("name") not in connected]
    if orphans:
        issues.append(f"Found {len(orphans)} unconnected nodes: {', '.join(str(o) for o in orphans)}")
        score -= ORPHAN_PENALTY * len(orphans)

    return ValidationResult(
        valid=not issues,
        score=max(0, score),
        critical=bool(critical_issues),
        issues=issues,
        critical_issues=critical_issues,
    )


def _parse_timestamp(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _execution_failed(execution: dict[str, Any]) -> bool:
    status = str(execution.get("status") or "").lower()
    if status in FAILED_EXECUTION_STATUSES:
        return True
    return not execution.get("finished", status == "success")


def _execution_seconds(execution: dict[str, Any]) -> float | None:
    started = _parse_timestamp(execution.get("startedAt"))
    stopped = _parse_timestamp(execution.get("stoppedAt"))
    if started is None or stopped is None:
        return None
    return (stopped - started).total_seconds()


def compute_health(
    workflow: dict[str, Any],
    executions: Iterable[dict[str, Any]],
    long_execution_threshold_seconds: float = 300,
) -> HealthCheckResult:
    score = 100
    issues: list[str] = []
    recommendations: list[str] = []
    failure_rate: float | None = None

    if not workflow.get("active"):
        issues.append("Workflow is not active")
        recommendations.append("Activate the workflow to start processing requests")
        score -= INACTIVE_PENALTY

    recent = list(executions)[:RECENT_EXECUTION_LIMIT]
    if recent:
        failed = [e for e in recent if _execution_failed(e)]
        failure_rate = len(failed) / len(recent)
        if failure_rate > 0.5:
            issues.append(f"High failure rate: {round(failure_rate * 100)}%")
            recommendations.append("Review recent execution logs and fix failing nodes")
            score -= HIGH_FAILURE_PENALTY
        elif failure_rate > 0.2:
            issues.append(f"Moderate failure rate: {round(failure_rate * 100)}%")
            recommendations.append("Monitor execution logs for intermittent issues")
            score -= MODERATE_FAILURE_PENALTY

        long_running = [
            e for e in recent
            if (seconds := _execution_seconds(e)) is not None and seconds > long_execution_threshold_seconds
        ]
        if long_running:
            minutes = long_execution_threshold_seconds / 60
            issues.append(f"{len(long_running)} executions took longer than {minutes:g} minutes")
            recommendations.append("Consider optimizing slow nodes or adding timeouts")
            score -= LONG_RUNNING_PENALTY

    empty = [n for n in (workflow.get("nodes") or []) if isinstance(n, dict) and not n.get("parameters")]
    if empty:
        issues.append(f"{len(empty)} nodes have empty configurations")
        recommendations.append("Review and configure all workflow nodes")
        score -= EMPTY_CONFIG_PENALTY * len(empty)

    return HealthCheckResult(
        score=max(0, score),
        issues=issues,
        recommendations=recommendations,
        failure_rate=failure_rate,
    )


def extract_webhook_urls(workflow: dict[str, Any], base_url: str) -> list[str]:
    urls: list[str] = []
    for node in workflow.get("nodes") or []:
        if not isinstance(node, dict) or node.get("type") not in WEBHOOK_NODE_TYPES:
            continue
        path = (node.get("parameters") or {}).get("path")
        if not path:
            continue
        path = str(path)
        if not path.startswith("/"):
            path = f"/{path}"
        urls.append(f"{base_url.rstrip('/')}/webhook{path}")
    return urls


class CheckpointStore:
    """Process-local checkpoints keyed by id, evicted on a time basis."""

    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.checkpoint_ttl_seconds
        self.clock = clock
        self._items: dict[str, DeploymentCheckpoint] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, checkpoint_id: object) -> bool:
        return checkpoint_id in self._items

    def create(self, workflow_id: str, session_id: str, snapshot: dict[str, Any]) -> DeploymentCheckpoint:
        self.evict_expired()
        checkpoint_id = f"checkpoint-{int(time.time() * 1000)}-{session_id}-{uuid.uuid4().hex[:8]}"
        checkpoint = DeploymentCheckpoint(
            checkpoint_id=checkpoint_id,
            workflow_id=workflow_id,
            snapshot=copy.deepcopy(snapshot),
            created_at=self.clock(),
        )
        self._items[checkpoint_id] = checkpoint
        return checkpoint

    def get(self, checkpoint_id: str) -> DeploymentCheckpoint | None:
        return self._items.get(checkpoint_id)

    def discard(self, checkpoint_id: str) -> None:
        self._items.pop(checkpoint_id, None)

    def evict_expired(self) -> int:
        now = self.clock()
        expired = [cid for cid, cp in self._items.items() if cp.age(now) > self.ttl_seconds]
        for cid in expired:
            logger.warning("Evicting abandoned deployment checkpoint %s", cid)
            del self._items[cid]
        return len(expired)


class DeploymentOrchestrator:
    def __init__(
        self,
        client: N8NClient,
        checkpoints: CheckpointStore | None = None,
        settle_seconds: float | None = None,
        long_execution_threshold_seconds: float | None = None,
        base_url: str | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.checkpoints = checkpoints if checkpoints is not None else CheckpointStore()
        self.settle_seconds = settings.activation_settle_seconds if settle_seconds is None else settle_seconds
        self.long_execution_threshold_seconds = (
            long_execution_threshold_seconds or settings.long_execution_threshold_seconds
        )
        self.base_url = base_url or client.base_url
        self.sleep = sleep
        self._in_progress: set[str] = set()

    async def deploy(self, workflow_id: str, session_id: str, user_id: str) -> DeploymentResult:
        if workflow_id in self._in_progress:
            message = f"A deployment of workflow {workflow_id} is already in progress"
            logger.warning(message)
            return self._failure(workflow_id, DeploymentState.NOT_STARTED, message, [message], None, None, [])

        self._in_progress.add(workflow_id)
        try:
            return await self._deploy(workflow_id, session_id, user_id)
        finally:
            self._in_progress.discard(workflow_id)

    async def _deploy(self, workflow_id: str, session_id: str, user_id: str) -> DeploymentResult:
        logger.info("Starting safe deployment of workflow %s (session %s)", workflow_id, session_id)
        errors: list[str] = []
        warnings: list[str] = []

        try:
            checkpoint = await self.create_checkpoint(workflow_id, session_id)
        except CheckpointError as exc:
            errors.append(str(exc))
            return self._failure(workflow_id, DeploymentState.FAILED, str(exc), errors, None, None, warnings)

        state = DeploymentState.CHECKPOINT_CREATED
        try:
            validation = await self.validate(workflow_id)
            checkpoint.steps.append("validated")
            if validation.critical:
                raise CriticalValidationError(
                    f"Critical validation errors: {', '.join(validation.critical_issues)}"
                )
            warnings.extend(validation.issues)
            state = DeploymentState.VALIDATED

            workflow = await self.activate(workflow_id)
            checkpoint.steps.append("activated")
            state = DeploymentState.ACTIVATED
        except Exception as exc:
            logger.error("Deployment of workflow %s failed in state %s: %s", workflow_id, state.value, exc)
            checkpoint.errors.append(str(exc))
            errors.append(str(exc))
            rollback = await self.rollback(checkpoint.checkpoint_id, str(exc))
            if rollback.success:
                errors.append("Deployment failed and rollback succeeded")
                final_state = DeploymentState.ROLLED_BACK
            else:
                errors.append("Deployment failed and rollback failed")
                errors.extend(rollback.errors)
                final_state = DeploymentState.FAILED
            return self._failure(
                workflow_id, final_state, str(exc), errors, checkpoint.checkpoint_id, rollback, warnings
            )

        health = await self.health_check(workflow_id)
        checkpoint.steps.append("health_checked")
        state = DeploymentState.HEALTH_CHECKED
        degraded = health.score < HEALTH_WARNING_THRESHOLD
        if degraded:
            warnings.append(f"Low health score: {health.score}/100")
            warnings.extend(health.issues)

        test_results = await self.smoke_test(workflow_id, user_id, warnings)

        self.checkpoints.discard(checkpoint.checkpoint_id)
        details = {
            "workflow_id": workflow_id,
            "status": "deployed_and_active",
            "activation_time": datetime.now(timezone.utc).isoformat(),
            "webhook_urls": extract_webhook_urls(workflow, self.base_url),
            "health_score": health.score,
            "health": health.model_dump(),
            "validation": validation.model_dump(),
            "test_results": test_results,
            "checkpoint_id": checkpoint.checkpoint_id,
            "degraded": degraded,
        }
        logger.info(
            "Workflow %s deployed (health %d/100, %d warnings)", workflow_id, health.score, len(warnings)
        )
        return DeploymentResult(
            success=True,
            workflow_id=workflow_id,
            state=DeploymentState.SUCCEEDED,
            checkpoint_id=checkpoint.checkpoint_id,
            details=details,
            errors=errors,
            warnings=warnings,
        )

    async def create_checkpoint(self, workflow_id: str, session_id: str) -> DeploymentCheckpoint:
        try:
            current = await self.client.get_workflow(workflow_id)
        except Exception as exc:
            raise CheckpointError(f"Failed to create deployment checkpoint: {exc}") from exc
        if not isinstance(current, dict):
            raise CheckpointError("Failed to create deployment checkpoint: unexpected workflow payload")
        checkpoint = self.checkpoints.create(workflow_id, session_id, current)
        logger.info("Created deployment checkpoint %s", checkpoint.checkpoint_id)
        return checkpoint

    async def validate(self, workflow_id: str) -> ValidationResult:
        workflow = await self.client.get_workflow(workflow_id)
        result = validate_workflow_definition(workflow)
        logger.info("Workflow %s validation score %d/100", workflow_id, result.score)
        return result

    async def activate(self, workflow_id: str) -> dict[str, Any]:
        await self.client.activate_workflow(workflow_id)
        await self.sleep(self.settle_seconds)
        workflow = await self.client.get_workflow(workflow_id)
        if not workflow.get("active"):
            raise ActivationNotConfirmedError("Workflow activation was not confirmed")
        return workflow

    async def health_check(self, workflow_id: str) -> HealthCheckResult:
        try:
            workflow = await self.client.get_workflow(workflow_id)
            executions = await self.client.list_executions(workflow_id, limit=RECENT_EXECUTION_LIMIT)
        except Exception as exc:
            logger.error("Health check failed for workflow %s: %s", workflow_id, exc)
            return HealthCheckResult(
                score=0,
                issues=[f"Health check failed: {exc}"],
                recommendations=["Check workflow configuration and n8n connectivity"],
            )
        result = compute_health(workflow, executions, self.long_execution_threshold_seconds)
        logger.info("Workflow %s health score %d/100", workflow_id, result.score)
        return result

    async def smoke_test(self, workflow_id: str, user_id: str, warnings: list[str]) -> Any:
        try:
            return await self.client.execute_workflow(workflow_id, {"test": True, "user_id": user_id})
        except Exception as exc:
            # production-only inputs are common, so this never rolls back
            logger.info("Smoke test of workflow %s failed: %s", workflow_id, exc)
            warnings.append(f"Test execution failed: {exc}")
            return None

    async def rollback(self, checkpoint_id: str, reason: str) -> RollbackResult:
        checkpoint = self.checkpoints.get(checkpoint_id)
        if checkpoint is None:
            return RollbackResult(success=False, errors=[f"Checkpoint {checkpoint_id} not found"])

        logger.warning("Rolling back workflow %s: %s", checkpoint.workflow_id, reason)
        actions: list[str] = []
        errors: list[str] = []

        try:
            current = await self.client.get_workflow(checkpoint.workflow_id)
            if current.get("active"):
                await self.client.deactivate_workflow(checkpoint.workflow_id)
                actions.append("Deactivated current workflow")
        except Exception as exc:
            errors.append(f"Failed to deactivate workflow: {exc}")

        if checkpoint.snapshot is not None:
            try:
                await self.client.update_workflow(checkpoint.workflow_id, copy.deepcopy(checkpoint.snapshot))
                actions.append("Restored workflow to previous state")
            except Exception as exc:
                errors.append(f"Failed to restore workflow: {exc}")

        self.checkpoints.discard(checkpoint_id)
        actions.append("Cleaned up deployment state")
        logger.info("Rollback finished with %d actions and %d errors", len(actions), len(errors))
        return RollbackResult(success=not errors, actions=actions, errors=errors)

    @staticmethod
    def _failure(
        workflow_id: str,
        state: DeploymentState,
        error: str,
        errors: list[str],
        checkpoint_id: str | None,
        rollback: RollbackResult | None,
        warnings: list[str],
    ) -> DeploymentResult:
        if rollback is None:
            rollback_status = "not_attempted"
        else:
            rollback_status = "clean" if rollback.success else "partial"
        return DeploymentResult(
            success=False,
            workflow_id=workflow_id,
            state=state,
            checkpoint_id=checkpoint_id,
            details={
                "workflow_id": workflow_id,
                "status": "deployment_failed",
                "error": error,
                "rollback_status": rollback_status,
            },
            errors=errors,
            warnings=warnings,
            rollback=rollback,
        )

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from flowsmith.schemas.workflow import WorkflowCandidate

logger = logging.getLogger(__name__)

JSON_FENCE = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
ANY_FENCE = re.compile(r"```[a-zA-Z]*\s*(.*?)\s*```", re.DOTALL)


def _fenced_block(text: str) -> str | None:
    match = JSON_FENCE.search(text) or ANY_FENCE.search(text)
    return match.group(1) if match else None


def extract(response_text: str) -> WorkflowCandidate | None:
    """Pull an n8n workflow definition out of a model response, or return None."""
    if not response_text:
        return None
    block = _fenced_block(response_text)
    if block is None:
        return None

    try:
        data: Any = json.loads(block)
    except json.JSONDecodeError as exc:
        logger.info("Fenced block is not valid JSON: %s", exc)
        return None

    if not isinstance(data, dict):
        return None
    name = data.get("name")
    nodes = data.get("nodes")
    connections = data.get("connections")
    if not isinstance(name, str) or not name.strip():
        return None
    if not isinstance(nodes, list) or not nodes:
        return None
    if not isinstance(connections, dict):
        return None

    settings = data.get("settings")
    static_data = data.get("staticData")
    try:
        return WorkflowCandidate(
            name=name.strip(),
            nodes=nodes,
            connections=connections,
            settings=settings if isinstance(settings, dict) else {},
            static_data=static_data if isinstance(static_data, dict) else None,
        )
    except ValidationError as exc:
        # nodes that are not objects
        logger.info("Workflow block rejected: %s", exc)
        return None

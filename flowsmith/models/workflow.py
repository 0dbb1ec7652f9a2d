"""In-memory deployment checkpoint; never persisted."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class DeploymentCheckpoint:
    checkpoint_id: str
    workflow_id: str
    snapshot: dict[str, Any] | None
    steps: list[str] = field(default_factory=lambda: ["checkpoint_created"])
    errors: list[str] = field(default_factory=list)
    created_at: float = field(default_factory=time.monotonic)

    def age(self, now: float | None = None) -> float:
        return (time.monotonic() if now is None else now) - self.created_at

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from flowsmith.models import AgentStateRecord, ChatMessage, ChatSession
from flowsmith.schemas.chat import Turn

logger = logging.getLogger(__name__)


def _uuid(value: str | uuid.UUID) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


class ConversationStore:
    """Append-only turn log per session plus one state blob per (session, agent)."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_or_create_session(self, user_id: str, session_id: str | None = None) -> str:
        user_uuid = _uuid(user_id)
        if session_id:
            try:
                session_uuid = _uuid(session_id)
            except ValueError:
                session_uuid = None
            if session_uuid is not None:
                existing = (
                    self.db.query(ChatSession)
                    .filter(ChatSession.id == session_uuid, ChatSession.user_id == user_uuid)
                    .first()
                )
                if existing:
                    return str(existing.id)

        row = ChatSession(user_id=user_uuid, title="New AI Chat", status="active")
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info("Created chat session %s for user %s", row.id, user_id)
        return str(row.id)

    def touch_session(self, session_id: str, user_id: str) -> None:
        row = (
            self.db.query(ChatSession)
            .filter(ChatSession.id == _uuid(session_id), ChatSession.user_id == _uuid(user_id))
            .first()
        )
        if row:
            row.updated_at = datetime.now(timezone.utc)
            self.db.commit()

    def append_turn(
        self,
        session_id: str,
        user_id: str,
        role: str,
        content: str,
        agent_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        session_uuid = _uuid(session_id)
        last_seq = (
            self.db.query(func.max(ChatMessage.sequence_number))
            .filter(ChatMessage.session_id == session_uuid)
            .scalar()
        )
        row = ChatMessage(
            session_id=session_uuid,
            user_id=_uuid(user_id),
            sequence_number=(last_seq or 0) + 1,
            role=role,
            content=content,
            agent_type=agent_type,
            meta=metadata or {},
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return str(row.id)

    def list_recent_turns(self, session_id: str, user_id: str, limit: int = 10) -> list[Turn]:
        rows = (
            self.db.query(ChatMessage)
            .filter(ChatMessage.session_id == _uuid(session_id), ChatMessage.user_id == _uuid(user_id))
            .order_by(ChatMessage.sequence_number.desc())
            .limit(limit)
            .all()
        )
        rows.reverse()  # oldest first
        return [
            Turn(
                id=str(row.id),
                role=row.role,
                content=row.content,
                agent_type=row.agent_type,
                metadata=row.meta or {},
            )
            for row in rows
        ]

    def get_agent_state(self, session_id: str, user_id: str, agent_type: str) -> dict[str, Any]:
        row = self._state_row(session_id, user_id, agent_type)
        return dict(row.state or {}) if row else {}

    def put_agent_state(self, session_id: str, user_id: str, agent_type: str, state: dict[str, Any]) -> None:
        row = self._state_row(session_id, user_id, agent_type)
        if row is None:
            row = AgentStateRecord(
                session_id=_uuid(session_id),
                user_id=_uuid(user_id),
                agent_type=agent_type,
            )
            self.db.add(row)
        row.state = dict(state)
        row.updated_at = datetime.now(timezone.utc)
        self.db.commit()

    def _state_row(self, session_id: str, user_id: str, agent_type: str) -> AgentStateRecord | None:
        return (
            self.db.query(AgentStateRecord)
            .filter(
                AgentStateRecord.session_id == _uuid(session_id),
                AgentStateRecord.user_id == _uuid(user_id),
                AgentStateRecord.agent_type == agent_type,
            )
            .first()
        )

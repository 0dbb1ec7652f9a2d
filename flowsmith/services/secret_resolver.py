from __future__ import annotations

import logging
import os
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flowsmith.models import ApiConfiguration, ApiKey

logger = logging.getLogger(__name__)


class SecretResolver:
    """Look up API credentials: the user's own key first, then a shared one."""

    def __init__(self, db: Session, environ: dict[str, str] | None = None) -> None:
        self.db = db
        self.environ = os.environ if environ is None else environ

    def resolve(self, service_name: str, user_id: str | None = None) -> str | None:
        if user_id:
            user_key = self._user_key(service_name, user_id)
            if user_key:
                logger.info("Using user-scoped %s key for user %s", service_name, user_id)
                return user_key

        env_key = self.environ.get(f"{service_name.upper()}_API_KEY")
        if env_key:
            logger.info("Using %s key from environment", service_name)
            return env_key

        shared = self._shared_key(service_name)
        if shared:
            logger.info("Using shared %s key from api_configurations", service_name)
            return shared

        logger.warning("No %s key configured for user %s", service_name, user_id or "-")
        return None

    def _user_key(self, service_name: str, user_id: str) -> str | None:
        try:
            user_uuid = uuid.UUID(str(user_id))
        except ValueError:
            return None
        try:
            row = (
                self.db.query(ApiKey)
                .filter(ApiKey.user_id == user_uuid, ApiKey.service_name == service_name)
                .first()
            )
        except SQLAlchemyError as exc:
            logger.error("Error retrieving user %s key: %s", service_name, exc)
            self.db.rollback()
            return None
        return row.api_key if row and row.api_key else None

    def _shared_key(self, service_name: str) -> str | None:
        try:
            row = (
                self.db.query(ApiConfiguration)
                .filter(
                    ApiConfiguration.service_name == service_name,
                    ApiConfiguration.is_active.is_(True),
                )
                .order_by(ApiConfiguration.updated_at.desc())
                .first()
            )
        except SQLAlchemyError as exc:
            logger.error("Error retrieving shared %s key: %s", service_name, exc)
            self.db.rollback()
            return None
        return row.api_key if row and row.api_key else None

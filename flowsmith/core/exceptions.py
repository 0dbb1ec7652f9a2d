"""Custom exception types for domain and API layers."""
from __future__ import annotations


class AppError(Exception):
    """Base app exception."""


class IntegrationError(AppError):
    """External integration call failure."""


class N8NAPIError(IntegrationError):
    """Non-2xx answer or transport failure talking to the n8n REST API."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ChatProcessingError(AppError):
    """Unexpected failure inside the chat pipeline; the apology turn is already stored."""

    def __init__(self, message: str, response_text: str, session_id: str, message_id: str | None) -> None:
        super().__init__(message)
        self.response_text = response_text
        self.session_id = session_id
        self.message_id = message_id


class DeploymentError(AppError):
    """Workflow deployment failure."""


class CheckpointError(DeploymentError):
    """The pre-deployment snapshot could not be captured."""


class CriticalValidationError(DeploymentError):
    """Workflow definition failed a critical structural rule."""


class ActivationNotConfirmedError(DeploymentError):
    """Activation call returned but the engine does not report the workflow active."""

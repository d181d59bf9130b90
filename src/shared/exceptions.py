"""Typed failures raised by the pipeline services.

Routers translate these into HTTP errors; background jobs use them to decide
between retrying (``ExternalServiceError``) and discarding (``RecordNotFound``).
"""
from typing import Optional
from uuid import UUID


class RfeAssistError(Exception):
    """Base class for all domain failures."""


class RecordNotFound(RfeAssistError):
    def __init__(self, model: str, record_id):
        self.model = model
        self.record_id = record_id
        super().__init__(f"{model} {record_id} not found")


class ExtractionFailure(RfeAssistError):
    """Text could not be extracted from a source document."""

    def __init__(self, document_id, message: str):
        self.document_id = document_id
        super().__init__(message)


class NoExtractableText(RfeAssistError):
    pass


class ExternalServiceError(RfeAssistError):
    """An embedding or completion call failed."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service} error: {message}")


class MalformedResponse(RfeAssistError):
    """Completion output could not be parsed into the expected structure."""


class LockConflict(RfeAssistError):
    def __init__(self, holder_id: UUID, holder_name: Optional[str] = None):
        self.holder_id = holder_id
        self.holder_name = holder_name
        super().__init__(f"Draft is locked by {holder_name or holder_id}")


class InvalidTransition(RfeAssistError):
    def __init__(self, state, action):
        self.state = state
        self.action = action
        super().__init__(
            f"Cannot {getattr(action, 'value', action)} a case in status "
            f"{getattr(state, 'value', state)}"
        )

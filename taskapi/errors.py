# taskapi/errors.py
"""Errors raised by the stores and surfaced unmodified to callers."""

from typing import Any, Optional


class TaskStoreError(Exception):
    """Base class for every store failure."""


class TaskNotFound(TaskStoreError):
    """No row matches the requested id."""

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConstraintViolation(TaskStoreError):
    """A supplied value breaks a column constraint.

    Covers nulls in non-null columns, unknown foreign-key targets,
    over-long short strings and malformed values.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.message = message
        self.field = field
        super().__init__(message)


class StorageUnavailable(TaskStoreError):
    """The backing store could not be reached or timed out."""

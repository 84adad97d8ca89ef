# taskapi/patch.py
"""Tri-state partial updates.

Every patch field is one of three things:

* ``UNSET``: leave the stored column alone,
* ``None``: write SQL NULL,
* any other value: write that value.

A plain ``Optional`` cannot tell the first two apart, so the patch
classes default every field to ``UNSET`` instead of ``None``.
"""

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, ClassVar, Mapping, Optional, Union
from uuid import UUID

from pydantic import ValidationError
from sqlmodel import SQLModel

from taskapi.config import SHORT_STRING_MAX
from taskapi.errors import ConstraintViolation
from taskapi.models import MemberRole, MemberUpdate, TaskUpdate


class _Unset:
    """Type of the ``UNSET`` sentinel. Falsy, singleton, copy-stable."""

    _instance: ClassVar[Optional["_Unset"]] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Unset":
        return self

    def __deepcopy__(self, memo: dict) -> "_Unset":
        return self

    def __reduce__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def is_set(value: Any) -> bool:
    """Return True when ``value`` carries an instruction (a value or None)."""
    return value is not UNSET


@dataclass(frozen=True)
class _Patch:
    """Shared behaviour for the concrete patch types.

    ``SCHEMA`` is the request model whose field types every set value is
    validated against.
    """

    SCHEMA: ClassVar[type[SQLModel]]
    NON_NULL: ClassVar[tuple[str, ...]] = ()
    SHORT_STRINGS: ClassVar[tuple[str, ...]] = ()

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]):
        """Build a patch where presence of a key means "set this column"."""
        unknown = sorted(set(data) - set(cls.field_names()))
        if unknown:
            raise ConstraintViolation(
                f"Unknown field(s): {', '.join(unknown)}", field=unknown[0]
            )
        return cls(**dict(data))

    def changes(self) -> dict[str, Any]:
        """Set fields only, in declaration order."""
        return {
            name: getattr(self, name)
            for name in self.field_names()
            if is_set(getattr(self, name))
        }

    def is_empty(self) -> bool:
        return not self.changes()

    def validate(self) -> dict[str, Any]:
        """Reject values the schema would refuse, before storage is touched.

        Returns the set fields coerced to their column types, so a UUID or
        datetime given as a string reaches storage as the real type.
        """
        changes = self.changes()
        for name in self.NON_NULL:
            if name in changes and changes[name] is None:
                raise ConstraintViolation(f"{name} cannot be null", field=name)
        for name in self.SHORT_STRINGS:
            value = changes.get(name)
            if isinstance(value, str) and len(value) > SHORT_STRING_MAX:
                raise ConstraintViolation(
                    f"{name} must be at most {SHORT_STRING_MAX} characters",
                    field=name,
                )
        try:
            checked = self.SCHEMA.model_validate(changes)
        except ValidationError as exc:
            error = exc.errors()[0]
            field = str(error["loc"][0]) if error["loc"] else None
            raise ConstraintViolation(
                f"{field}: {error['msg']}", field=field
            ) from None
        return {name: getattr(checked, name) for name in changes}


@dataclass(frozen=True)
class TaskPatch(_Patch):
    """Partial update of a task row.

    ``owner_id``, ``labels`` and ``count`` are not patchable: they are
    returned by an update but never written by one. ``updated_at`` is only
    honoured when the store runs with the ``caller`` timestamp policy, so
    its null check lives in the store.
    """

    SCHEMA: ClassVar[type[SQLModel]] = TaskUpdate
    NON_NULL: ClassVar[tuple[str, ...]] = ("title", "description")
    SHORT_STRINGS: ClassVar[tuple[str, ...]] = ("status", "priority")

    status: Union[Optional[str], _Unset] = UNSET
    priority: Union[Optional[str], _Unset] = UNSET
    title: Union[Optional[str], _Unset] = UNSET
    description: Union[Optional[str], _Unset] = UNSET
    due_date: Union[Optional[datetime], _Unset] = UNSET
    project_id: Union[Optional[UUID], _Unset] = UNSET
    lead_id: Union[Optional[UUID], _Unset] = UNSET
    parent_id: Union[Optional[UUID], _Unset] = UNSET
    updated_at: Union[Optional[datetime], _Unset] = UNSET


@dataclass(frozen=True)
class MemberPatch(_Patch):
    """Partial update of a member row."""

    SCHEMA: ClassVar[type[SQLModel]] = MemberUpdate
    NON_NULL: ClassVar[tuple[str, ...]] = ("name", "email", "role")

    name: Union[Optional[str], _Unset] = UNSET
    email: Union[Optional[str], _Unset] = UNSET
    role: Union[Optional[MemberRole], _Unset] = UNSET
    github_id: Union[Optional[str], _Unset] = UNSET
    google_id: Union[Optional[str], _Unset] = UNSET
    photo_url: Union[Optional[str], _Unset] = UNSET
    password_hash: Union[Optional[str], _Unset] = UNSET

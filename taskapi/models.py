# taskapi/models.py
"""Member, project and task models for the task API."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import ConfigDict, field_validator
from sqlalchemy import JSON, Column, DateTime, Text, and_, or_, true
from sqlmodel import Field, SQLModel

from taskapi.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT, SHORT_STRING_MAX


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemberRole(str, Enum):
    owner = "owner"
    admin = "admin"
    member = "member"
    guest = "guest"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


# -- members ------------------------------------------------------------------


class MemberBase(SQLModel):
    name: str = Field(max_length=200)
    email: str = Field(max_length=320, unique=True, index=True)
    role: MemberRole = Field(default=MemberRole.member)
    github_id: Optional[str] = Field(default=None)
    google_id: Optional[str] = Field(default=None)
    photo_url: Optional[str] = Field(default=None)


class Member(MemberBase, table=True):
    """Member database table."""
    __tablename__ = "members"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False
    )
    password_hash: Optional[str] = Field(default=None)


class MemberCreate(MemberBase):
    password_hash: Optional[str] = None


class MemberUpdate(SQLModel):
    """Schema for updating a member. Only keys present in the body are applied."""
    name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=320)
    role: Optional[MemberRole] = None
    github_id: Optional[str] = None
    google_id: Optional[str] = None
    photo_url: Optional[str] = None
    password_hash: Optional[str] = None


class MemberRead(MemberBase):
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime


# -- projects -----------------------------------------------------------------


class ProjectBase(SQLModel):
    name: str = Field(max_length=200)
    description: Optional[str] = Field(default=None)
    owner_id: uuid.UUID = Field(foreign_key="members.id")


class Project(ProjectBase, table=True):
    """Project database table."""
    __tablename__ = "projects"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False
    )


class ProjectCreate(ProjectBase):
    pass


# -- tasks --------------------------------------------------------------------


class TaskBase(SQLModel):
    """Fields a caller supplies when creating a task."""
    title: str = Field(sa_type=Text)
    description: str = Field(default="", sa_type=Text)
    owner_id: uuid.UUID = Field(foreign_key="members.id")
    status: Optional[str] = Field(default=None, max_length=SHORT_STRING_MAX)
    priority: Optional[str] = Field(default=None, max_length=SHORT_STRING_MAX)
    due_date: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    project_id: Optional[uuid.UUID] = Field(default=None, foreign_key="projects.id")
    lead_id: Optional[uuid.UUID] = Field(default=None, foreign_key="members.id")
    parent_id: Optional[uuid.UUID] = Field(default=None, foreign_key="tasks.id")


class Task(TaskBase, table=True):
    """Task database table."""
    __tablename__ = "tasks"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False
    )
    labels: Optional[Any] = Field(default=None, sa_column=Column(JSON, nullable=True))
    count: int = Field(default=0, nullable=False)


TASK_COLUMNS = tuple(column.name for column in Task.__table__.columns)


class TaskCreate(TaskBase):
    """Schema for creating a task. Title and owner are required."""
    labels: Optional[Any] = None
    count: int = 0


class TaskUpdate(SQLModel):
    """Schema for updating a task.

    Every field is optional. A key left out of the request body is left
    untouched in storage; a key sent as ``null`` clears the column.
    """
    status: Optional[str] = Field(default=None, max_length=SHORT_STRING_MAX)
    priority: Optional[str] = Field(default=None, max_length=SHORT_STRING_MAX)
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    project_id: Optional[uuid.UUID] = None
    lead_id: Optional[uuid.UUID] = None
    parent_id: Optional[uuid.UUID] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")


# -- listing ------------------------------------------------------------------

FILTER_FIELDS = ("status", "priority", "owner_id", "project_id", "lead_id", "parent_id")
MEMBER_FILTER_FIELDS = ("name", "email", "role", "github_id", "google_id", "photo_url")
MEMBER_SORT_COLUMNS = tuple(
    column.name for column in Member.__table__.columns if column.name != "password_hash"
)


class _EqualityFilter(SQLModel):
    """Equality filter over the columns of one table.

    Plain fields are ANDed together with every ``and_`` sub-filter. When
    ``or_`` sub-filters are present they are ORed with each other, and that
    group is ORed with the AND group. Subclasses declare the fields plus
    their own ``and_`` / ``or_`` lists.
    """

    def _fields(self) -> tuple[str, ...]:
        raise NotImplementedError

    def _table(self):
        raise NotImplementedError

    def _equalities(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in self._fields()
            if getattr(self, name) is not None
        }

    def clause(self):
        """Compile to a SQLAlchemy boolean expression with bound parameters."""
        columns = self._table().c
        and_parts = [columns[name] == value for name, value in self._equalities().items()]
        and_parts.extend(sub.clause() for sub in self.and_)
        or_parts = [sub.clause() for sub in self.or_]

        if and_parts and or_parts:
            return or_(and_(*and_parts), or_(*or_parts))
        if or_parts:
            return or_(*or_parts)
        if and_parts:
            return and_(*and_parts)
        return true()

    def matches(self, record: Any) -> bool:
        """Evaluate the same expression against an object with the row's attributes."""
        and_parts = [
            getattr(record, name) == value
            for name, value in self._equalities().items()
        ]
        and_parts.extend(sub.matches(record) for sub in self.and_)
        or_parts = [sub.matches(record) for sub in self.or_]

        if and_parts and or_parts:
            return all(and_parts) or any(or_parts)
        if or_parts:
            return any(or_parts)
        return all(and_parts)


class TaskFilter(_EqualityFilter):
    status: Optional[str] = None
    priority: Optional[str] = None
    owner_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None
    lead_id: Optional[uuid.UUID] = None
    parent_id: Optional[uuid.UUID] = None
    and_: list["TaskFilter"] = Field(default_factory=list)
    or_: list["TaskFilter"] = Field(default_factory=list)

    def _fields(self) -> tuple[str, ...]:
        return FILTER_FIELDS

    def _table(self):
        return Task.__table__


class MemberFilter(_EqualityFilter):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[MemberRole] = None
    github_id: Optional[str] = None
    google_id: Optional[str] = None
    photo_url: Optional[str] = None
    and_: list["MemberFilter"] = Field(default_factory=list)
    or_: list["MemberFilter"] = Field(default_factory=list)

    def _fields(self) -> tuple[str, ...]:
        return MEMBER_FILTER_FIELDS

    def _table(self):
        return Member.__table__


TaskFilter.model_rebuild()
MemberFilter.model_rebuild()


class _Page(SQLModel):
    sort_by: Optional[str] = None
    sort_order: SortOrder = SortOrder.asc
    limit: int = Field(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT)
    offset: int = Field(default=0, ge=0)

    @classmethod
    def sort_columns(cls) -> tuple[str, ...]:
        raise NotImplementedError

    @field_validator("sort_by")
    @classmethod
    def validate_sort_by(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in cls.sort_columns():
            raise ValueError(f"Cannot sort by unknown column {v!r}")
        return v


class ListQuery(_Page):
    """Filtering, ordering and paging for task listings."""
    filter: Optional[TaskFilter] = None

    @classmethod
    def sort_columns(cls) -> tuple[str, ...]:
        return TASK_COLUMNS


class MemberListQuery(_Page):
    """Filtering, ordering and paging for member listings."""
    filter: Optional[MemberFilter] = None

    @classmethod
    def sort_columns(cls) -> tuple[str, ...]:
        return MEMBER_SORT_COLUMNS

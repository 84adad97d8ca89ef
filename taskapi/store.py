# taskapi/store.py
"""Storage collaborators for tasks, members and projects.

Routes and services depend on the abstract ``TaskStore`` / ``MemberStore``
interfaces and receive a concrete store through dependency injection.
``SQLTaskStore`` talks to a relational database through SQLAlchemy;
``InMemoryTaskStore`` keeps rows in a dict and enforces the same
non-null and foreign-key rules, for tests that do not need a database.

Every failure leaves the store as ``TaskNotFound``, ``ConstraintViolation``
or ``StorageUnavailable``; no retries happen at this layer.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Optional
from uuid import UUID

from sqlalchemy import Table, delete, update
from sqlalchemy.engine import Engine, RowMapping
from sqlalchemy.exc import (
    DataError,
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    StatementError,
    TimeoutError as PoolTimeoutError,
)
from sqlmodel import Session, select

from taskapi.config import TIMESTAMP_POLICIES, TIMESTAMP_POLICY
from taskapi.errors import ConstraintViolation, StorageUnavailable, TaskNotFound
from taskapi.models import (
    ListQuery,
    Member,
    MemberCreate,
    MemberListQuery,
    Project,
    ProjectCreate,
    SortOrder,
    Task,
    TaskCreate,
    utcnow,
)
from taskapi.patch import MemberPatch, TaskPatch

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _describe(exc: Exception) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


@contextmanager
def translate_errors(entity: str) -> Iterator[None]:
    """Re-raise driver errors as the store's error taxonomy."""
    try:
        yield
    except (IntegrityError, DataError) as exc:
        message = _describe(exc)
        logger.warning("Rejected %s write: %s", entity, message)
        raise ConstraintViolation(message) from exc
    except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
        logger.error("%s storage unavailable", entity, exc_info=True)
        raise StorageUnavailable(f"{entity} storage unavailable: {_describe(exc)}") from exc
    except DBAPIError:
        raise
    except StatementError as exc:
        # Bind processing refused the value before the driver saw it.
        message = _describe(exc)
        logger.warning("Rejected %s value: %s", entity, message)
        raise ConstraintViolation(f"Malformed value: {message}") from exc


def _check_policy(timestamp_policy: str) -> str:
    if timestamp_policy not in TIMESTAMP_POLICIES:
        raise ValueError(
            f"timestamp_policy must be one of {TIMESTAMP_POLICIES}, "
            f"got {timestamp_policy!r}"
        )
    return timestamp_policy


class TaskStore(ABC):
    """Persistence interface for tasks."""

    timestamp_policy: str
    _clock: Clock

    @abstractmethod
    def create(self, data: TaskCreate) -> Task:
        ...

    @abstractmethod
    def get(self, task_id: UUID) -> Task:
        """Return the task or raise ``TaskNotFound``."""

    @abstractmethod
    def list(self, query: Optional[ListQuery] = None) -> list[Task]:
        ...

    @abstractmethod
    def update(self, task_id: UUID, patch: TaskPatch) -> Task:
        """Apply a coalescing update and return the full updated row.

        Columns the patch leaves ``UNSET`` keep their stored value; columns
        set to ``None`` are cleared. Raises ``ConstraintViolation`` before
        touching storage when the patch nulls a non-null column,
        ``TaskNotFound`` when no row has ``task_id`` and
        ``StorageUnavailable`` when the store cannot be reached.
        """

    @abstractmethod
    def delete(self, task_id: UUID) -> Task:
        """Delete the task and return the row as it was."""

    def _update_values(self, task_id: UUID, patch: TaskPatch) -> dict[str, Any]:
        """Validate ``patch`` and apply the timestamp policy to its changes."""
        values = patch.validate()
        if self.timestamp_policy == "store":
            if "updated_at" in values:
                logger.debug(
                    "Ignoring caller updated_at for task %s under store policy",
                    task_id,
                )
            values["updated_at"] = self._clock()
        elif "updated_at" in values and values["updated_at"] is None:
            raise ConstraintViolation("updated_at cannot be null", field="updated_at")
        return values


class MemberStore(ABC):
    """Persistence interface for members."""

    @abstractmethod
    def create(self, data: MemberCreate) -> Member:
        ...

    @abstractmethod
    def get(self, member_id: UUID) -> Member:
        ...

    @abstractmethod
    def list(self, query: Optional[MemberListQuery] = None) -> list[Member]:
        ...

    @abstractmethod
    def update(self, member_id: UUID, patch: MemberPatch) -> Member:
        ...

    @abstractmethod
    def delete(self, member_id: UUID) -> Member:
        ...


# -- SQL ----------------------------------------------------------------------


class _SQLRowStore:
    """Shared SQL plumbing: single-statement UPDATE/DELETE ... RETURNING."""

    entity = "row"
    model: Any = None

    def __init__(self, engine: Engine, clock: Clock = utcnow) -> None:
        self._engine = engine
        self._clock = clock

    @property
    def table(self) -> Table:
        return self.model.__table__

    def _insert(self, obj):
        with translate_errors(self.entity), Session(self._engine) as session:
            session.add(obj)
            session.commit()
            session.refresh(obj)
        logger.info("Created %s %s", self.entity, obj.id)
        return obj

    def _get(self, row_id: UUID):
        with translate_errors(self.entity), Session(self._engine) as session:
            obj = session.get(self.model, row_id)
        if obj is None:
            raise TaskNotFound(self.entity, row_id)
        return obj

    def _update_returning(self, row_id: UUID, values: dict[str, Any]):
        statement = (
            update(self.table)
            .where(self.table.c.id == row_id)
            .values(**values)
            .returning(*self.table.c)
        )
        with translate_errors(self.entity), self._engine.begin() as conn:
            row = conn.execute(statement).mappings().first()
        if row is None:
            logger.info("Update of missing %s %s", self.entity, row_id)
            raise TaskNotFound(self.entity, row_id)
        logger.info("Updated %s %s fields=%s", self.entity, row_id, sorted(values))
        return self._from_row(row)

    def _delete_returning(self, row_id: UUID):
        statement = (
            delete(self.table)
            .where(self.table.c.id == row_id)
            .returning(*self.table.c)
        )
        with translate_errors(self.entity), self._engine.begin() as conn:
            row = conn.execute(statement).mappings().first()
        if row is None:
            raise TaskNotFound(self.entity, row_id)
        logger.info("Deleted %s %s", self.entity, row_id)
        return self._from_row(row)

    def _list(self, query):
        """Filter, order and page rows. NULLs sort last in either direction."""
        statement = select(self.model)
        if query.filter is not None:
            statement = statement.where(query.filter.clause())
        if query.sort_by:
            column = self.table.c[query.sort_by]
            ordered = column.desc() if query.sort_order == SortOrder.desc else column.asc()
            statement = statement.order_by(ordered.nulls_last())
        statement = statement.order_by(self.table.c.created_at, self.table.c.id)
        statement = statement.offset(query.offset).limit(query.limit)
        with translate_errors(self.entity), Session(self._engine) as session:
            return list(session.exec(statement).all())

    def _from_row(self, row: RowMapping):
        return self.model(**dict(row))


class SQLTaskStore(_SQLRowStore, TaskStore):
    """Task store backed by a SQLAlchemy engine."""

    entity = "task"
    model = Task

    def __init__(
        self,
        engine: Engine,
        timestamp_policy: str = TIMESTAMP_POLICY,
        clock: Clock = utcnow,
    ) -> None:
        super().__init__(engine, clock)
        self.timestamp_policy = _check_policy(timestamp_policy)

    def create(self, data: TaskCreate) -> Task:
        return self._insert(Task.model_validate(data))

    def get(self, task_id: UUID) -> Task:
        return self._get(task_id)

    def list(self, query: Optional[ListQuery] = None) -> list[Task]:
        return self._list(query or ListQuery())

    def update(self, task_id: UUID, patch: TaskPatch) -> Task:
        values = self._update_values(task_id, patch)
        if not values:
            return self.get(task_id)
        return self._update_returning(task_id, values)

    def delete(self, task_id: UUID) -> Task:
        return self._delete_returning(task_id)


class SQLMemberStore(_SQLRowStore, MemberStore):
    """Member store backed by a SQLAlchemy engine.

    Members always get ``updated_at`` stamped on update.
    """

    entity = "member"
    model = Member

    def create(self, data: MemberCreate) -> Member:
        return self._insert(Member.model_validate(data))

    def get(self, member_id: UUID) -> Member:
        return self._get(member_id)

    def list(self, query: Optional[MemberListQuery] = None) -> list[Member]:
        return self._list(query or MemberListQuery())

    def update(self, member_id: UUID, patch: MemberPatch) -> Member:
        values = patch.validate()
        values["updated_at"] = self._clock()
        return self._update_returning(member_id, values)

    def delete(self, member_id: UUID) -> Member:
        return self._delete_returning(member_id)


class SQLProjectStore(_SQLRowStore):
    """Minimal project store: projects are foreign-key targets for tasks."""

    entity = "project"
    model = Project

    def create(self, data: ProjectCreate) -> Project:
        return self._insert(Project.model_validate(data))

    def get(self, project_id: UUID) -> Project:
        return self._get(project_id)


# -- in-memory ----------------------------------------------------------------


class InMemoryTaskStore(TaskStore):
    """Dict-backed task store with the same contract as ``SQLTaskStore``.

    Foreign keys are checked against the ``members`` and ``projects`` id
    sets and the stored tasks. Rows are copied on the way in and out so
    callers never share state with the store.
    """

    def __init__(
        self,
        timestamp_policy: str = TIMESTAMP_POLICY,
        clock: Clock = utcnow,
        members: tuple = (),
        projects: tuple = (),
    ) -> None:
        self.timestamp_policy = _check_policy(timestamp_policy)
        self._clock = clock
        self.members: set[UUID] = set(members)
        self.projects: set[UUID] = set(projects)
        self._rows: dict[UUID, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def add_member(self, member_id: UUID) -> None:
        self.members.add(member_id)

    def add_project(self, project_id: UUID) -> None:
        self.projects.add(project_id)

    def _check_references(self, values: dict[str, Any]) -> None:
        targets = {
            "owner_id": self.members,
            "lead_id": self.members,
            "project_id": self.projects,
            "parent_id": self._rows,
        }
        for name, known in targets.items():
            value = values.get(name)
            if value is not None and value not in known:
                raise ConstraintViolation(
                    f"{name} references unknown id {value}", field=name
                )

    def create(self, data: TaskCreate) -> Task:
        row = Task.model_validate(data).model_dump()
        with self._lock:
            self._check_references(row)
            self._rows[row["id"]] = copy.deepcopy(row)
        logger.info("Created task %s", row["id"])
        return Task(**row)

    def get(self, task_id: UUID) -> Task:
        with self._lock:
            row = self._rows.get(task_id)
            if row is None:
                raise TaskNotFound("task", task_id)
            return Task(**copy.deepcopy(row))

    def list(self, query: Optional[ListQuery] = None) -> list[Task]:
        query = query or ListQuery()
        with self._lock:
            tasks = [Task(**copy.deepcopy(row)) for row in self._rows.values()]
        if query.filter is not None:
            tasks = [task for task in tasks if query.filter.matches(task)]
        tasks.sort(key=lambda task: (task.created_at, task.id))
        if query.sort_by:
            # Stable sorts keep the created_at/id tiebreak. NULLs go last in
            # either direction.
            present = [task for task in tasks if getattr(task, query.sort_by) is not None]
            missing = [task for task in tasks if getattr(task, query.sort_by) is None]
            present.sort(
                key=lambda task: getattr(task, query.sort_by),
                reverse=query.sort_order == SortOrder.desc,
            )
            tasks = present + missing
        return tasks[query.offset:query.offset + query.limit]

    def update(self, task_id: UUID, patch: TaskPatch) -> Task:
        values = self._update_values(task_id, patch)
        with self._lock:
            row = self._rows.get(task_id)
            if row is None:
                logger.info("Update of missing task %s", task_id)
                raise TaskNotFound("task", task_id)
            self._check_references(values)
            updated = {**row, **copy.deepcopy(values)}
            self._rows[task_id] = updated
        if values:
            logger.info("Updated task %s fields=%s", task_id, sorted(values))
        return Task(**copy.deepcopy(updated))

    def delete(self, task_id: UUID) -> Task:
        with self._lock:
            row = self._rows.get(task_id)
            if row is None:
                raise TaskNotFound("task", task_id)
            children = [other for other in self._rows.values() if other["parent_id"] == task_id]
            if children:
                raise ConstraintViolation(
                    f"task {task_id} is the parent of {len(children)} task(s)",
                    field="parent_id",
                )
            del self._rows[task_id]
        logger.info("Deleted task %s", task_id)
        return Task(**row)

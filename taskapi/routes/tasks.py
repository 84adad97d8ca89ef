# taskapi/routes/tasks.py
"""CRUD endpoints for tasks."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from taskapi.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from taskapi.dependencies import build_query, get_task_store
from taskapi.models import (
    ListQuery,
    SortOrder,
    Task,
    TaskCreate,
    TaskFilter,
    TaskUpdate,
)
from taskapi.patch import TaskPatch
from taskapi.store import TaskStore

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("/")
def list_tasks(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    owner_id: Optional[uuid.UUID] = None,
    project_id: Optional[uuid.UUID] = None,
    lead_id: Optional[uuid.UUID] = None,
    parent_id: Optional[uuid.UUID] = None,
    sort_by: Optional[str] = None,
    sort_order: SortOrder = SortOrder.asc,
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(default=0, ge=0),
    store: TaskStore = Depends(get_task_store),
) -> list[Task]:
    """List tasks, optionally filtered by column equality, sorted and paged."""
    query = build_query(
        ListQuery,
        filter=TaskFilter(
            status=status,
            priority=priority,
            owner_id=owner_id,
            project_id=project_id,
            lead_id=lead_id,
            parent_id=parent_id,
        ),
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    return store.list(query)


@router.get("/{task_id}")
def get_task(task_id: uuid.UUID, store: TaskStore = Depends(get_task_store)) -> Task:
    """Get a single task by ID."""
    return store.get(task_id)


@router.post("/", status_code=201)
def create_task(body: TaskCreate, store: TaskStore = Depends(get_task_store)) -> Task:
    """Create a new task."""
    return store.create(body)


@router.patch("/{task_id}")
@router.put("/{task_id}")
def update_task(
    task_id: uuid.UUID, body: TaskUpdate, store: TaskStore = Depends(get_task_store)
) -> Task:
    """Update an existing task. Only provided fields are changed.

    A field sent as ``null`` clears the column; a field left out of the
    body keeps its stored value.
    """
    patch = TaskPatch.from_mapping(body.model_dump(exclude_unset=True))
    return store.update(task_id, patch)


@router.delete("/{task_id}")
def delete_task(task_id: uuid.UUID, store: TaskStore = Depends(get_task_store)) -> Task:
    """Delete a task by ID and return the deleted row."""
    return store.delete(task_id)

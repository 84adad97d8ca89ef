# taskapi/routes/projects.py
"""Endpoints for projects."""

import uuid

from fastapi import APIRouter, Depends

from taskapi.dependencies import get_project_store
from taskapi.models import Project, ProjectCreate
from taskapi.store import SQLProjectStore

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("/", status_code=201)
def create_project(
    body: ProjectCreate, store: SQLProjectStore = Depends(get_project_store)
) -> Project:
    return store.create(body)


@router.get("/{project_id}")
def get_project(
    project_id: uuid.UUID, store: SQLProjectStore = Depends(get_project_store)
) -> Project:
    return store.get(project_id)

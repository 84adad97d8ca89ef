# taskapi/routes/members.py
"""CRUD endpoints for members."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from taskapi.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from taskapi.dependencies import build_query, get_member_store
from taskapi.models import (
    MemberCreate,
    MemberFilter,
    MemberListQuery,
    MemberRead,
    MemberRole,
    MemberUpdate,
    SortOrder,
)
from taskapi.patch import MemberPatch
from taskapi.store import MemberStore

router = APIRouter(prefix="/api/members", tags=["members"])


@router.get("/", response_model=list[MemberRead])
def list_members(
    name: Optional[str] = None,
    email: Optional[str] = None,
    role: Optional[MemberRole] = None,
    github_id: Optional[str] = None,
    google_id: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: SortOrder = SortOrder.asc,
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(default=0, ge=0),
    store: MemberStore = Depends(get_member_store),
):
    """List members, optionally filtered by column equality, sorted and paged."""
    query = build_query(
        MemberListQuery,
        filter=MemberFilter(
            name=name,
            email=email,
            role=role,
            github_id=github_id,
            google_id=google_id,
        ),
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    return store.list(query)


@router.post("/", status_code=201, response_model=MemberRead)
def create_member(body: MemberCreate, store: MemberStore = Depends(get_member_store)):
    return store.create(body)


@router.get("/{member_id}", response_model=MemberRead)
def get_member(member_id: uuid.UUID, store: MemberStore = Depends(get_member_store)):
    return store.get(member_id)


@router.patch("/{member_id}", response_model=MemberRead)
def update_member(
    member_id: uuid.UUID,
    body: MemberUpdate,
    store: MemberStore = Depends(get_member_store),
):
    """Update a member. Only provided fields are changed."""
    patch = MemberPatch.from_mapping(body.model_dump(exclude_unset=True))
    return store.update(member_id, patch)


@router.delete("/{member_id}", response_model=MemberRead)
def delete_member(member_id: uuid.UUID, store: MemberStore = Depends(get_member_store)):
    return store.delete(member_id)

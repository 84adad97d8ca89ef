# taskapi/dependencies.py
"""FastAPI dependencies that hand a store to each request."""

from typing import TypeVar

from fastapi import Depends
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from taskapi.database import get_engine
from taskapi.store import (
    MemberStore,
    SQLMemberStore,
    SQLProjectStore,
    SQLTaskStore,
    TaskStore,
)

QueryT = TypeVar("QueryT", bound=SQLModel)


def get_task_store(engine: Engine = Depends(get_engine)) -> TaskStore:
    return SQLTaskStore(engine)


def get_member_store(engine: Engine = Depends(get_engine)) -> MemberStore:
    return SQLMemberStore(engine)


def get_project_store(engine: Engine = Depends(get_engine)) -> SQLProjectStore:
    return SQLProjectStore(engine)


def build_query(model: type[QueryT], **params) -> QueryT:
    """Build a list query from query-string parameters.

    Validation failures surface as FastAPI's regular 422 response, with each
    error located under ``query``.
    """
    try:
        return model(**params)
    except ValidationError as exc:
        errors = [
            {**error, "loc": ("query", *error["loc"])}
            for error in exc.errors(include_url=False, include_context=False)
        ]
        raise RequestValidationError(errors) from exc

# taskapi/main.py
"""FastAPI application for the task service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskapi.config import CORS_ORIGINS, LOG_LEVEL
from taskapi.database import create_db_and_tables, engine
from taskapi.errors import ConstraintViolation, StorageUnavailable, TaskNotFound
from taskapi.logging_setup import configure_logging
from taskapi.routes.members import router as members_router
from taskapi.routes.projects import router as projects_router
from taskapi.routes.tasks import router as tasks_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and create database tables on startup."""
    configure_logging(LOG_LEVEL)
    create_db_and_tables(engine)
    yield


app = FastAPI(title="Task Service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type"],
)

app.include_router(members_router)
app.include_router(projects_router)
app.include_router(tasks_router)


@app.exception_handler(TaskNotFound)
async def not_found_handler(request: Request, exc: TaskNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConstraintViolation)
async def constraint_violation_handler(request: Request, exc: ConstraintViolation):
    return JSONResponse(
        status_code=422, content={"detail": exc.message, "field": exc.field}
    )


@app.exception_handler(StorageUnavailable)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "taskapi"}

"""Tests specific to the SQL-backed stores."""

import logging
import uuid

import pytest
from pydantic import ValidationError
from sqlalchemy import select

from taskapi.database import build_engine
from taskapi.errors import ConstraintViolation, StorageUnavailable, TaskNotFound
from taskapi.models import (
    Member,
    MemberCreate,
    MemberFilter,
    MemberListQuery,
    MemberRole,
    SortOrder,
    Task,
    TaskCreate,
    TaskFilter,
)
from taskapi.patch import MemberPatch, TaskPatch
from taskapi.store import SQLMemberStore, SQLProjectStore, SQLTaskStore


@pytest.fixture(name="unreachable_store")
def unreachable_store_fixture(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'missing' / 'tasks.db'}")
    yield SQLTaskStore(engine)
    engine.dispose()


class TestStorageUnavailable:
    def test_update_reports_storage_unavailable(self, unreachable_store):
        with pytest.raises(StorageUnavailable):
            unreachable_store.update(uuid.uuid4(), TaskPatch(status="open"))

    def test_get_and_list_report_storage_unavailable(self, unreachable_store):
        with pytest.raises(StorageUnavailable):
            unreachable_store.get(uuid.uuid4())
        with pytest.raises(StorageUnavailable):
            unreachable_store.list()

    def test_null_title_fails_validation_before_reaching_storage(self, unreachable_store):
        with pytest.raises(ConstraintViolation):
            unreachable_store.update(uuid.uuid4(), TaskPatch(title=None))

    def test_outage_is_logged_as_error(self, unreachable_store, caplog):
        with caplog.at_level(logging.ERROR, logger="taskapi.store"):
            with pytest.raises(StorageUnavailable):
                unreachable_store.get(uuid.uuid4())
        assert any(record.levelno == logging.ERROR for record in caplog.records)


class TestSQLTaskStore:
    def test_rejects_unknown_timestamp_policy(self, engine):
        with pytest.raises(ValueError):
            SQLTaskStore(engine, timestamp_policy="sometimes")

    def test_update_is_logged_with_changed_fields(self, engine, owner, caplog):
        store = SQLTaskStore(engine)
        task = store.create(TaskCreate(title="Log me", owner_id=owner.id))

        with caplog.at_level(logging.INFO, logger="taskapi.store"):
            store.update(task.id, TaskPatch(status="open"))

        assert any("status" in record.getMessage() for record in caplog.records)

    def test_value_refused_by_bind_processing_is_a_constraint_violation(self, engine, owner):
        store = SQLTaskStore(engine)
        task = store.create(TaskCreate(title="Typed", owner_id=owner.id))

        with pytest.raises(ConstraintViolation):
            store._update_returning(task.id, {"due_date": "not-a-date"})

        assert store.get(task.id).due_date is None

    def test_filter_compiles_to_bound_parameters(self):
        clause = TaskFilter(status="open'; DROP TABLE tasks; --").clause()
        sql = str(select(Task).where(clause).compile())
        assert "DROP TABLE" not in sql
        assert ":status_1" in sql


class TestSQLMemberStore:
    def test_update_is_coalescing(self, engine, owner):
        store = SQLMemberStore(engine)

        updated = store.update(owner.id, MemberPatch(role=MemberRole.admin, photo_url="https://example.com/ada.png"))

        assert updated.role == MemberRole.admin
        assert updated.photo_url == "https://example.com/ada.png"
        assert updated.name == owner.name
        assert updated.email == owner.email

    def test_explicit_null_clears_optional_column(self, engine, owner):
        store = SQLMemberStore(engine)
        store.update(owner.id, MemberPatch(github_id="ada"))

        updated = store.update(owner.id, MemberPatch(github_id=None))

        assert updated.github_id is None

    def test_null_name_is_rejected(self, engine, owner):
        with pytest.raises(ConstraintViolation):
            SQLMemberStore(engine).update(owner.id, MemberPatch(name=None))

    def test_unknown_role_is_rejected(self, engine, owner):
        with pytest.raises(ConstraintViolation):
            SQLMemberStore(engine).update(owner.id, MemberPatch(role="superuser"))

    def test_duplicate_email_is_rejected(self, engine, owner):
        with pytest.raises(ConstraintViolation):
            SQLMemberStore(engine).create(MemberCreate(name="Imposter", email=owner.email))

    def test_missing_member_raises_not_found(self, engine):
        store = SQLMemberStore(engine)
        with pytest.raises(TaskNotFound) as excinfo:
            store.update(uuid.uuid4(), MemberPatch(name="Nobody"))
        assert excinfo.value.entity == "member"
        with pytest.raises(TaskNotFound):
            store.get(uuid.uuid4())

    def test_delete_member_owning_tasks_is_rejected(self, engine, owner):
        SQLTaskStore(engine).create(TaskCreate(title="Owned", owner_id=owner.id))
        with pytest.raises(ConstraintViolation):
            SQLMemberStore(engine).delete(owner.id)

    def test_delete_returns_member(self, engine, lead):
        store = SQLMemberStore(engine)
        deleted = store.delete(lead.id)
        assert deleted.email == lead.email
        with pytest.raises(TaskNotFound):
            store.get(lead.id)


class TestSQLMemberList:
    @pytest.fixture(name="members")
    def members_fixture(self, engine, owner, lead):
        store = SQLMemberStore(engine)
        store.update(owner.id, MemberPatch(role=MemberRole.admin, github_id="ada"))
        store.create(MemberCreate(name="Alan Turing", email="alan@example.com", role=MemberRole.guest))
        return store

    def test_lists_every_member_by_default(self, members):
        assert {m.email for m in members.list()} == {
            "ada@example.com",
            "grace@example.com",
            "alan@example.com",
        }

    def test_filters_by_column_equality(self, members):
        query = MemberListQuery(filter=MemberFilter(role=MemberRole.admin))
        assert [m.name for m in members.list(query)] == ["Ada Lovelace"]

    def test_and_group_is_ored_with_or_group(self, members):
        query = MemberListQuery(
            filter=MemberFilter(
                role=MemberRole.member,
                and_=[MemberFilter(email="grace@example.com")],
                or_=[MemberFilter(github_id="ada")],
            ),
            sort_by="name",
        )
        assert [m.name for m in members.list(query)] == ["Ada Lovelace", "Grace Hopper"]

    def test_sorts_and_pages(self, members):
        query = MemberListQuery(sort_by="name", sort_order=SortOrder.desc, limit=2, offset=1)
        assert [m.name for m in members.list(query)] == ["Alan Turing", "Ada Lovelace"]

    def test_password_hash_is_not_sortable(self):
        with pytest.raises(ValidationError):
            MemberListQuery(sort_by="password_hash")

    def test_filter_compiles_to_bound_parameters(self):
        clause = MemberFilter(email="x' OR '1'='1").clause()
        sql = str(select(Member).where(clause).compile())
        assert "OR '1'" not in sql
        assert ":email_1" in sql


class TestSQLProjectStore:
    def test_create_and_get(self, engine, project, owner):
        fetched = SQLProjectStore(engine).get(project.id)
        assert fetched.name == "Apollo"
        assert fetched.owner_id == owner.id

    def test_get_missing_raises_not_found(self, engine):
        with pytest.raises(TaskNotFound):
            SQLProjectStore(engine).get(uuid.uuid4())

"""Tests for the module-level engine and session scope."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from inventory_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from inventory_kernel.models.update_history import UpdateHistoryEntry


@pytest.fixture
def global_engine(tmp_path):
    engine = init_engine_from_url(f"sqlite:///{tmp_path / 'global.db'}")
    create_tables(engine)
    yield engine
    reset_engine()


def _entry(slug):
    return UpdateHistoryEntry(
        component_slug=slug,
        component_name=slug,
        previous_version="1",
        new_version="2",
        updated_on=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )


class TestModuleEngine:
    def test_uninitialized(self):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()
        with pytest.raises(RuntimeError):
            get_session_factory()

    def test_initialized(self, global_engine):
        assert get_engine() is global_engine
        assert get_session_factory()().bind is global_engine

    def test_session_scope_commits(self, global_engine):
        with session_scope() as session:
            session.add(_entry("kept"))

        with session_scope() as session:
            slugs = session.execute(select(UpdateHistoryEntry.component_slug)).scalars().all()
        assert slugs == ["kept"]

    def test_session_scope_rolls_back(self, global_engine):
        with pytest.raises(ValueError):
            with session_scope() as session:
                session.add(_entry("lost"))
                session.flush()
                raise ValueError("abort")

        with session_scope() as session:
            assert session.execute(select(UpdateHistoryEntry)).first() is None

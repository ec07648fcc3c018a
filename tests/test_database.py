import pytest
from sqlalchemy import inspect

from fanai.core import database
from fanai.core.database import init_db, make_engine


def test_init_db_creates_tables_on_given_engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'fresh.db'}")

    init_db(engine)

    assert {"users", "generations", "campaigns"} <= set(inspect(engine).get_table_names())
    engine.dispose()


def test_no_engine_is_created_at_import():
    assert not hasattr(database, "engine")
    assert not hasattr(database, "SessionLocal")
    with pytest.raises(TypeError):
        init_db()

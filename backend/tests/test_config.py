"""
Wiki Backend: Configuration Tests
=================================

What we test:
    ✅ Settings defaults and validation
    ✅ Driver override of the connection URL
    ✅ SQL query overrides loaded from a JSON file
    ✅ Engine creation warns about in-memory SQLite limits
"""

import json
import logging

import pytest
from pydantic import ValidationError

from wikiapp.config import Settings
from wikiapp.database import SqlQueries, create_wiki_engine, dispose_engine, load_sql_queries
from wikiapp.exceptions import ConfigurationError


class TestSettings:

    def test_defaults(self):
        s = Settings(_env_file=None, wikidb_url="sqlite+aiosqlite:///./db/wiki.db")

        assert s.wikidb_queue == "wikidb.queue"
        assert s.wikidb_max_pool_size == 30
        assert s.http_server_port == 8080
        assert s.sql_queries_file is None

    def test_driver_override_keeps_rest_of_url(self):
        s = Settings(
            wikidb_url="postgresql://wiki:secret@db:5432/wiki",
            wikidb_driver="postgresql+asyncpg",
        )

        url = s.database_url
        assert url.drivername == "postgresql+asyncpg"
        assert url.host == "db"
        assert url.database == "wiki"

    def test_log_level_is_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")

    def test_pool_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(wikidb_max_pool_size=0)


class TestSqlQueries:

    def test_no_file_gives_defaults(self):
        assert load_sql_queries(None) == SqlQueries()

    def test_partial_override(self, tmp_path):
        path = tmp_path / "queries.json"
        path.write_text(json.dumps({"all_pages": "SELECT Name FROM Pages ORDER BY Name"}))

        queries = load_sql_queries(str(path))

        assert queries.all_pages == "SELECT Name FROM Pages ORDER BY Name"
        assert queries.get_page == SqlQueries().get_page

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "queries.json"
        path.write_text(json.dumps({"rename_page": "UPDATE Pages SET Name = :name"}))

        with pytest.raises(ConfigurationError):
            load_sql_queries(str(path))

    def test_missing_file_rejected(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_sql_queries(str(tmp_path / "absent.json"))

        assert exc_info.value.context["path"].endswith("absent.json")

    def test_queries_are_immutable(self):
        queries = SqlQueries()

        with pytest.raises(ValidationError):
            queries.all_pages = "DROP TABLE Pages"


class TestEngine:

    @pytest.mark.asyncio
    async def test_memory_sqlite_warns_about_single_connection(self, caplog):
        s = Settings(wikidb_url="sqlite+aiosqlite:///:memory:")

        with caplog.at_level(logging.WARNING, logger="wikiapp.database"):
            engine = create_wiki_engine(s)
        await dispose_engine(engine)

        assert "single connection" in caplog.text
        assert "concurrent writes" in caplog.text

    @pytest.mark.asyncio
    async def test_file_sqlite_gets_a_pool_without_warning(self, tmp_path, caplog):
        s = Settings(
            wikidb_url=f"sqlite+aiosqlite:///{tmp_path / 'wiki.db'}",
            wikidb_max_pool_size=3,
        )

        with caplog.at_level(logging.WARNING, logger="wikiapp.database"):
            engine = create_wiki_engine(s)
        try:
            assert engine.pool.size() == 3
        finally:
            await dispose_engine(engine)

        assert "in-memory" not in caplog.text

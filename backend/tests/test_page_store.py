"""
Wiki Backend: Page Store Tests
==============================

What:  Tests for PageStore against a real SQLite file (aiosqlite).

What we test:
    ✅ Schema creation is idempotent
    ✅ Create / get / save / delete round trips
    ✅ Name uniqueness is enforced by the store
    ✅ Page names come back sorted regardless of insertion order
    ✅ Writes on unknown ids succeed without touching anything
    ✅ Driver failures surface as DatabaseError with the driver message
"""

import pytest

from wikiapp.database import SqlQueries
from wikiapp.exceptions import DatabaseError
from wikiapp.services.page_store import PageStore


class TestSchema:

    @pytest.mark.asyncio
    async def test_create_table_is_idempotent(self, page_store):
        """Running the create-if-not-exists statement again must not fail or wipe data."""
        await page_store.create_page("Home", "# Home")
        await page_store.create_table()

        assert await page_store.list_page_names() == ["Home"]

    @pytest.mark.asyncio
    async def test_empty_table_lists_nothing(self, page_store):
        assert await page_store.list_page_names() == []
        assert await page_store.list_all_page_records() == []


class TestPageLifecycle:

    @pytest.mark.asyncio
    async def test_create_then_get(self, page_store):
        await page_store.create_page("Home", "# Hi")

        lookup = await page_store.get_page("Home")

        assert lookup.found is True
        assert lookup.id > 0
        assert lookup.content == "# Hi"

    @pytest.mark.asyncio
    async def test_get_unknown_page_is_not_found(self, page_store):
        lookup = await page_store.get_page("Nowhere")

        assert lookup.found is False
        assert lookup.id == -1
        assert lookup.content == ""

    @pytest.mark.asyncio
    async def test_lookup_is_exact_match(self, page_store):
        await page_store.create_page("Home", "# Hi")

        assert (await page_store.get_page("home")).found is False
        assert (await page_store.get_page("Home ")).found is False

    @pytest.mark.asyncio
    async def test_save_updates_content_keeps_name_and_id(self, page_store):
        await page_store.create_page("Home", "v1")
        before = await page_store.get_page("Home")

        await page_store.save_page(before.id, "v2")

        after = await page_store.get_page("Home")
        assert after.content == "v2"
        assert after.id == before.id
        assert await page_store.list_page_names() == ["Home"]

    @pytest.mark.asyncio
    async def test_delete_removes_page(self, page_store):
        await page_store.create_page("Home", "# Hi")
        lookup = await page_store.get_page("Home")

        await page_store.delete_page(lookup.id)

        assert (await page_store.get_page("Home")).found is False
        assert await page_store.list_page_names() == []

    @pytest.mark.asyncio
    async def test_ids_are_distinct(self, page_store):
        await page_store.create_page("A", "a")
        await page_store.create_page("B", "b")

        a = await page_store.get_page("A")
        b = await page_store.get_page("B")
        assert a.id != b.id


class TestOrderingAndExport:

    @pytest.mark.asyncio
    async def test_names_sorted_regardless_of_insertion_order(self, page_store):
        await page_store.create_page("Zeta", "z")
        await page_store.create_page("Alpha", "a")
        await page_store.create_page("Mu", "m")

        assert await page_store.list_page_names() == ["Alpha", "Mu", "Zeta"]

    @pytest.mark.asyncio
    async def test_export_contains_every_page(self, page_store):
        await page_store.create_page("Zeta", "z")
        await page_store.create_page("Alpha", "a")

        records = await page_store.list_all_page_records()

        assert {(r.name, r.content) for r in records} == {("Zeta", "z"), ("Alpha", "a")}


class TestFailures:

    @pytest.mark.asyncio
    async def test_duplicate_name_fails(self, page_store):
        await page_store.create_page("Home", "first")

        with pytest.raises(DatabaseError) as exc_info:
            await page_store.create_page("Home", "second")

        assert "UNIQUE" in exc_info.value.message.upper()
        # The original page is untouched
        assert (await page_store.get_page("Home")).content == "first"

    @pytest.mark.asyncio
    async def test_save_unknown_id_is_silent_success(self, page_store):
        await page_store.create_page("Home", "# Hi")

        await page_store.save_page(9999, "ignored")

        assert (await page_store.get_page("Home")).content == "# Hi"

    @pytest.mark.asyncio
    async def test_delete_unknown_id_is_silent_success(self, page_store):
        await page_store.delete_page(9999)

    @pytest.mark.asyncio
    async def test_broken_query_raises_database_error(self, engine):
        """A statement the database rejects surfaces as DatabaseError, not a raw driver error."""
        store = PageStore(engine, SqlQueries(all_pages="SELECT Name FROM MissingTable"))
        await store.create_table()

        with pytest.raises(DatabaseError) as exc_info:
            await store.list_page_names()

        assert "MissingTable" in exc_info.value.message
        assert exc_info.value.context["operation"] == "list_page_names"

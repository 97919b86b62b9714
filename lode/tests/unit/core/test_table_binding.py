"""
Tests for the table binding.

Covers:
- reload replaces the dataset wholesale and tracks the loading status
- completions of a stale generation are discarded, success or failure
- failures surface as FAILED with a message
- focus narrows rows without refetching
- payload decoding
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from lode.core.events import TABLE_CHANGED
from lode.core.exceptions import TableLoadError
from lode.core.table_binding import (
    HttpDatasetFetcher,
    TableBinding,
    TableStatus,
    decode_payload,
)
from lode.models.map_definition import FieldSpec
from lode.models.search import SearchItem
from lode.tests.doubles import settle

ROWS_A = [{"csduid": "2410", "name": "Sample"}, {"csduid": "2411", "name": "Other"}]
ROWS_B = [{"csduid": 2410, "growth": 1.5}]


@pytest.fixture
def table(fetcher) -> TableBinding:
    return TableBinding(fetcher, root_url="https://data.example/", key_field="csduid")


# ============================================================================
# Reload
# ============================================================================


class TestReload:
    @pytest.mark.asyncio
    async def test_loads_dataset(self, table, fetcher):
        table.reload("a.json", generation=0)
        assert table.status is TableStatus.LOADING
        await settle()

        fetcher.resolve(0, ROWS_A)
        await settle()

        assert fetcher.urls == ["https://data.example/a.json"]
        assert table.status is TableStatus.LOADED
        assert table.rows() == ROWS_A
        assert [c.id for c in table.columns] == ["csduid", "name"]

    @pytest.mark.asyncio
    async def test_declared_columns_win(self, table, fetcher):
        table.reload("a.json", generation=0, columns=[FieldSpec(id="name", label="Name")])
        await settle()
        fetcher.resolve(0, ROWS_A)
        await settle()

        assert [c.label for c in table.columns] == ["Name"]

    @pytest.mark.asyncio
    async def test_no_url_means_empty(self, table, fetcher):
        assert table.reload(None, generation=0) is None

        assert table.status is TableStatus.EMPTY
        assert table.message == "No data to display."
        assert fetcher.requests == []

    @pytest.mark.asyncio
    async def test_reload_clears_previous_dataset(self, table, fetcher):
        table.reload("a.json", generation=0)
        await settle()
        fetcher.resolve(0, ROWS_A)
        await settle()

        table.reload("b.json", generation=1)

        assert table.dataset is None
        assert table.rows() == []
        assert table.status is TableStatus.LOADING

    @pytest.mark.asyncio
    async def test_stale_success_is_discarded(self, table, fetcher):
        table.reload("a.json", generation=1)
        table.reload("b.json", generation=2)
        await settle()

        fetcher.resolve(1, ROWS_B)
        await settle()
        fetcher.resolve(0, ROWS_A)
        await settle()

        assert table.status is TableStatus.LOADED
        assert table.dataset.url == "https://data.example/b.json"
        assert table.rows() == ROWS_B

    @pytest.mark.asyncio
    async def test_stale_failure_is_discarded(self, table, fetcher):
        table.reload("a.json", generation=1)
        table.reload("b.json", generation=2)
        await settle()

        fetcher.fail(0, TableLoadError("a.json", "HTTP 500"))
        await settle()

        assert table.status is TableStatus.LOADING

    @pytest.mark.asyncio
    async def test_failure_sets_failed_status(self, table, fetcher):
        table.reload("a.json", generation=0)
        await settle()

        fetcher.fail(0, TableLoadError("a.json", "HTTP 404"))
        await settle()

        assert table.status is TableStatus.FAILED
        assert table.message == "The table data failed to load."
        assert table.rows() == []

    @pytest.mark.asyncio
    async def test_undecodable_payload_fails(self, table, fetcher):
        table.reload("a.json", generation=0)
        await settle()

        fetcher.resolve(0, {"unexpected": True})
        await settle()

        assert table.status is TableStatus.FAILED

    @pytest.mark.asyncio
    async def test_malformed_column_declaration_fails(self, table, fetcher):
        table.reload("a.json", generation=0)
        await settle()

        fetcher.resolve(0, {"rows": [{"csduid": "1"}], "columns": [{"label": "no id"}]})
        await settle()

        assert table.status is TableStatus.FAILED
        assert table.message == "The table data failed to load."

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_fails(self, table, fetcher):
        table.reload("a.json", generation=0)
        await settle()

        fetcher.fail(0, httpx.InvalidURL("bad url"))
        await settle()

        assert table.status is TableStatus.FAILED
        assert table.rows() == []

    @pytest.mark.asyncio
    async def test_unexpected_error_of_stale_generation_is_discarded(self, table, fetcher):
        table.reload("a.json", generation=1)
        table.reload("b.json", generation=2)
        await settle()

        fetcher.fail(0, RuntimeError("connection reset"))
        await settle()

        assert table.status is TableStatus.LOADING

    @pytest.mark.asyncio
    async def test_changes_are_announced(self, table, fetcher):
        handler = MagicMock()
        table.on(TABLE_CHANGED, handler)

        table.reload("a.json", generation=0)
        await settle()
        fetcher.resolve(0, ROWS_A)
        await settle()

        assert handler.call_count == 2
        assert table.revision == 2


# ============================================================================
# Focus
# ============================================================================


class TestFocus:
    @pytest.mark.asyncio
    async def test_focus_filters_rows_without_refetch(self, table, fetcher):
        table.reload("a.json", generation=0)
        await settle()
        fetcher.resolve(0, ROWS_A)
        await settle()

        table.focus_row(SearchItem.from_row(["2411", "Other", 0, 0, 1, 1]))

        assert table.rows() == [{"csduid": "2411", "name": "Other"}]
        assert len(fetcher.requests) == 1

    @pytest.mark.asyncio
    async def test_focus_matches_numeric_keys(self, table, fetcher):
        table.reload("b.json", generation=0)
        await settle()
        fetcher.resolve(0, ROWS_B)
        await settle()

        table.focus_row(SearchItem.from_row(["2410", "Sample", 0, 0, 1, 1]))

        assert table.rows() == ROWS_B

    @pytest.mark.asyncio
    async def test_reload_drops_focus(self, table, fetcher):
        table.focus_row(SearchItem.from_row(["2410", "Sample", 0, 0, 1, 1]))

        table.reload("a.json", generation=1)

        assert table.focused_item is None


# ============================================================================
# decode_payload
# ============================================================================


class TestDecodePayload:
    def test_rows_and_columns_object(self):
        dataset = decode_payload(
            "u",
            {
                "columns": ["csduid", {"id": "growth", "label": "Growth", "type": "percent"}],
                "rows": ROWS_B,
            },
            (),
        )

        assert [c.id for c in dataset.columns] == ["csduid", "growth"]
        assert dataset.columns[1].type == "percent"
        assert dataset.frame.height == 1

    def test_data_key_is_accepted(self):
        assert decode_payload("u", {"data": ROWS_A}, ()).frame.height == 2

    def test_non_record_payload_rejected(self):
        with pytest.raises(TableLoadError):
            decode_payload("u", [1, 2, 3], ())

    def test_non_list_columns_rejected(self):
        with pytest.raises(TableLoadError, match="columns must be a list"):
            decode_payload("u", {"rows": ROWS_A, "columns": "csduid"}, ())

    def test_invalid_column_rejected(self):
        with pytest.raises(TableLoadError, match="invalid column"):
            decode_payload("u", {"rows": ROWS_A, "columns": [{"label": "no id"}]}, ())


# ============================================================================
# HttpDatasetFetcher
# ============================================================================


class TestHttpDatasetFetcher:
    @pytest.mark.asyncio
    async def test_returns_json_payload(self):
        response = MagicMock()
        response.json.return_value = ROWS_A

        with patch("lode.core.table_binding.httpx.AsyncClient") as mock_client:
            client = mock_client.return_value.__aenter__.return_value
            client.get = AsyncMock(return_value=response)
            payload = await HttpDatasetFetcher().fetch("https://data.example/a.json")

        assert payload == ROWS_A
        client.get.assert_awaited_once_with("https://data.example/a.json")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [httpx.InvalidURL("bad url"), httpx.ConnectError("unreachable")],
    )
    async def test_transport_errors_become_table_load_errors(self, error):
        with patch("lode.core.table_binding.httpx.AsyncClient") as mock_client:
            client = mock_client.return_value.__aenter__.return_value
            client.get = AsyncMock(side_effect=error)

            with pytest.raises(TableLoadError):
                await HttpDatasetFetcher().fetch("https://data.example/a.json")

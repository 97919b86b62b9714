"""
Table binding: the tabular presentation of the active map's dataset.

``reload`` fetches the dataset of a map and replaces the bound table
wholesale. Fetches are tagged with the generation of the map switch that
started them; a completion whose generation is not the latest one is
discarded, so a slow response for a previous map never overwrites the
table of the current map. Fetch failures put the table in an explicit
``FAILED`` state instead of leaving it silently empty.
"""

import asyncio
import json
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

import httpx
import polars as pl
from pydantic import ValidationError

from lode.configs.logging_init import logger
from lode.core.events import TABLE_CHANGED, Evented
from lode.core.exceptions import TableLoadError
from lode.core.nls import NlsCatalog
from lode.models.map_definition import FieldSpec
from lode.models.search import SearchItem


class TableStatus(StrEnum):
    EMPTY = "empty"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class TableDataset:
    url: str
    columns: tuple[FieldSpec, ...]
    frame: pl.DataFrame


class DatasetFetcher(Protocol):
    async def fetch(self, url: str) -> Any: ...


class HttpDatasetFetcher:
    """Fetch JSON payloads over HTTP(S), or from disk for local configurations."""

    def __init__(self, timeout: float = 30.0, base_dir: Path | None = None):
        self.timeout = timeout
        self.base_dir = base_dir

    async def fetch(self, url: str) -> Any:
        if not url.startswith(("http://", "https://")):
            return await asyncio.to_thread(self._read_file, url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise TableLoadError(url, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TableLoadError(url, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise TableLoadError(url, f"invalid JSON: {e}") from e

    def _read_file(self, url: str) -> Any:
        path = Path(url.removeprefix("file://"))
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except OSError as e:
            raise TableLoadError(url, str(e)) from e
        except json.JSONDecodeError as e:
            raise TableLoadError(url, f"invalid JSON: {e}") from e


def _declared_columns(url: str, raw: Any) -> list[FieldSpec]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise TableLoadError(url, f"columns must be a list, got {type(raw).__name__}")
    try:
        return [
            FieldSpec(id=c, label=c) if isinstance(c, str) else FieldSpec.model_validate(c)
            for c in raw
        ]
    except ValidationError as e:
        raise TableLoadError(url, f"invalid column: {e.errors()[0]['msg']}") from e


def decode_payload(
    url: str, payload: Any, columns: Sequence[FieldSpec]
) -> TableDataset:
    """Decode a list of records, or ``{"rows"|"data": records, "columns": [...]}``."""
    declared: list[FieldSpec] = []
    records = payload
    if isinstance(payload, dict):
        records = payload.get("rows", payload.get("data"))
        declared = _declared_columns(url, payload.get("columns"))

    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise TableLoadError(url, "expected a list of records")

    try:
        frame = pl.DataFrame(records, infer_schema_length=None)
    except (pl.exceptions.PolarsError, TypeError, ValueError) as e:
        raise TableLoadError(url, f"records could not be tabulated: {e}") from e

    resolved = list(columns) or declared or [FieldSpec(id=c, label=c) for c in frame.columns]
    return TableDataset(url=url, columns=tuple(resolved), frame=frame)


class TableBinding(Evented):
    def __init__(
        self,
        fetcher: DatasetFetcher,
        root_url: str = "",
        key_field: str = "id",
        nls: NlsCatalog | None = None,
    ):
        super().__init__()
        self._fetcher = fetcher
        self._root_url = root_url
        self._key_field = key_field
        self._nls = nls or NlsCatalog()

        self._latest_generation: int | None = None
        self._status = TableStatus.EMPTY
        self._dataset: TableDataset | None = None
        self._focused: SearchItem | None = None
        self._message: str | None = None
        self._task: asyncio.Task | None = None
        self._revision = 0

    @property
    def status(self) -> TableStatus:
        return self._status

    @property
    def dataset(self) -> TableDataset | None:
        return self._dataset

    @property
    def focused_item(self) -> SearchItem | None:
        return self._focused

    @property
    def message(self) -> str | None:
        return self._message

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def key_field(self) -> str:
        return self._key_field

    @property
    def columns(self) -> tuple[FieldSpec, ...]:
        return self._dataset.columns if self._dataset else ()

    def url_for(self, table_url: str) -> str:
        return f"{self._root_url}{table_url}"

    def reload(
        self, table_url: str | None, generation: int, columns: Sequence[FieldSpec] = ()
    ) -> asyncio.Task | None:
        """Drop the bound table and start fetching the dataset of generation ``generation``."""
        self._latest_generation = generation
        self._dataset = None
        self._focused = None

        if not table_url:
            self._set_status(TableStatus.EMPTY, self._nls("Table_Empty"))
            return None

        url = self.url_for(table_url)
        self._set_status(TableStatus.LOADING, self._nls("Table_Loading"))
        logger.debug(f"Fetching table dataset {url} (generation {generation})")
        self._task = asyncio.get_running_loop().create_task(
            self._load(url, generation, tuple(columns))
        )
        return self._task

    async def _load(self, url: str, generation: int, columns: tuple[FieldSpec, ...]) -> None:
        try:
            payload = await self._fetcher.fetch(url)
            dataset = decode_payload(url, payload, columns)
        except TableLoadError as e:
            if generation != self._latest_generation:
                logger.debug(f"Discarded failed fetch of stale generation {generation}: {e}")
                return
            logger.warning(str(e))
            self._set_status(TableStatus.FAILED, self._nls("Table_Failed"))
            return
        except Exception:
            if generation != self._latest_generation:
                logger.debug(f"Discarded failed fetch of stale generation {generation}")
                return
            logger.exception(f"Unexpected error while loading table dataset {url}")
            self._set_status(TableStatus.FAILED, self._nls("Table_Failed"))
            return

        if generation != self._latest_generation:
            logger.debug(
                f"Discarded table dataset of generation {generation} "
                f"(current generation is {self._latest_generation})"
            )
            return

        self._dataset = dataset
        logger.debug(f"Table dataset loaded: {dataset.frame.height} rows from {url}")
        self._set_status(TableStatus.LOADED, None)

    def focus_row(self, item: SearchItem) -> None:
        """Narrow the table to the searched unit, keeping the loaded dataset."""
        self._focused = item
        self._changed()

    def rows(self) -> list[dict[str, Any]]:
        if self._dataset is None:
            return []
        frame = self._dataset.frame
        if self._focused is not None and self._key_field in frame.columns:
            frame = frame.filter(pl.col(self._key_field).cast(pl.Utf8) == self._focused.id)
        return frame.to_dicts()

    def _set_status(self, status: TableStatus, message: str | None) -> None:
        self._status = status
        self._message = message
        self._changed()

    def _changed(self) -> None:
        self._revision += 1
        self.emit(TABLE_CHANGED, self)

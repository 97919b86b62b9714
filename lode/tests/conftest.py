import pytest

from lode.models.map_definition import MapConfigCatalog
from lode.models.search import SearchConfig
from lode.tests.doubles import RAW_MAPS, SEARCH_ROWS, GatedFetcher, RecordingEngine, ViewHarness


@pytest.fixture
def catalog() -> MapConfigCatalog:
    return MapConfigCatalog.from_config(RAW_MAPS)


@pytest.fixture
def search_config() -> SearchConfig:
    return SearchConfig(items=SEARCH_ROWS, field="csduid", layer="csd-fill")


@pytest.fixture
def engine() -> RecordingEngine:
    return RecordingEngine()


@pytest.fixture
def fetcher() -> GatedFetcher:
    return GatedFetcher()


@pytest.fixture
def make_view(catalog, search_config, engine, fetcher):
    """Build a view harness; keyword arguments are passed to ``ViewHarness``."""

    def _make(**kwargs) -> ViewHarness:
        return ViewHarness(catalog, search_config, engine, fetcher, **kwargs)

    return _make

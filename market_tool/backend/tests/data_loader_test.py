import asyncio

import httpx
import pytest

from data_loader import (
    ECONOMICS_TABLE,
    MARKET_TABLE,
    OPPORTUNITY_TABLE,
    DataLoadError,
    DataStore,
    DirectoryTableSource,
    HttpTableSource,
    source_from_environment,
)
from models import ClassificationMode, GlobalFilterSpec, ScoringConfig


class CountingSource:
    """In-memory source that counts fetches and can fail selected tables."""

    def __init__(self, tables: dict[str, str], failing: set[str] = frozenset(), delay: float = 0.0):
        self.tables = tables
        self.failing = set(failing)
        self.delay = delay
        self.fetches: list[str] = []

    async def fetch(self, name: str) -> str:
        self.fetches.append(name)
        await asyncio.sleep(self.delay)
        if name in self.failing or name not in self.tables:
            raise FileNotFoundError(name)
        return self.tables[name]


@pytest.fixture
def tables(market_csv, opportunity_csv, economics_csv) -> dict[str, str]:
    return {
        MARKET_TABLE: market_csv,
        OPPORTUNITY_TABLE: opportunity_csv,
        ECONOMICS_TABLE: economics_csv,
    }


# ============================================================================
# Load Lifecycle
# ============================================================================

def test_load_is_single_flight(tables):
    source = CountingSource(tables, delay=0.01)
    store = DataStore(source)

    async def run():
        await asyncio.gather(store.load(), store.load(), store.load())
        await store.load()

    asyncio.run(run())

    assert store.is_loaded
    assert source.fetches.count(MARKET_TABLE) == 1
    assert source.fetches.count(OPPORTUNITY_TABLE) == 1


def test_reload_fetches_again(tables):
    source = CountingSource(tables)
    store = DataStore(source)

    async def run():
        await store.load()
        await store.reload()

    asyncio.run(run())

    assert store.is_loaded
    assert source.fetches.count(MARKET_TABLE) == 2


def test_failed_load_leaves_store_unloaded_and_retries(tables):
    source = CountingSource(tables, failing={OPPORTUNITY_TABLE})
    store = DataStore(source)

    with pytest.raises(DataLoadError):
        asyncio.run(store.load())
    assert not store.is_loaded

    source.failing.clear()
    asyncio.run(store.load())
    assert store.is_loaded


def test_missing_economics_degrades_to_empty(tables):
    del tables[ECONOMICS_TABLE]
    store = DataStore(CountingSource(tables))
    asyncio.run(store.load())

    assert store.is_loaded
    assert store.get_all_economics() == []
    assert store.get_economics("TX-Dallas-Fort Worth-Arlington") is None


def test_load_without_source_raises():
    with pytest.raises(DataLoadError):
        asyncio.run(DataStore().load())


def test_access_before_load_raises():
    store = DataStore()
    assert not store.is_loaded
    with pytest.raises(RuntimeError, match="Data not loaded"):
        store.get_market_rows()
    with pytest.raises(RuntimeError):
        store.score_markets()


# ============================================================================
# Table Sources
# ============================================================================

def test_directory_source_reads_tables(tmp_path, tables):
    for name, text in tables.items():
        (tmp_path / name).write_text(text, encoding="utf-8")
    store = DataStore(DirectoryTableSource(tmp_path))
    asyncio.run(store.load())

    assert store.market_count == 4
    assert store.economics_count == 2


def test_directory_source_missing_table(tmp_path):
    store = DataStore(DirectoryTableSource(tmp_path))
    with pytest.raises(DataLoadError):
        asyncio.run(store.load())


def test_http_source(tables):
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        name = request.url.path.rsplit("/", 1)[-1]
        requested.append(str(request.url))
        if name not in tables:
            return httpx.Response(404)
        return httpx.Response(200, text=tables[name])

    source = HttpTableSource("https://data.example.com/tables/", transport=httpx.MockTransport(handler))
    store = DataStore(source)
    asyncio.run(store.load())

    assert store.is_loaded
    assert store.opportunity_count == 5
    assert "https://data.example.com/tables/attractivenes.csv" in requested


def test_http_source_error_status_fails_load():
    source = HttpTableSource(
        "https://data.example.com",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    with pytest.raises(DataLoadError):
        asyncio.run(DataStore(source).load())


def test_source_from_environment(monkeypatch, tmp_path):
    monkeypatch.delenv("MARKET_DATA_URL", raising=False)
    monkeypatch.setenv("MARKET_DATA_DIR", str(tmp_path))
    source = source_from_environment()
    assert isinstance(source, DirectoryTableSource)
    assert source.path == tmp_path

    monkeypatch.setenv("MARKET_DATA_URL", "https://data.example.com")
    assert isinstance(source_from_environment(), HttpTableSource)


# ============================================================================
# Views
# ============================================================================

def test_deposits_are_hidden_from_views(loaded_store):
    assert all(r.product != "Deposits" for r in loaded_store.get_market_rows())
    assert all(r.product != "Deposits" for r in loaded_store.get_opportunity_rows())
    deposits = loaded_store.get_deposit_rows()
    assert len(deposits) == 1
    assert deposits[0].product == "Deposits"


def test_get_opportunity_rows_uses_loaded_categories(loaded_store):
    rows = loaded_store.get_opportunity_rows()
    assert [r.overall_rank for r in rows] == [1, 2, 3, 4]
    assert rows[0].attractiveness_category == "Highly Attractive"

    filtered = loaded_store.get_opportunity_rows(GlobalFilterSpec(selected_regions=["Mideast"]))
    assert len(filtered) == 1


def test_exclusion_flag_hides_opportunities(market_csv):
    opportunity_csv = (
        "Provider,MSA,Product,Market Share,Market Size,Defend $,Exclusion,Included_In_Ranking,Overall_Opportunity_Rank\n"
        "Bank A,TX-Dallas-Fort Worth-Arlington,Lending,0.2,1000000,50000,FALSE,TRUE,1\n"
        "Bank B,TX-Dallas-Fort Worth-Arlington,Lending,0.1,1000000,10000,TRUE,TRUE,2\n"
    )
    store = DataStore()
    store.load_from_text(market_csv, opportunity_csv)

    assert [r.provider for r in store.get_opportunity_rows()] == ["Bank A"]
    _, opportunities = store.get_market_details("TX-Dallas-Fort Worth-Arlington")
    assert [o.provider for o in opportunities] == ["Bank A"]


def test_filter_bucket_ranges_exclude_deposits(loaded_store):
    ranges = loaded_store.get_filter_bucket_ranges()
    assert ranges.market_size.range.min == 500000.0
    assert ranges.market_size.range.max == 3000000.0
    assert ranges.market_size.total_count == 4


def test_score_markets_memoizes_last_config(loaded_store):
    first = loaded_store.score_markets()
    again = loaded_store.score_markets(ScoringConfig())
    assert first == again
    assert first[0] is again[0]

    threshold = loaded_store.score_markets(ScoringConfig(mode=ClassificationMode.THRESHOLD))
    assert threshold[0] is not first[0]


def test_score_markets_default_categories(loaded_store):
    scored = {r.market_id.split("-")[0]: r for r in loaded_store.score_markets()}
    assert scored["TX"].attractiveness_score == 1.68
    assert scored["TX"].attractiveness_category == "Highly Attractive"
    assert scored["IL"].attractiveness_category == "Attractive"
    assert scored["NY"].attractiveness_category == "Neutral"
    assert scored["CA"].attractiveness_category == "Challenging"


def test_market_details(loaded_store):
    markets, opportunities = loaded_store.get_market_details("TX-Dallas-Fort Worth-Arlington")
    assert [m.product for m in markets] == ["Lending"]
    assert [o.provider for o in opportunities] == ["Bank B", "Bank A"]

    assert loaded_store.get_market_details("ZZ-Nowhere") == ([], [])


def test_economics_lookup(loaded_store):
    economics = loaded_store.get_economics("NY-NJ-New York-Newark-Jersey City")
    assert economics is not None
    assert economics.market_id == "NY-New York-Newark"
    assert loaded_store.get_economics("CA-Fresno") is None


def test_summary(loaded_store):
    summary = loaded_store.get_summary()
    assert summary.market_overview.total_markets == 4
    assert summary.market_overview.total_providers == 3
    assert summary.targeted_opportunities.highly_attractive_markets == 1
    assert summary.targeted_opportunities.excellent_opportunities == 1
    assert summary.risk_pricing.premium_markets == 1

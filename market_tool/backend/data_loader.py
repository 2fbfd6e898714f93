"""
Data loading for the market attractiveness engine.
Fetches the market, opportunity and economics tables, parses them into typed
rows and serves scored, filtered and ranked views of the in-memory dataset.
"""
import asyncio
import logging
import os
from pathlib import Path
from typing import Protocol, Sequence

import httpx

from csv_parser import parse_table
from economics import find_economics, parse_economics
from filters import apply_global_filter, compute_filter_bucket_ranges
from metrics import compute_summary
from models import (
    BucketAssignment,
    EconomicsRow,
    FilterBucketRanges,
    GlobalFilterSpec,
    MarketRow,
    OpportunityRow,
    ScoringConfig,
    SummaryData,
)
from ranking import RankedOpportunities, rank_opportunities, sort_by_overall_rank
from scoring import score_markets

logger = logging.getLogger(__name__)


# ============================================================================
# Table Names
# ============================================================================

MARKET_TABLE = "attractivenes.csv"
OPPORTUNITY_TABLE = "opportunity.csv"
ECONOMICS_TABLE = "msa_economics.csv"

# Deposit rows are reported separately and never ranked
DEPOSITS_PRODUCT = "Deposits"


class DataLoadError(Exception):
    """A required table could not be fetched."""


# ============================================================================
# Table Sources
# ============================================================================

class TableSource(Protocol):
    async def fetch(self, name: str) -> str:
        ...


class DirectoryTableSource:
    """Reads tables from a local directory (file reads run in a worker thread)."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def fetch(self, name: str) -> str:
        table_path = self.path / name
        if not table_path.exists():
            raise FileNotFoundError(f"Table not found: {table_path}")
        # utf-8-sig drops the BOM spreadsheet exports put in front of the header
        return await asyncio.to_thread(table_path.read_text, encoding="utf-8-sig")

    def __repr__(self) -> str:
        return f"DirectoryTableSource({str(self.path)!r})"


class HttpTableSource:
    """Fetches tables as static files below a base URL."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, name: str) -> str:
        url = f"{self.base_url}/{name}"
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self.transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.text

    def __repr__(self) -> str:
        return f"HttpTableSource({self.base_url!r})"


def source_from_environment() -> TableSource:
    """
    Resolve the table source from the environment.

    MARKET_DATA_URL wins over MARKET_DATA_DIR; the default is the data/
    directory in the project root (two levels up from backend).
    """
    base_url = os.environ.get("MARKET_DATA_URL")
    if base_url:
        return HttpTableSource(base_url)

    data_dir = os.environ.get("MARKET_DATA_DIR")
    if data_dir:
        return DirectoryTableSource(data_dir)

    backend_dir = Path(__file__).parent
    project_root = backend_dir.parent.parent
    return DirectoryTableSource(project_root / "data")


# ============================================================================
# Data Store
# ============================================================================

class DataStore:
    """
    Holds the loaded dataset and derives scored and ranked views from it.

    Loading is single-flight: concurrent load() calls share one in-flight
    task. Loaded rows are never mutated; every view is a fresh copy.
    """

    def __init__(self, source: TableSource | None = None):
        self.source = source
        self.markets: list[MarketRow] = []
        self.opportunities: list[OpportunityRow] = []
        self.economics: list[EconomicsRow] = []
        self.bucket_ranges = FilterBucketRanges()
        self._loaded = False
        self._load_task: asyncio.Task | None = None
        # (config key, scored rows) for the last configuration only
        self._score_cache: tuple[str, list[MarketRow]] | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        """
        Load every table once.

        Returns immediately when already loaded. Callers arriving while a load
        is running await that same load. A failed load leaves the store
        unloaded so the next call retries.

        Raises:
            DataLoadError: The market or opportunity table could not be fetched.
        """
        if self._loaded:
            return
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._fetch_and_load())
            self._load_task.add_done_callback(self._clear_load_task)
        await asyncio.shield(self._load_task)

    async def reload(self) -> None:
        """Drop the current dataset and load again."""
        self.clear()
        await self.load()

    def clear(self) -> None:
        self.markets = []
        self.opportunities = []
        self.economics = []
        self.bucket_ranges = FilterBucketRanges()
        self._score_cache = None
        self._loaded = False

    def _clear_load_task(self, task: asyncio.Task) -> None:
        if self._load_task is task:
            self._load_task = None

    async def _fetch_and_load(self) -> None:
        if self.source is None:
            raise DataLoadError("No table source configured")

        logger.info("Loading market tables from %r", self.source)
        try:
            market_text, opportunity_text = await asyncio.gather(
                self.source.fetch(MARKET_TABLE),
                self.source.fetch(OPPORTUNITY_TABLE),
            )
        except (OSError, UnicodeDecodeError, httpx.HTTPError) as exc:
            raise DataLoadError(f"Failed to load market tables: {exc}") from exc

        economics_text: str | None
        try:
            economics_text = await self.source.fetch(ECONOMICS_TABLE)
        except (OSError, UnicodeDecodeError, httpx.HTTPError) as exc:
            logger.warning("Economics table unavailable, continuing without it: %s", exc)
            economics_text = None

        self.load_from_text(market_text, opportunity_text, economics_text)

    def load_from_text(
        self,
        market_text: str,
        opportunity_text: str,
        economics_text: str | None = None,
    ) -> None:
        """
        Parse raw table text and replace the current dataset.

        Args:
            market_text: Attractiveness table CSV
            opportunity_text: Opportunity table CSV
            economics_text: Optional MSA economics CSV
        """
        markets = [MarketRow.from_record(record) for record in parse_table(market_text)]
        opportunities = [OpportunityRow.from_record(record) for record in parse_table(opportunity_text)]
        economics = parse_economics(economics_text) if economics_text else []

        self.markets = markets
        self.opportunities = opportunities
        self.economics = economics
        self.bucket_ranges = compute_filter_bucket_ranges(self._market_view())
        self._score_cache = None
        self._loaded = True

        logger.info("Loaded %d market rows", len(markets))
        logger.info("  Opportunities: %d", len(opportunities))
        logger.info("  Economics: %d", len(economics))

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise RuntimeError("Data not loaded")

    def _market_view(self) -> list[MarketRow]:
        return [row for row in self.markets if row.product != DEPOSITS_PRODUCT]

    def _opportunity_view(self) -> list[OpportunityRow]:
        return [row for row in self.opportunities if row.product != DEPOSITS_PRODUCT]

    # ------------------------------------------------------------------
    # Counts
    # ------------------------------------------------------------------

    @property
    def market_count(self) -> int:
        return len(self._market_view())

    @property
    def opportunity_count(self) -> int:
        return len(self._opportunity_view())

    @property
    def economics_count(self) -> int:
        return len(self.economics)

    # ------------------------------------------------------------------
    # Row Access
    # ------------------------------------------------------------------

    def get_market_rows(self) -> list[MarketRow]:
        """Market rows as loaded (deposit rows excluded)."""
        self._require_loaded()
        return self._market_view()

    def get_deposit_rows(self) -> list[MarketRow]:
        self._require_loaded()
        return [row for row in self.markets if row.product == DEPOSITS_PRODUCT]

    def get_opportunity_rows(
        self,
        filter_spec: GlobalFilterSpec | None = None,
        bucket_assignments: Sequence[BucketAssignment] = (),
    ) -> list[OpportunityRow]:
        """
        Ranked opportunities joined to the loaded market categories.

        Args:
            filter_spec: Optional global filter
            bucket_assignments: Exclusions to apply

        Returns:
            Opportunities included in ranking and not flagged for exclusion, ordered by overall rank
        """
        self._require_loaded()
        return rank_opportunities(
            self._opportunity_view(),
            self._market_view(),
            filter_spec,
            bucket_assignments,
            self.bucket_ranges,
        ).rows

    def get_filter_bucket_ranges(self) -> FilterBucketRanges:
        self._require_loaded()
        return self.bucket_ranges

    def get_economics(self, market_id: str) -> EconomicsRow | None:
        self._require_loaded()
        return find_economics(self.economics, market_id)

    def get_all_economics(self) -> list[EconomicsRow]:
        self._require_loaded()
        return list(self.economics)

    def get_products(self) -> list[str]:
        self._require_loaded()
        return sorted({row.product for row in self._market_view() if row.product})

    # ------------------------------------------------------------------
    # Scored Views
    # ------------------------------------------------------------------

    def score_markets(self, config: ScoringConfig | None = None) -> list[MarketRow]:
        """
        Rescore every market under a configuration.

        The result for the most recent configuration is cached; a different
        configuration replaces it.
        """
        self._require_loaded()
        config = config or ScoringConfig()
        key = config.cache_key()
        if self._score_cache is not None and self._score_cache[0] == key:
            logger.debug("Score cache hit")
            return list(self._score_cache[1])

        scored = score_markets(self._market_view(), config)
        self._score_cache = (key, scored)
        return list(scored)

    def filter_markets(
        self,
        config: ScoringConfig | None = None,
        filter_spec: GlobalFilterSpec | None = None,
    ) -> list[MarketRow]:
        """Scored markets passing the global filter and the config's exclusions."""
        config = config or ScoringConfig()
        return apply_global_filter(
            self.score_markets(config),
            filter_spec,
            config.bucket_assignments,
            self.bucket_ranges,
        )

    def rank_opportunities(
        self,
        config: ScoringConfig | None = None,
        filter_spec: GlobalFilterSpec | None = None,
        included_only: bool = True,
    ) -> RankedOpportunities:
        """Rank opportunities against markets scored under the given configuration."""
        config = config or ScoringConfig()
        return rank_opportunities(
            self._opportunity_view(),
            self.score_markets(config),
            filter_spec,
            config.bucket_assignments,
            self.bucket_ranges,
            included_only=included_only,
        )

    def get_market_details(
        self,
        market_id: str,
        config: ScoringConfig | None = None,
    ) -> tuple[list[MarketRow], list[OpportunityRow]]:
        """
        Every product row for one market plus that market's opportunities.

        Opportunities are ranked within the market, including rows not flagged
        for the global ranking; rows flagged in the Exclusion column are left
        out. Both lists are empty for an unknown market.
        """
        markets = [row for row in self.score_markets(config) if row.market_id == market_id]
        opportunities = [row for row in self._opportunity_view() if row.market_id == market_id]
        ranked = rank_opportunities(opportunities, markets, included_only=False)
        return markets, sort_by_overall_rank(ranked.rows)

    def get_summary(self, config: ScoringConfig | None = None) -> SummaryData:
        markets = self.score_markets(config)
        ranked = self.rank_opportunities(config)
        return compute_summary(markets, ranked.rows, self._opportunity_view())


# Global data store instance
data_store = DataStore()


def get_data_store() -> DataStore:
    """Get the global data store instance."""
    return data_store

"""
FastAPI application for the MSA market attractiveness engine.
Provides endpoints for market scoring, opportunity ranking and economics lookup.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from classifier import ATTRACTIVENESS_CATEGORIES, category_counts
from data_loader import DataLoadError, DataStore, get_data_store, source_from_environment
from models import (
    ConfigResponse,
    DimensionInfo,
    EconomicsRow,
    HealthResponse,
    MarketDetailResponse,
    MarketsResponse,
    OpportunitiesResponse,
    OpportunityRequest,
    OpportunityRow,
    ScoreRequest,
    SummaryData,
)
from normalizer import DIMENSION_SPECS
from ranking import sort_rows
from regions import REGIONS
from scoring import DEFAULT_BUCKET_ASSIGNMENTS, DEFAULT_BUCKET_WEIGHTS, DEFAULT_WEIGHTS

logger = logging.getLogger(__name__)

# Columns POST /opportunities accepts in sort_by
SORTABLE_COLUMNS = set(OpportunityRow.model_fields) - {"labels", "extras"}


def create_app(store: DataStore | None = None) -> FastAPI:
    """
    Build the API around a data store.

    Args:
        store: Store to serve; the module-level store if omitted. A store
            without a table source gets one from the environment on startup.
    """
    store = store if store is not None else get_data_store()

    # ========================================================================
    # Application Lifecycle
    # ========================================================================

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load data on startup."""
        if not store.is_loaded:
            if store.source is None:
                store.source = source_from_environment()
            try:
                await store.load()
            except DataLoadError as exc:
                logger.warning("%s", exc)
                logger.warning("API will start but data endpoints will fail until data is loaded.")
        yield

    app = FastAPI(
        title="MSA Market Attractiveness API",
        description="Backend API for market attractiveness scoring and opportunity ranking",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Configure CORS for frontend development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173", "http://localhost:5174"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def require_loaded() -> DataStore:
        if not store.is_loaded:
            raise HTTPException(status_code=503, detail="Data not loaded.")
        return store

    # ========================================================================
    # Health Check
    # ========================================================================

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Simple health check endpoint."""
        return HealthResponse(status="ok", loaded=store.is_loaded)

    # ========================================================================
    # Configuration
    # ========================================================================

    @app.get("/config", response_model=ConfigResponse)
    async def get_config():
        """
        Get scoring defaults, scored dimensions, filter bounds and data counts.
        """
        loaded = require_loaded()
        dimensions = [
            DimensionInfo(id=spec.dimension, label=spec.label, inverse=spec.inverse)
            for spec in DIMENSION_SPECS.values()
        ]
        return ConfigResponse(
            dimensions=dimensions,
            default_weights=DEFAULT_WEIGHTS,
            default_bucket_assignments=DEFAULT_BUCKET_ASSIGNMENTS,
            default_bucket_weights=DEFAULT_BUCKET_WEIGHTS,
            filter_buckets=loaded.get_filter_bucket_ranges(),
            regions=REGIONS,
            products=loaded.get_products(),
            market_count=loaded.market_count,
            opportunity_count=loaded.opportunity_count,
            economics_count=loaded.economics_count,
        )

    # ========================================================================
    # Markets
    # ========================================================================

    @app.post("/markets/score", response_model=MarketsResponse)
    async def score_markets(request: ScoreRequest):
        """
        Rescore all markets under a what-if configuration and apply the global filter.
        """
        loaded = require_loaded()
        markets = loaded.filter_markets(request.config, request.filters)
        counts = category_counts(
            [row.attractiveness_category for row in markets],
            ATTRACTIVENESS_CATEGORIES,
        )
        return MarketsResponse(markets=markets, category_counts=counts)

    @app.get("/markets/{market_id:path}", response_model=MarketDetailResponse)
    async def get_market(market_id: str):
        """Every product row for one market with its ranked opportunities."""
        loaded = require_loaded()
        markets, opportunities = loaded.get_market_details(market_id)
        if not markets and not opportunities:
            raise HTTPException(status_code=404, detail=f"Unknown market: {market_id}")
        return MarketDetailResponse(
            market_id=market_id,
            attractiveness=markets,
            opportunities=opportunities,
        )

    # ========================================================================
    # Opportunities
    # ========================================================================

    @app.post("/opportunities", response_model=OpportunitiesResponse)
    async def get_opportunities(request: OpportunityRequest):
        """
        Rank opportunities against markets scored under the request configuration.
        The category counts cover the full ranked set, not just the returned page.
        """
        loaded = require_loaded()
        if request.sort_by is not None and request.sort_by not in SORTABLE_COLUMNS:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid sort_by. Must be one of: {sorted(SORTABLE_COLUMNS)}"
            )

        ranked = loaded.rank_opportunities(request.config, request.filters, request.included_only)
        rows = ranked.top()
        if request.sort_by is not None:
            rows = sort_rows(rows, request.sort_by, request.descending)
        if request.limit is not None:
            rows = rows[:request.limit]

        return OpportunitiesResponse(
            total=len(ranked),
            opportunities=rows,
            category_counts=ranked.category_counts(),
        )

    # ========================================================================
    # Economics & Summary
    # ========================================================================

    @app.get("/economics/{market_id:path}", response_model=EconomicsRow)
    async def get_economics(market_id: str):
        loaded = require_loaded()
        economics = loaded.get_economics(market_id)
        if economics is None:
            raise HTTPException(status_code=404, detail=f"No economics data for market: {market_id}")
        return economics

    @app.get("/summary", response_model=SummaryData)
    async def get_summary():
        """Headline statistics under the default scoring configuration."""
        return require_loaded().get_summary()

    return app


# ============================================================================
# FastAPI Application
# ============================================================================

app = create_app()


# ============================================================================
# Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)

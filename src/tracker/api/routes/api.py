"""JSON API endpoints for technical analysis, watchlist results and provider coordination state."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from tracker.analysis.summary import format_summary
from tracker.logging import get_logger
from tracker.market_data.aliases import normalize_asset_id

log = get_logger(__name__)

router = APIRouter()


@router.get("/analysis/{asset_id}")
async def get_analysis(
    request: Request,
    asset_id: str,
    price: float = Query(..., gt=0, description="Current USD price of the asset"),
    fmt: str = Query("json", alias="format", pattern="^(json|text)$"),
) -> Response:
    """Run one technical analysis.

    Returns the full indicator set as JSON, or the plain-text summary
    with ``format=text``.
    """
    orchestrator = request.app.state.orchestrator
    indicators = await orchestrator.analyze(asset_id, price)
    log.info(
        "api_analysis_served",
        asset_id=asset_id,
        quality=indicators.overall_quality.value,
    )
    if fmt == "text":
        return PlainTextResponse(format_summary(indicators))
    return JSONResponse(content=indicators.to_dict())


@router.get("/watchlist")
async def get_watchlist(request: Request) -> JSONResponse:
    """Latest watchlist scan results keyed by asset id."""
    scanner = request.app.state.scanner
    if scanner is None:
        return JSONResponse(content={"enabled": False, "results": {}})
    return JSONResponse(content={
        "enabled": True,
        "running": scanner.is_running,
        "results": {
            asset_id: indicators.to_dict()
            for asset_id, indicators in scanner.results.items()
        },
    })


@router.get("/rate-gate")
async def get_rate_gate(request: Request) -> JSONResponse:
    """Current rate gate state (interval, next slot, intensive holder)."""
    return JSONResponse(content=await request.app.state.rate_gate.status())


@router.get("/cache/stats")
async def get_cache_stats(request: Request) -> JSONResponse:
    """Cache request, hit and miss counters plus entries per kind."""
    stats = request.app.state.cache.stats()
    return JSONResponse(content={**asdict(stats), "hit_ratio": stats.hit_ratio})


@router.delete("/cache/{asset_id}")
async def clear_asset_cache(request: Request, asset_id: str) -> JSONResponse:
    """Manual refresh: drop every cached result for one asset."""
    removed = request.app.state.cache.clear_asset(normalize_asset_id(asset_id))
    return JSONResponse(content={"asset_id": asset_id, "removed": removed})

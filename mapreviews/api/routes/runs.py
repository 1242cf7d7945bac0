"""Run endpoints for the mapreviews API.

A run is driven in two asynchronous steps: discovery (``POST /runs``) and,
after the caller picks places, scraping (``POST /runs/{run_id}/scrape``).
Clients poll ``GET /runs/{run_id}`` for stage and progress.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, Response

from mapreviews.api.dependencies import get_controller, get_registry, RunRegistry
from mapreviews.api.models import (
    ErrorResponse,
    ProgressResponse,
    RunAccepted,
    RunStatusResponse,
    ScrapeRequest,
)
from mapreviews.delivery.export import to_csv, to_json
from mapreviews.models.schemas import RunArtifact, SearchRequest
from mapreviews.orchestration.pipeline import PipelineController, RunContext

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/runs", tags=["Runs"])


def _get_run_or_404(run_id: str, registry: RunRegistry) -> RunContext:
    ctx = registry.get(run_id)
    if ctx is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    return ctx


def _artifact_or_409(ctx: RunContext) -> RunArtifact:
    artifact = ctx.artifact
    if artifact is None:
        raise HTTPException(
            status_code=409,
            detail=f"Run {ctx.run_id} has no results (stage {ctx.stage.value})",
        )
    return artifact


def _status_response(ctx: RunContext) -> RunStatusResponse:
    last = ctx.events.last
    return RunStatusResponse(
        run_id=ctx.run_id,
        stage=ctx.stage.value,
        mode=ctx.mode,
        progress=ProgressResponse(**last.to_dict()) if last else None,
        candidates=ctx.candidates,
        selected_count=len(ctx.selected),
        error=ctx.error,
        created_at=ctx.created_at,
        updated_at=ctx.updated_at,
    )


@router.post(
    "",
    response_model=RunAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a run",
    description="Validate a search and start discovery in the background.",
    responses={
        400: {"model": ErrorResponse, "description": "Empty brand name or no valid URL"},
        503: {"model": ErrorResponse, "description": "Apify token not configured"},
    },
)
async def start_run(
    request: SearchRequest,
    controller: PipelineController = Depends(get_controller),
    registry: RunRegistry = Depends(get_registry),
) -> RunAccepted:
    """
    Start a new run.

    **Brand mode** searches Google Maps for the brand; **URL mode** parses the
    given links. Either way the run ends in SELECTING.
    """
    controller.validate_request(request)

    ctx = registry.add(RunContext())
    registry.spawn(ctx.run_id, controller.discover(request, ctx=ctx))
    logger.info("run_accepted", run_id=ctx.run_id, mode=request.mode.value)
    return RunAccepted(run_id=ctx.run_id, stage=ctx.stage.value)


@router.get(
    "/{run_id}",
    response_model=RunStatusResponse,
    summary="Get run status",
    responses={404: {"model": ErrorResponse, "description": "Run not found"}},
)
async def get_run(
    run_id: str,
    registry: RunRegistry = Depends(get_registry),
) -> RunStatusResponse:
    """Stage, latest progress event, candidates and error of a run."""
    return _status_response(_get_run_or_404(run_id, registry))


@router.post(
    "/{run_id}/scrape",
    response_model=RunAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Scrape selected places",
    responses={
        400: {"model": ErrorResponse, "description": "Empty selection"},
        404: {"model": ErrorResponse, "description": "Run not found"},
        409: {"model": ErrorResponse, "description": "Run is not waiting for a selection"},
        503: {"model": ErrorResponse, "description": "Required credential not configured"},
    },
)
async def scrape_run(
    run_id: str,
    body: ScrapeRequest,
    controller: PipelineController = Depends(get_controller),
    registry: RunRegistry = Depends(get_registry),
) -> RunAccepted:
    """
    Scrape reviews for the selected candidates, then optionally run AI analysis.

    **Parameters:**
    - **selectedPlaceIds**: ids from the run's candidates
    - **maxReviews**: reviews per place
    - **enrich**: run AI analysis
    - **sampling**: send a sample of reviews to the AI
    """
    ctx = _get_run_or_404(run_id, registry)
    if registry.is_busy(run_id):
        raise HTTPException(status_code=409, detail=f"Run {run_id} is busy ({ctx.stage.value})")

    controller.validate_scrape(ctx, body.selected_place_ids, enrich=body.enrich)

    registry.spawn(
        run_id,
        controller.scrape(
            ctx,
            body.selected_place_ids,
            max_reviews=body.max_reviews,
            enrich=body.enrich,
            sampling=body.sampling,
        ),
    )
    return RunAccepted(run_id=run_id, stage=ctx.stage.value)


@router.get(
    "/{run_id}/results",
    summary="Get run results",
    responses={
        404: {"model": ErrorResponse, "description": "Run not found"},
        409: {"model": ErrorResponse, "description": "Run not finished"},
    },
)
async def get_results(
    run_id: str,
    registry: RunRegistry = Depends(get_registry),
) -> JSONResponse:
    """Places with reviews and aggregate statistics of a finished run."""
    artifact = _artifact_or_409(_get_run_or_404(run_id, registry))
    return JSONResponse(content=artifact.to_json_dict())


@router.get(
    "/{run_id}/export.csv",
    summary="Export reviews as CSV",
    response_class=Response,
)
async def export_csv(
    run_id: str,
    registry: RunRegistry = Depends(get_registry),
) -> Response:
    artifact = _artifact_or_409(_get_run_or_404(run_id, registry))
    return Response(
        content=to_csv(artifact),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="reviews-{run_id}.csv"'},
    )


@router.get(
    "/{run_id}/export.json",
    summary="Export results as JSON",
    response_class=Response,
)
async def export_json(
    run_id: str,
    registry: RunRegistry = Depends(get_registry),
) -> Response:
    artifact = _artifact_or_409(_get_run_or_404(run_id, registry))
    return Response(
        content=to_json(artifact),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="reviews-{run_id}.json"'},
    )

"""
FastAPI application for the position-scoped ballot service.

Thin translation layer: validates request shape, forwards to the vote
recorder or the voter status reader, and maps their classified outcomes to
HTTP status codes.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Path, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import Histogram, generate_latest, CONTENT_TYPE_LATEST
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .catalog import PositionCatalog, resolve_catalog
from .config import settings
from .database import Database
from .errors import NotFoundError, StoreUnavailableError
from .models import MAX_ROW_ID, ErrorKind
from .recorder import VoteRecorder
from .schemas import (
    BallotInfo,
    CandidateInfo,
    CastVoteRequest,
    CastVoteResponse,
    ElectionResultsResponse,
    ErrorResponse,
    HealthResponse,
    PositionsResponse,
    VotedPositionsResponse,
    VotingProgressResponse,
)
from .status import VoterStatusReader

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Prometheus metrics
request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"]
)

# Rate limiter
limiter = Limiter(key_func=get_remote_address)

API_PREFIX = f"/api/{settings.API_VERSION}"

HTTP_STATUS_BY_ERROR = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.NOT_ELIGIBLE: status.HTTP_403_FORBIDDEN,
    ErrorKind.ALREADY_VOTED: status.HTTP_409_CONFLICT,
    ErrorKind.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info(f"Starting {settings.SERVICE_NAME} service...")

    database = Database(settings)
    try:
        await database.initialize()

        if settings.AUTO_CREATE_SCHEMA:
            await database.create_schema()

        catalog = await resolve_catalog(
            database, settings.CATALOG_SOURCE, settings.POSITION_CATALOG
        )

        app.state.database = database
        app.state.catalog = catalog
        app.state.recorder = VoteRecorder(
            database,
            catalog,
            max_retries=settings.VOTE_MAX_RETRIES,
            retry_delay=settings.VOTE_RETRY_DELAY_SECONDS
        )
        app.state.status_reader = VoterStatusReader(database, catalog)

        logger.info(f"{settings.SERVICE_NAME} started successfully")

    except Exception as e:
        logger.error(f"Failed to start {settings.SERVICE_NAME}: {e}")
        await database.close()
        raise

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.SERVICE_NAME} service...")
    await database.close()
    logger.info(f"{settings.SERVICE_NAME} shut down successfully")


# Create FastAPI app
app = FastAPI(
    title="Ballot API",
    description="Position-scoped vote recording and voter status",
    version=settings.API_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def prometheus_middleware(request: Request, call_next):
    """Middleware to track request duration."""
    started = time.perf_counter()
    response = await call_next(request)
    request_duration.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code
    ).observe(time.perf_counter() - started)
    return response


# Dependencies: components are owned by the lifespan and live on app.state

def get_database(request: Request) -> Database:
    return request.app.state.database


def get_catalog(request: Request) -> PositionCatalog:
    return request.app.state.catalog


def get_recorder(request: Request) -> VoteRecorder:
    return request.app.state.recorder


def get_status_reader(request: Request) -> VoterStatusReader:
    return request.app.state.status_reader


def _read_failure(e: Exception, what: str) -> HTTPException:
    """Translate a reader/store exception into an HTTPException."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, StoreUnavailableError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=e.message,
            headers={"Retry-After": "1"}
        )
    logger.error(f"Error getting {what}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error"
    )


@app.post(
    f"{API_PREFIX}/votes",
    response_model=CastVoteResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": CastVoteResponse, "description": "Account may not vote"},
        404: {"model": CastVoteResponse, "description": "Voter, candidate or position not found"},
        409: {"model": CastVoteResponse, "description": "Already voted for this position"},
        429: {"description": "Rate limit exceeded"},
        503: {"model": CastVoteResponse, "description": "Ballot store unavailable, retry"}
    }
)
@limiter.limit(settings.RATE_LIMIT)
async def cast_vote(
    request: Request,
    vote: CastVoteRequest,
    recorder: VoteRecorder = Depends(get_recorder)
):
    """
    Cast a ballot for a candidate.

    - **voter_id**: Voter account ID
    - **candidate_id**: Candidate ID; the ballot counts toward the
      candidate's position

    One ballot per voter per position. A second ballot for the same
    position returns 409 with error `already_voted`.
    """
    result = await recorder.cast_vote(vote.voter_id, vote.candidate_id)
    body = CastVoteResponse(**result.to_dict())

    if result.success:
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=body.model_dump(mode="json")
        )

    headers = {"Retry-After": "1"} if result.error == ErrorKind.STORE_UNAVAILABLE else None
    return JSONResponse(
        status_code=HTTP_STATUS_BY_ERROR[result.error],
        content=body.model_dump(mode="json"),
        headers=headers
    )


@app.get(
    f"{API_PREFIX}/voters/{{voter_id}}/positions",
    response_model=VotedPositionsResponse,
    responses={404: {"model": ErrorResponse, "description": "Voter not found"}}
)
async def get_voted_positions(
    voter_id: int = Path(..., gt=0, le=MAX_ROW_ID),
    reader: VoterStatusReader = Depends(get_status_reader),
    catalog: PositionCatalog = Depends(get_catalog)
) -> VotedPositionsResponse:
    """Get the positions a voter has already voted for."""
    try:
        voted = await reader.get_voted_positions(voter_id)
    except Exception as e:
        raise _read_failure(e, f"voted positions for voter {voter_id}")

    # Positions outside the catalog cannot be voted; list them last if present.
    ordered = catalog.ordered(voted) + sorted(p for p in voted if p not in catalog)
    return VotedPositionsResponse(voter_id=voter_id, positions=ordered)


@app.get(
    f"{API_PREFIX}/voters/{{voter_id}}/progress",
    response_model=VotingProgressResponse,
    responses={404: {"model": ErrorResponse, "description": "Voter not found"}}
)
async def get_voting_progress(
    voter_id: int = Path(..., gt=0, le=MAX_ROW_ID),
    reader: VoterStatusReader = Depends(get_status_reader)
) -> VotingProgressResponse:
    """Get how many catalog positions a voter has completed."""
    try:
        progress = await reader.get_voting_progress(voter_id)
    except Exception as e:
        raise _read_failure(e, f"progress for voter {voter_id}")

    return VotingProgressResponse(voter_id=voter_id, **progress.to_dict())


@app.get(
    f"{API_PREFIX}/voters/{{voter_id}}/ballots",
    response_model=list[BallotInfo],
    responses={404: {"model": ErrorResponse, "description": "Voter not found"}}
)
async def get_voter_ballots(
    voter_id: int = Path(..., gt=0, le=MAX_ROW_ID),
    reader: VoterStatusReader = Depends(get_status_reader)
) -> list[BallotInfo]:
    """Get a voter's ballots, newest first."""
    try:
        ballots = await reader.get_ballots(voter_id)
    except Exception as e:
        raise _read_failure(e, f"ballots for voter {voter_id}")

    return [BallotInfo(**ballot) for ballot in ballots]


@app.get(f"{API_PREFIX}/positions", response_model=PositionsResponse)
async def get_positions(catalog: PositionCatalog = Depends(get_catalog)) -> PositionsResponse:
    """Get the position catalog for this election."""
    return PositionsResponse(positions=list(catalog))


@app.get(f"{API_PREFIX}/candidates", response_model=list[CandidateInfo])
async def get_candidates(
    position: Optional[str] = None,
    database: Database = Depends(get_database)
) -> list[CandidateInfo]:
    """Get candidates with their tallies, optionally for one position."""
    try:
        candidates = await database.get_candidates(position)
    except Exception as e:
        raise _read_failure(e, "candidates")

    return [CandidateInfo(**candidate) for candidate in candidates]


@app.get(
    f"{API_PREFIX}/candidates/{{candidate_id}}",
    response_model=CandidateInfo,
    responses={404: {"model": ErrorResponse, "description": "Candidate not found"}}
)
async def get_candidate(
    candidate_id: int = Path(..., gt=0, le=MAX_ROW_ID),
    database: Database = Depends(get_database)
) -> CandidateInfo:
    """Get a single candidate."""
    try:
        candidate = await database.get_candidate(candidate_id)
    except Exception as e:
        raise _read_failure(e, f"candidate {candidate_id}")

    if candidate is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Candidate {candidate_id} not found"
        )
    return CandidateInfo(**candidate)


@app.get(f"{API_PREFIX}/results", response_model=ElectionResultsResponse)
async def get_results(
    database: Database = Depends(get_database),
    catalog: PositionCatalog = Depends(get_catalog)
) -> ElectionResultsResponse:
    """Get tallies grouped by position, in catalog order."""
    try:
        results = await database.get_results(list(catalog))
    except Exception as e:
        raise _read_failure(e, "results")

    return ElectionResultsResponse(**results)


@app.get(
    f"{API_PREFIX}/health",
    response_model=HealthResponse,
    responses={
        503: {"model": HealthResponse, "description": "Service unhealthy"}
    }
)
async def health_check(database: Database = Depends(get_database)) -> HealthResponse:
    """Check health of the service and its ballot store."""
    services = {}

    try:
        postgres_healthy = await database.check_health()
        services["postgresql"] = "connected" if postgres_healthy else "disconnected"
    except Exception as e:
        logger.error(f"PostgreSQL health check error: {e}")
        services["postgresql"] = "error"

    all_healthy = all(state == "connected" for state in services.values())

    response = HealthResponse(
        status="healthy" if all_healthy else "unhealthy",
        services=services,
        timestamp=datetime.utcnow()
    )

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json")
    )


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.API_VERSION,
        "status": "running",
        "endpoints": {
            "cast_vote": f"{API_PREFIX}/votes",
            "voted_positions": f"{API_PREFIX}/voters/{{voter_id}}/positions",
            "voting_progress": f"{API_PREFIX}/voters/{{voter_id}}/progress",
            "voter_ballots": f"{API_PREFIX}/voters/{{voter_id}}/ballots",
            "positions": f"{API_PREFIX}/positions",
            "candidates": f"{API_PREFIX}/candidates",
            "candidate": f"{API_PREFIX}/candidates/{{candidate_id}}",
            "results": f"{API_PREFIX}/results",
            "health": f"{API_PREFIX}/health",
            "metrics": "/metrics"
        }
    }


def run():
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "ballot_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )


if __name__ == "__main__":
    run()

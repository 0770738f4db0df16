"""FastAPI REST API for the PolyPact reasoning core."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..api import PolyPact, __version__
from ..core.utils import AuthError, AuthorizationError, NotFoundError, utc_now_iso
from .auth import TokenVerifier, parse_bearer
from .config import ServiceConfig, get_config
from .models import (
    AnalyzeRequestModel,
    ChatRequestModel,
    CompareRequestModel,
    ErrorResponse,
    HealthResponse,
    RedraftRequestModel,
    ResearchRequestModel,
    SuccessEnvelope,
)

logger = logging.getLogger(__name__)

VERSION = __version__


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    config: ServiceConfig = app.state.config

    # Validate config on startup
    errors = config.validate()
    if errors and not config.debug:
        for error in errors:
            logger.error(f"Config error: {error}")

    if app.state.polypact is None:
        app.state.polypact = PolyPact(config)
    app.state.polypact.start()

    logger.info(f"PolyPact Service v{VERSION} starting...")
    logger.info(f"General model: {config.general_model}")
    logger.info(f"Research model: {config.research_model} via {config.research_provider}")

    yield

    # Flush pending summaries and close clients
    logger.info("Shutting down...")
    await app.state.polypact.close()


# === DEPENDENCIES ===


def get_polypact(request: Request) -> PolyPact:
    return request.app.state.polypact


def require_uid(request: Request) -> str:
    """Resolve the caller's uid from the bearer token."""
    verifier: TokenVerifier = request.app.state.verifier
    token = parse_bearer(request.headers.get("Authorization"))
    return verifier.verify_token(token)


# === ERROR MAPPING ===


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump(),
    )


async def _auth_error(request: Request, exc: AuthError):
    return _error(401, "Unauthorized", str(exc))


async def _authorization_error(request: Request, exc: AuthorizationError):
    return _error(403, "Forbidden", str(exc))


async def _not_found_error(request: Request, exc: NotFoundError):
    return _error(404, "Not Found", str(exc))


async def _value_error(request: Request, exc: ValueError):
    return _error(400, "Bad Request", str(exc))


async def _unhandled_error(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return _error(500, "Internal Server Error", str(exc))


# === ENDPOINTS ===

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(polypact: PolyPact = Depends(get_polypact)):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=VERSION,
        timestamp=utc_now_iso(),
        model_gateway_configured=bool(polypact.config.openrouter_api_key),
        primary_search_configured=polypact.search_client.configured,
        pending_summaries=polypact.scheduler.pending_count,
    )


@router.post("/api/v1/chat", response_model=SuccessEnvelope, tags=["Reasoning"], responses=ERROR_RESPONSES)
async def chat(
    request: ChatRequestModel,
    uid: str = Depends(require_uid),
    polypact: PolyPact = Depends(get_polypact),
):
    """Run one chat turn, grounded and gated where applicable."""
    result = await polypact.chat(
        prompt=request.message,
        requester_id=uid,
        case_id=request.caseId,
        session_id=request.sessionId,
        legal_side=request.legalSide,
        history=[turn.model_dump() for turn in request.history],
    )
    return SuccessEnvelope(data=result.to_dict())


@router.post("/api/v1/research", response_model=SuccessEnvelope, tags=["Reasoning"], responses=ERROR_RESPONSES)
async def research(
    request: ResearchRequestModel,
    uid: str = Depends(require_uid),
    polypact: PolyPact = Depends(get_polypact),
):
    """Grounded legal research against primary sources."""
    result = await polypact.research(
        query=request.query,
        requester_id=uid,
        case_id=request.caseId,
        jurisdiction=request.jurisdiction.model_dump() if request.jurisdiction else None,
    )
    return SuccessEnvelope(data=result.to_dict())


@router.post("/api/v1/analyze", response_model=SuccessEnvelope, tags=["Drafting"], responses=ERROR_RESPONSES)
async def analyze(
    request: AnalyzeRequestModel,
    uid: str = Depends(require_uid),
    polypact: PolyPact = Depends(get_polypact),
):
    """Tactical audit of a text, or drafting when mode is 'draft'."""
    result = await polypact.analyze(
        request.text,
        uid,
        legal_side=request.legalSide,
        case_id=request.caseId,
        doc_id=request.docId,
        mode=request.mode,
        current_draft=request.currentDraft,
    )
    return SuccessEnvelope(data=result)


@router.post("/api/v1/redraft", response_model=SuccessEnvelope, tags=["Drafting"], responses=ERROR_RESPONSES)
async def redraft(
    request: RedraftRequestModel,
    uid: str = Depends(require_uid),
    polypact: PolyPact = Depends(get_polypact),
):
    result = await polypact.redraft(
        request.text,
        uid,
        legal_side=request.legalSide,
        instructions=request.instructions,
        case_id=request.caseId,
    )
    return SuccessEnvelope(data=result)


@router.post("/api/v1/compare", response_model=SuccessEnvelope, tags=["Drafting"], responses=ERROR_RESPONSES)
async def compare(
    request: CompareRequestModel,
    uid: str = Depends(require_uid),
    polypact: PolyPact = Depends(get_polypact),
):
    result = await polypact.compare(request.texts, request.legalSide)
    return SuccessEnvelope(data=result)


@router.get(
    "/api/v1/cases/{case_id}/brain-map",
    response_model=SuccessEnvelope,
    tags=["Cases"],
    responses=ERROR_RESPONSES,
)
async def brain_map(
    case_id: str,
    uid: str = Depends(require_uid),
    polypact: PolyPact = Depends(get_polypact),
):
    """Entity graph over the case's documents."""
    graph = await polypact.brain_map(case_id, uid)
    return SuccessEnvelope(data=graph)


def create_app(
    config: Optional[ServiceConfig] = None,
    polypact: Optional[PolyPact] = None,
) -> FastAPI:
    """Create FastAPI application."""
    config = config or get_config()

    app = FastAPI(
        title="PolyPact API",
        description="Legal reasoning and grounding service for Indian litigation",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.site_url, "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AuthError, _auth_error)
    app.add_exception_handler(AuthorizationError, _authorization_error)
    app.add_exception_handler(NotFoundError, _not_found_error)
    app.add_exception_handler(ValueError, _value_error)
    app.add_exception_handler(Exception, _unhandled_error)

    # Store shared objects in app state
    app.state.config = config
    app.state.verifier = TokenVerifier(config.jwt_secret)
    app.state.polypact = polypact

    app.include_router(router)
    return app


# Create default app instance
app = create_app()

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Literal

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel
from ulid import ULID

from hashcards.application.session import CardView, DrillSession
from hashcards.consts import VERSION
from hashcards.domain.errors import (
    ClientError,
    MalformedRequestError,
    SessionEmpty,
    StoreError,
)

logger = logging.getLogger("hashcards.server")

STATIC_DIR = Path(__file__).parent / "static"
TEMPLATES_DIR = Path(__file__).parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ProgressResponse(BaseModel):
    answered: int
    remaining: int
    new_answered: int


class CardResponse(BaseModel):
    kind: Literal["card"] = "card"
    fingerprint: str
    front: str
    back: str
    deck: str
    is_new: bool
    grades: list[str]


class CompletedResponse(BaseModel):
    kind: Literal["completed"] = "completed"
    stats: ProgressResponse


class AnswerRequest(BaseModel):
    fingerprint: str
    grade: str


def get_session(request: Request) -> DrillSession:
    return request.app.state.session


async def _next_card(
    session: DrillSession, view: CardView | None
) -> CardResponse | CompletedResponse:
    if view is None:
        progress = await session.progress()
        return CompletedResponse(stats=ProgressResponse(**vars(progress)))
    return CardResponse(**vars(view))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def index(request: Request, session: DrillSession = Depends(get_session)):
    """Serve the drill page, or a friendly notice when nothing is due."""
    if session.is_empty:
        raise SessionEmpty("no cards are due")
    return templates.TemplateResponse(
        request,
        "drill.html",
        {"version": VERSION, "controls": session.controls.value},
    )


@router.get("/api/card", response_model=CardResponse | CompletedResponse)
async def current_card(session: DrillSession = Depends(get_session)):
    return await _next_card(session, await session.peek())


@router.post("/api/answer", response_model=CardResponse | CompletedResponse)
async def answer_card(req: AnswerRequest, session: DrillSession = Depends(get_session)):
    view = await session.answer(req.fingerprint, req.grade)
    return await _next_card(session, view)


@router.post("/api/skip", response_model=CardResponse | CompletedResponse)
async def skip_card(session: DrillSession = Depends(get_session)):
    return await _next_card(session, await session.skip())


@router.post("/api/undo", response_model=CardResponse | CompletedResponse)
async def undo_answer(session: DrillSession = Depends(get_session)):
    return await _next_card(session, await session.undo())


@router.get("/api/progress", response_model=ProgressResponse)
async def progress(session: DrillSession = Depends(get_session)):
    return ProgressResponse(**vars(await session.progress()))


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


async def client_error_handler(request: Request, exc: ClientError):
    logger.debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc}")
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return await client_error_handler(request, MalformedRequestError(str(exc.errors())))


async def session_empty_handler(request: Request, exc: SessionEmpty):
    return templates.TemplateResponse(request, "empty.html", {"version": VERSION})


async def store_error_handler(request: Request, exc: StoreError):
    error_id = str(ULID())
    logger.error(f"[{error_id}] {request.method} {request.url.path} failed: {exc}", exc_info=exc)
    return JSONResponse({"error": "internal error", "id": error_id}, status_code=500)


async def invariant_violation_handler(request: Request, exc: AssertionError):
    logger.critical(f"Scheduler invariant violated: {exc}", exc_info=exc)
    os.abort()


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(session: DrillSession) -> FastAPI:
    """Build the drill server for one session. The app owns the session's store."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"hashcards drill server v{VERSION} starting up...")
        yield
        # Shutdown
        logger.info("hashcards drill server shutting down...")
        session.close()

    app = FastAPI(
        title="hashcards",
        description="Local drill server for a hashcards collection.",
        version=VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.session = session
    app.include_router(router)
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    app.add_exception_handler(ClientError, client_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(SessionEmpty, session_empty_handler)
    app.add_exception_handler(AssertionError, invariant_violation_handler)
    return app

"""HTTP API: OAuth handshake, profile, search and sender tally endpoints."""

from __future__ import annotations

import html
import threading
from collections import OrderedDict
from typing import Literal

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from googleapiclient.discovery import Resource
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from gmail_sender_tally import __version__
from gmail_sender_tally.auth import (
    TokenStore,
    authorization_url,
    create_web_flow,
    finish_web_flow,
    get_credentials,
    get_gmail_service,
)
from gmail_sender_tally.config import Settings, get_settings
from gmail_sender_tally.constants import DEFAULT_SEARCH_RESULTS, MAX_PENDING_OAUTH_FLOWS, PAGE_SIZE
from gmail_sender_tally.errors import (
    ConfigError,
    CorruptState,
    NotAuthenticated,
    RemoteUnavailable,
    StateConflict,
    TallyError,
)
from gmail_sender_tally.gmail_client import GmailSource, build_search_query, get_profile, search_messages
from gmail_sender_tally.models import SenderCount
from gmail_sender_tally.scanner import scan_top_senders, summarize
from gmail_sender_tally.source import MailSource
from gmail_sender_tally.store import StateStore

router = APIRouter()

_ERROR_STATUS: dict[type[TallyError], int] = {
    NotAuthenticated: 401,
    StateConflict: 409,
    RemoteUnavailable: 502,
    CorruptState: 500,
    ConfigError: 500,
}


# ============================================================================
# Request/Response Models
# ============================================================================


class SenderCountOut(BaseModel):
    sender: str
    count: int


class TopSendersResponse(BaseModel):
    """Progress of one scan invocation."""

    model_config = ConfigDict(populate_by_name=True)

    status: Literal["partial", "complete"]
    fetched: int = Field(description="New messages processed by this request")
    total_processed: int = Field(alias="totalProcessed")
    top_senders: list[SenderCountOut] = Field(alias="topSenders")
    done: bool


class StandingsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_processed: int = Field(alias="totalProcessed")
    top_senders: list[SenderCountOut] = Field(alias="topSenders")
    done: bool


class EmailSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    sender: str = Field(alias="from")
    subject: str
    snippet: str


def _senders_out(senders: list[SenderCount]) -> list[SenderCountOut]:
    return [SenderCountOut(sender=s.sender, count=s.count) for s in senders]


# ============================================================================
# Dependencies
# ============================================================================


def app_settings(request: Request) -> Settings:
    return request.app.state.settings


def gmail_service(settings: Settings = Depends(app_settings)) -> Resource:
    return get_gmail_service(settings)


def get_mail_source(service: Resource = Depends(gmail_service)) -> MailSource:
    return GmailSource(service)


def get_state_store(settings: Settings = Depends(app_settings)):
    store = StateStore(settings.state_db_path)
    try:
        yield store
    finally:
        store.close()


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/")
def index(request: Request, settings: Settings = Depends(app_settings)):
    """Start the OAuth consent flow unless a usable token is already stored."""
    try:
        creds = get_credentials(TokenStore(settings.token_path))
    except (NotAuthenticated, RemoteUnavailable) as exc:
        logger.warning(f"Stored credentials unusable, re-authenticating: {exc}")
        creds = None

    if creds is not None:
        return HTMLResponse('Already authenticated! <a href="/profile">View Gmail Profile</a>')

    flow = create_web_flow(settings)
    url, state = authorization_url(flow)
    pending = request.app.state.pending_flows
    pending[state] = flow
    while len(pending) > MAX_PENDING_OAUTH_FLOWS:
        dropped, _ = pending.popitem(last=False)
        logger.debug(f"Dropped abandoned OAuth state {dropped}")
    return RedirectResponse(url)


@router.get("/oauth2callback")
def oauth2callback(
    request: Request,
    code: str = Query(...),
    state: str = Query(...),
    settings: Settings = Depends(app_settings),
):
    flow = request.app.state.pending_flows.pop(state, None)
    if flow is None:
        raise HTTPException(status_code=400, detail="Unknown or expired OAuth state")

    try:
        finish_web_flow(flow, code, settings)
    except Exception as exc:  # noqa: BLE001
        logger.error(f"Error retrieving access token: {exc}")
        return HTMLResponse("Authentication failed", status_code=500)

    return RedirectResponse("/profile")


@router.get("/profile", response_class=HTMLResponse)
def profile(service: Resource = Depends(gmail_service)) -> str:
    email = html.escape(get_profile(service)["emailAddress"])
    return f'<h2>Authenticated as {email}</h2>\n<p><a href="/">Back</a></p>'


@router.get("/emails", response_model=list[EmailSummary])
def emails(
    service: Resource = Depends(gmail_service),
    sender: str | None = Query(default=None, alias="from", description="Sender address or name"),
    subject: str | None = Query(default=None),
    has_attachment: bool = Query(default=False, alias="hasAttachment"),
    newer_than: str | None = Query(default=None, alias="newerThan", description="e.g. 7d, 2m"),
    older_than: str | None = Query(default=None, alias="olderThan"),
    label: str | None = Query(default=None),
    max_results: int = Query(default=DEFAULT_SEARCH_RESULTS, alias="maxResults", ge=1, le=PAGE_SIZE),
) -> list[dict]:
    """Search one page of messages using Gmail query operators."""
    query = build_search_query(
        sender=sender,
        subject=subject,
        has_attachment=has_attachment,
        newer_than=newer_than,
        older_than=older_than,
        label=label,
    )
    return search_messages(service, query, max_results)


@router.get("/top-senders", response_model=TopSendersResponse)
def top_senders(
    request: Request,
    source: MailSource = Depends(get_mail_source),
    store: StateStore = Depends(get_state_store),
    settings: Settings = Depends(app_settings),
) -> TopSendersResponse:
    """Advance the sender scan by one bounded batch and report progress."""
    with request.app.state.scan_lock:
        summary = scan_top_senders(
            source,
            store,
            batch_cap=settings.batch_cap,
            page_size=settings.page_size,
        )

    return TopSendersResponse(
        status=summary.status,
        fetched=summary.processed_this_call,
        total_processed=summary.total_processed,
        top_senders=_senders_out(summary.top_senders),
        done=summary.done,
    )


@router.get("/top-senders/standings", response_model=StandingsResponse)
def standings(store: StateStore = Depends(get_state_store)) -> StandingsResponse:
    """Current top senders without contacting Gmail."""
    current = summarize(store.load())
    return StandingsResponse(
        total_processed=current.total_processed,
        top_senders=_senders_out(current.top_senders),
        done=current.done,
    )


@router.delete("/top-senders")
def reset_top_senders(request: Request, store: StateStore = Depends(get_state_store)) -> dict:
    """Discard all scan progress."""
    with request.app.state.scan_lock:
        store.reset()
    return {"reset": True}


# ============================================================================
# Application
# ============================================================================


async def _tally_error_handler(request: Request, exc: TallyError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application bound to ``settings``."""
    app = FastAPI(title="Gmail Sender Tally", version=__version__)
    app.state.settings = settings or get_settings()
    app.state.scan_lock = threading.Lock()
    app.state.pending_flows = OrderedDict()
    app.add_exception_handler(TallyError, _tally_error_handler)
    app.include_router(router)
    return app

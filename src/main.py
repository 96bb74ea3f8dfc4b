"""
HallucinationLens Service
Hosts page sessions, runs the response watcher over them and relays control directives
"""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
import asyncio
import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables early so Settings picks them up
load_dotenv()

from hallucination_lens.config import get_settings
from hallucination_lens.control import ControlSurface
from hallucination_lens.dom import SoupPage
from hallucination_lens.evidence import build_evidence_source
from hallucination_lens.platforms import identify_platform
from hallucination_lens.presenter import SoupOverlayPresenter
from hallucination_lens.storage import build_settings_store
from hallucination_lens.watcher import ResponseWatcher


# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler('logs/hallucination_lens.log') if os.path.exists('logs') else logging.NullHandler()
    ]
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"
TITLE = "HallucinationLens Service"
DESCRIPTION = "Trust overlays for AI chat responses"

settings = get_settings()


@dataclass
class PageSession:
    """One hosted page with its watcher and overlay presenter"""

    id: str
    page: SoupPage
    presenter: SoupOverlayPresenter
    watcher: ResponseWatcher
    control: ControlSurface
    created_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())


class SessionRegistry:
    """In-memory registry of active page sessions"""

    def __init__(self):
        self.sessions: Dict[str, PageSession] = {}
        self.settings_store = None
        self.evidence_source = None

    def open(self):
        self.settings_store = build_settings_store(settings)
        self.evidence_source = build_evidence_source(settings)
        logger.info(f"Evidence mode: {settings.evidence_mode}, settings backend: {settings.settings_backend}")

    async def close(self):
        for session in list(self.sessions.values()):
            session.watcher.teardown()
        self.sessions.clear()
        if self.settings_store is not None:
            await self.settings_store.close()

    async def create(self, url: str, html: str) -> PageSession:
        page = SoupPage(html, url)
        platform = identify_platform(page.hostname, page.url)
        presenter = SoupOverlayPresenter(page, platform=platform.value)
        watcher = ResponseWatcher(
            page,
            evidence_source=self.evidence_source,
            presenter=presenter,
            settings_store=self.settings_store,
            settings=settings,
            platform=platform,
        )
        session = PageSession(
            id=str(uuid.uuid4()),
            page=page,
            presenter=presenter,
            watcher=watcher,
            control=ControlSurface(watcher),
        )
        self.sessions[session.id] = session
        await watcher.start()
        logger.info(f"[{session.id}] Session opened for {url} (platform={watcher.platform.value})")
        return session

    def get(self, session_id: str) -> PageSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return session

    def remove(self, session_id: str) -> None:
        session = self.get(session_id)
        session.watcher.teardown()
        del self.sessions[session_id]
        logger.info(f"[{session_id}] Session closed")


registry = SessionRegistry()


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("=" * 60)
    logger.info(f"Starting {TITLE} v{VERSION}")
    logger.info("=" * 60)

    registry.open()

    logger.info("Service ready")
    yield

    logger.info("Shutting down...")
    await registry.close()
    logger.info("Shutdown complete")


# FastAPI application
app = FastAPI(
    title=TITLE,
    version=VERSION,
    description=DESCRIPTION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An error occurred"
        }
    )


# Request/Response models
class SessionRequest(BaseModel):
    """Open a watcher over an HTML snapshot"""

    url: str = Field(..., min_length=1, description="Page URL, used to identify the platform")
    html: str = Field("", description="Initial page HTML")


class ContentRequest(BaseModel):
    """Append HTML to the page, as the chat UI would while streaming"""

    html: str = Field(..., min_length=1)
    parent_selector: Optional[str] = Field(None, description="CSS selector of the parent; defaults to body")


class SessionResponse(BaseModel):
    session_id: str
    platform: str
    enabled: bool
    state: str
    created_at: str


class OverlayView(BaseModel):
    score: str
    label: str
    reason: str
    color: str
    keywords: List[str]
    references: List[Dict[str, Any]]


def _session_response(session: PageSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.id,
        platform=session.watcher.platform.value,
        enabled=session.watcher.enabled,
        state=session.watcher.state.value,
        created_at=session.created_at,
    )


# API endpoints
@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": TITLE,
        "version": VERSION,
        "status": "operational",
        "endpoints": {
            "sessions": "POST /sessions",
            "content": "POST /sessions/{session_id}/content",
            "scan": "POST /sessions/{session_id}/scan",
            "message": "POST /sessions/{session_id}/message",
            "overlays": "GET /sessions/{session_id}/overlays",
            "html": "GET /sessions/{session_id}/html",
            "health": "GET /health",
        },
        "evidence_mode": settings.evidence_mode,
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "active_sessions": len(registry.sessions),
    }


@app.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(request_body: SessionRequest):
    session = await registry.create(request_body.url, request_body.html)
    return _session_response(session)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    return _session_response(registry.get(session_id))


@app.post("/sessions/{session_id}/content")
async def append_content(session_id: str, request_body: ContentRequest):
    session = registry.get(session_id)
    try:
        added = session.page.append_html(request_body.html, request_body.parent_selector)
    except LookupError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"added_elements": len(added)}


@app.post("/sessions/{session_id}/scan")
async def scan_session(session_id: str):
    """Run a processing pass immediately instead of waiting for a trigger"""
    session = registry.get(session_id)
    submitted = await session.watcher.process_new_content()
    return {"submitted": submitted, "processed_count": len(session.watcher.processed)}


@app.post("/sessions/{session_id}/message")
async def send_message(session_id: str, message: Dict[str, Any]):
    session = registry.get(session_id)
    response = session.control.handle(message)
    pending = session.control.pending
    if pending is not None and not pending.done():
        await asyncio.shield(pending)
    return response


@app.get("/sessions/{session_id}/overlays", response_model=List[OverlayView])
async def list_overlays(session_id: str):
    session = registry.get(session_id)
    return [
        OverlayView(
            score=payload.verdict.score.value,
            label=payload.verdict.label,
            reason=payload.verdict.reason,
            color=payload.verdict.color,
            keywords=payload.keywords,
            references=[item.model_dump() for item in payload.evidence if item.is_actionable],
        )
        for payload in session.presenter.payloads
    ]


@app.get("/sessions/{session_id}/html", response_class=HTMLResponse)
async def render_session(session_id: str):
    return registry.get(session_id).page.render()


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    registry.remove(session_id)
    return {"message": "Session closed"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8001")),
        log_level="info",
    )

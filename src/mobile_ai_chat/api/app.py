"""
FastAPI Application Module

Exposes a single chat session over HTTP: the live message list, sending a
message to the language model, starting, opening and deleting saved
conversations, and the response style preference.

Key Features:
- Async request handling with FastAPI
- Conversation persistence through a pluggable key-value storage
- Structured logging and metrics
- CORS and OpenTelemetry support
"""

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CollectorRegistry, Counter, generate_latest
from pydantic import BaseModel
from structlog import get_logger

from ..config import configure_logging, get_settings
from ..domain.models import ERROR_TEXT, NO_REPLY_TEXT, STYLE_OPTIONS, Conversation, Message
from ..repositories.base import KeyValueStorage
from ..repositories.file import JsonFileStorage
from ..repositories.memory import InMemoryStorage
from ..services.chat import ChatSessionController
from ..services.llm import LLMService
from ..services.store import ConversationStore

# Registry for isolated metric collection
CUSTOM_REGISTRY = CollectorRegistry()

REQUESTS = Counter("requests_total", "Total requests by endpoint", ["path"], registry=CUSTOM_REGISTRY)
ERRORS = Counter("errors_total", "Total errors by endpoint", ["path"], registry=CUSTOM_REGISTRY)
SUBMISSIONS = Counter("submissions_total", "Messages sent to the language model", registry=CUSTOM_REGISTRY)
FALLBACK_REPLIES = Counter("fallback_replies_total", "Bot replies replaced by a fallback text", registry=CUSTOM_REGISTRY)

logger = get_logger()


class MessageCreate(BaseModel):
    """Message submission; the session draft is sent when text is omitted"""
    text: Optional[str] = None


class DraftUpdate(BaseModel):
    text: str


class StylePreferenceUpdate(BaseModel):
    value: str


class StylePreferenceView(BaseModel):
    style_preference: Optional[str] = None


class SessionView(BaseModel):
    """What the chat screen renders"""
    active_id: Optional[str] = None
    title: Optional[str] = None
    messages: List[Message]
    draft: str
    style_preference: Optional[str] = None
    status: str


def build_storage() -> KeyValueStorage:
    """Picks file storage when a path is configured, memory otherwise"""
    settings = get_settings()
    if settings.storage_path:
        return JsonFileStorage(settings.storage_path)
    return InMemoryStorage()


# Core service instances
settings = get_settings()
store = ConversationStore(build_storage())
llm_service = LLMService.from_settings(settings)
controller = ChatSessionController(
    store,
    llm_service,
    allow_concurrent_submits=settings.allow_concurrent_submits
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Restores the saved session on startup and releases the HTTP client on shutdown"""
    configure_logging(settings)
    await controller.restore()
    logger.info("application_startup_complete")

    yield

    await llm_service.aclose()
    logger.info("application_shutdown_complete")


def get_controller() -> ChatSessionController:
    """Returns the chat session controller"""
    return controller


def session_view(controller: ChatSessionController) -> SessionView:
    state = controller.state
    return SessionView(
        active_id=state.active_id,
        title=state.title,
        messages=list(state.messages),
        draft=state.draft,
        style_preference=state.style_preference,
        status=state.status
    )


app = FastAPI(
    title="MobileAI Chat API",
    description="A chat session backed by an LLM completion endpoint",
    version="0.1.0",
    lifespan=lifespan
)

# Enable cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Set up request tracing
FastAPIInstrumentor.instrument_app(app)


@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """Tracks requests"""
    logger.info("request_started", path=request.url.path)
    REQUESTS.labels(path=request.url.path).inc()
    try:
        return await call_next(request)
    except Exception as e:
        ERRORS.labels(path=request.url.path).inc()
        logger.error("request_failed", path=request.url.path, error=str(e))
        raise


@app.get("/session", response_model=SessionView)
async def get_session(
    controller: ChatSessionController = Depends(get_controller)
) -> SessionView:
    """Returns the live session"""
    return session_view(controller)


@app.put("/session/draft", response_model=SessionView)
async def update_draft(
    draft: DraftUpdate,
    controller: ChatSessionController = Depends(get_controller)
) -> SessionView:
    """Replaces the pending input"""
    controller.set_draft(draft.text)
    return session_view(controller)


@app.post("/session/messages", response_model=SessionView)
async def submit_message(
    message: MessageCreate,
    controller: ChatSessionController = Depends(get_controller)
) -> SessionView:
    """
    Sends a message and waits for the reply.
    Blank input leaves the session untouched.
    """
    try:
        reply = await controller.submit(message.text)
    except Exception as e:
        logger.error("submit_message_error", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to process message")

    if reply is not None:
        SUBMISSIONS.inc()
        if reply.text in (ERROR_TEXT, NO_REPLY_TEXT):
            FALLBACK_REPLIES.inc()
    return session_view(controller)


@app.post("/session/new", response_model=SessionView)
async def start_new_conversation(
    controller: ChatSessionController = Depends(get_controller)
) -> SessionView:
    """Starts a new conversation"""
    controller.start_new()
    return session_view(controller)


@app.post("/session/conversations/{conversation_id}", response_model=SessionView)
async def open_conversation(
    conversation_id: str,
    controller: ChatSessionController = Depends(get_controller)
) -> SessionView:
    """Makes a saved conversation the live one"""
    if not await controller.load_existing(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return session_view(controller)


@app.get("/conversations", response_model=List[Conversation])
async def list_conversations(
    controller: ChatSessionController = Depends(get_controller)
) -> List[Conversation]:
    """Lists saved conversations"""
    return await controller.list_conversations()


@app.get("/conversations/{conversation_id}", response_model=Conversation)
async def get_conversation(
    conversation_id: str,
    controller: ChatSessionController = Depends(get_controller)
) -> Conversation:
    """Retrieves a saved conversation by its ID"""
    conversation = await controller.get_conversation(conversation_id)
    if conversation is None:
        logger.warning("conversation_not_found", conversation_id=conversation_id)
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@app.delete("/conversations/{conversation_id}", response_model=SessionView)
async def delete_conversation(
    conversation_id: str,
    controller: ChatSessionController = Depends(get_controller)
) -> SessionView:
    """Deletes a saved conversation, resetting the session if it was live"""
    if not await controller.delete_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return session_view(controller)


@app.get("/preferences/style", response_model=StylePreferenceView)
async def get_style_preference(
    controller: ChatSessionController = Depends(get_controller)
) -> StylePreferenceView:
    return StylePreferenceView(style_preference=controller.state.style_preference)


@app.put("/preferences/style", response_model=StylePreferenceView)
async def set_style_preference(
    update: StylePreferenceUpdate,
    controller: ChatSessionController = Depends(get_controller)
) -> StylePreferenceView:
    """Sets the language or persona replies should use"""
    await controller.set_style_preference(update.value)
    return StylePreferenceView(style_preference=controller.state.style_preference)


@app.delete("/preferences/style", response_model=StylePreferenceView)
async def clear_style_preference(
    controller: ChatSessionController = Depends(get_controller)
) -> StylePreferenceView:
    await controller.clear_style_preference()
    return StylePreferenceView(style_preference=None)


@app.get("/preferences/style/options", response_model=List[str])
async def list_style_options() -> List[str]:
    """Preset choices offered in the settings panel"""
    return list(STYLE_OPTIONS)


@app.get("/metrics")
async def metrics():
    """Provides Prometheus metrics for system monitoring"""
    return Response(generate_latest(CUSTOM_REGISTRY), media_type="text/plain")

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load .env from project root before anything reads the environment
ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(ROOT_DIR / ".env")

from lumi_router.core.logging import setup_logging  # noqa: E402

setup_logging()

from lumi_router.auth.internal import current_user_id  # noqa: E402
from lumi_router.core.config import load_config  # noqa: E402
from lumi_router.core.errors import RouterError, ValidationError  # noqa: E402
from lumi_router.core.route import ChatRouter  # noqa: E402
from lumi_router.models import (  # noqa: E402
    Chat,
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    NewChatRequest,
    ProviderStatus,
    RenameChatRequest,
    StoredMessage,
)
from lumi_router.store.chats import ChatNotFoundError, ChatStore  # noqa: E402

log = logging.getLogger("lumi.router")

app = FastAPI(title="Lumi Router", version="0.1")

_origins = [
    o.strip()
    for o in (os.getenv("CORS_ORIGINS") or "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)


# --- Dependencies (overridden in tests) ---------------------------------------

@lru_cache(maxsize=1)
def get_chat_router() -> ChatRouter:
    return ChatRouter.from_config(load_config())


@lru_cache(maxsize=1)
def get_chat_store() -> ChatStore:
    return ChatStore()


# --- Error mapping: every failure leaves as {"error": "..."} ---------------------

@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": exc.user_message})


@app.exception_handler(RouterError)
async def _router_error(request: Request, exc: RouterError):
    # the router already logged the failure at ERROR; the client only gets prose
    log.info(
        "chat failed: %s provider=%s detail=%s",
        type(exc).__name__,
        exc.provider_id,
        exc,
    )
    return JSONResponse(status_code=500, content={"error": exc.user_message})


@app.exception_handler(RequestValidationError)
async def _bad_body(request: Request, exc: RequestValidationError):
    log.info("rejected request body on %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.exception_handler(ChatNotFoundError)
async def _chat_not_found(request: Request, exc: ChatNotFoundError):
    return JSONResponse(status_code=404, content={"error": "Chat not found"})


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


# --- Health / introspection ----------------------------------------------------

@app.get("/healthz")
def health():
    return {"status": "ok"}


@app.get("/api/providers", response_model=List[ProviderStatus])
def list_providers(router: ChatRouter = Depends(get_chat_router)) -> List[Dict[str, Any]]:
    """Configured providers and whether their credential is present (never the key)."""
    cfg = router.cfg
    return [
        {
            "id": pid,
            "model": pcfg.model,
            "style": pcfg.style,
            "configured": pcfg.configured,
            "default": pid == cfg.default_provider,
        }
        for pid, pcfg in cfg.providers.items()
    ]


# --- Chat ---------------------------------------------------------------------------

@app.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat(req: ChatRequest, router: ChatRouter = Depends(get_chat_router)) -> ChatResponse:
    """
    One assistant reply for `history` (+ optional new `message`).

    `model` / `agent` pick the preferred provider; the response's `model`
    says which provider actually answered after any fallback.
    """
    result = await run_in_threadpool(router.route, req.history, req.message, req.preferred)
    return ChatResponse(content=result.content, model=result.provider_id)


# --- Chat history ---------------------------------------------------------------

@app.get("/api/chats", response_model=List[Chat])
def get_user_chats(
    user_id: str = Depends(current_user_id),
    store: ChatStore = Depends(get_chat_store),
):
    return store.get_user_chats(user_id)


@app.post("/api/chats", response_model=Chat, status_code=status.HTTP_201_CREATED)
def create_chat(
    body: NewChatRequest,
    user_id: str = Depends(current_user_id),
    store: ChatStore = Depends(get_chat_store),
):
    title = body.title.strip() or "New Chat"
    return store.create_chat(user_id, title)


@app.patch("/api/chats/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
def rename_chat(
    chat_id: str,
    body: RenameChatRequest,
    user_id: str = Depends(current_user_id),
    store: ChatStore = Depends(get_chat_store),
):
    title = body.title.strip()
    if not title:
        return JSONResponse(status_code=400, content={"error": "Title cannot be empty"})
    store.rename_chat(user_id, chat_id, title)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.delete("/api/chats/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_chat(
    chat_id: str,
    user_id: str = Depends(current_user_id),
    store: ChatStore = Depends(get_chat_store),
):
    store.delete_chat(user_id, chat_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/api/chats/{chat_id}/messages", response_model=List[StoredMessage])
def load_messages(
    chat_id: str,
    user_id: str = Depends(current_user_id),
    store: ChatStore = Depends(get_chat_store),
):
    return store.load_messages(user_id, chat_id)


@app.post(
    "/api/chats/{chat_id}/messages",
    response_model=StoredMessage,
    status_code=status.HTTP_201_CREATED,
)
def save_message(
    chat_id: str,
    body: StoredMessage,
    user_id: str = Depends(current_user_id),
    store: ChatStore = Depends(get_chat_store),
):
    return store.save_message(
        user_id,
        chat_id,
        role=body.role,
        content=body.content,
        message_id=body.id,
        timestamp=body.timestamp,
    )


@app.delete("/api/chats/{chat_id}/messages", status_code=status.HTTP_204_NO_CONTENT)
def clear_messages(
    chat_id: str,
    user_id: str = Depends(current_user_id),
    store: ChatStore = Depends(get_chat_store),
):
    store.clear_messages(user_id, chat_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

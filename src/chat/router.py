"""Chat proxy API route."""

from __future__ import annotations

from functools import lru_cache

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from src.chat.service import ChatCompletionClient, ChatMessage, ChatProxyError, ChatUpstreamError
from src.core.config import get_settings
from src.core.logger import get_logger
from src.core.metrics import record_chat_upstream_error
from src.core.observability import capture_exception
from src.schemas.chat import ChatRequest, ChatResponse


router = APIRouter(prefix="/api", tags=["chat"])
logger = get_logger("fathacks.chat")


@lru_cache(maxsize=1)
def get_chat_client() -> ChatCompletionClient:
    settings = get_settings()
    return ChatCompletionClient(
        api_key=settings.openai_api_key,
        url=settings.openai_chat_url,
        model=settings.openai_chat_model,
        timeout_seconds=settings.openai_chat_timeout_seconds,
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest, client: ChatCompletionClient = Depends(get_chat_client)):
    if not payload.messages:
        return JSONResponse(status_code=400, content={"error": "messages array required"})

    try:
        reply = await client.complete([ChatMessage(role=item.role, content=item.content) for item in payload.messages])
    except ChatUpstreamError as exc:
        record_chat_upstream_error(status=str(exc.upstream_status))
        logger.warning("chat_upstream_failed", status=exc.upstream_status)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.detail})
    except ChatProxyError as exc:
        logger.error("chat_misconfigured", error=exc.code)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.code})
    except Exception as exc:
        logger.exception("chat_internal_error")
        capture_exception(exc, route="chat")
        return JSONResponse(status_code=500, content={"error": "internal"})

    return ChatResponse(reply=reply)

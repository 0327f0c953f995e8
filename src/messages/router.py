"""Message board API routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from src.core.config import get_settings, split_csv
from src.core.logger import get_logger
from src.messages.service import (
    MessageBoardError,
    check_admin_token,
    create_message,
    delete_message,
    list_messages,
)
from src.schemas.messages import (
    MessageCreateRequest,
    MessageCreateResponse,
    MessageDeleteResponse,
    MessageItem,
    MessageListResponse,
)
from src.storage.db import get_session


router = APIRouter(prefix="/api/messages", tags=["messages"])
logger = get_logger("fathacks.messages")


def _error(exc: MessageBoardError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code})


@router.get("", response_model=MessageListResponse)
def get_messages(session: Session = Depends(get_session)) -> MessageListResponse:
    items = list_messages(session, limit=get_settings().messages_list_limit)
    return MessageListResponse(messages=[MessageItem.model_validate(item) for item in items])


@router.post("", response_model=MessageCreateResponse, status_code=201)
def post_message(payload: MessageCreateRequest, session: Session = Depends(get_session)):
    try:
        message = create_message(
            session,
            author=payload.author,
            body=payload.body,
            allowed_authors=split_csv(get_settings().message_authors),
        )
    except MessageBoardError as exc:
        return _error(exc)
    logger.info("message_posted", message_id=message.id, author=message.author)
    return MessageCreateResponse(message=MessageItem.model_validate(message))


@router.delete("/{message_id}", response_model=MessageDeleteResponse)
def remove_message(
    message_id: int,
    x_admin_token: Optional[str] = Header(default=None),
    token: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
):
    try:
        check_admin_token(
            configured=get_settings().messages_admin_token,
            provided=x_admin_token if x_admin_token is not None else token,
        )
        delete_message(session, message_id=message_id)
    except MessageBoardError as exc:
        if exc.status_code == 401:
            logger.warning("message_delete_unauthorized", message_id=message_id)
        return _error(exc)
    logger.info("message_deleted", message_id=message_id)
    return MessageDeleteResponse(ok=True)

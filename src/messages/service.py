"""Message board persistence and access rules."""

from __future__ import annotations

import hmac
from typing import Iterable, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from src.storage.models import Message


MAX_BODY_CHARS = 1000


class MessageBoardError(ValueError):
    status_code = 400

    @property
    def code(self) -> str:
        return str(self.args[0]) if self.args else "invalid_request"


class UnauthorizedError(MessageBoardError):
    status_code = 401


class MessageNotFoundError(MessageBoardError):
    status_code = 404


def list_messages(session: Session, *, limit: int = 100) -> list[Message]:
    safe_limit = max(1, min(limit, 500))
    statement = select(Message).order_by(desc(Message.created_at), desc(Message.id)).limit(safe_limit)
    return list(session.scalars(statement).all())


def create_message(session: Session, *, author: str, body: str, allowed_authors: Iterable[str]) -> Message:
    cleaned_author = (author or "").strip()
    if cleaned_author not in set(allowed_authors):
        raise MessageBoardError("invalid_author")
    cleaned_body = (body or "").strip()
    if not cleaned_body or len(cleaned_body) > MAX_BODY_CHARS:
        raise MessageBoardError("invalid_body")

    message = Message(author=cleaned_author, body=cleaned_body)
    session.add(message)
    session.commit()
    session.refresh(message)
    return message


def check_admin_token(*, configured: str, provided: Optional[str]) -> None:
    expected = (configured or "").strip()
    if not expected or provided is None:
        raise UnauthorizedError("unauthorized")
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError("unauthorized")


def delete_message(session: Session, *, message_id: int) -> None:
    message = session.get(Message, message_id)
    if message is None:
        raise MessageNotFoundError("not_found")
    session.delete(message)
    session.commit()

"""Photo generation API routes."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from src.core.logger import get_logger
from src.core.observability import capture_exception
from src.photo.errors import PhotoValidationError
from src.photo.service import PhotoGenerator, get_photo_generator
from src.schemas.photo import ErrorResponse, GolferRosterResponse, PhotoGenerateResponse


router = APIRouter(prefix="/api/photo", tags=["photo"])
logger = get_logger("fathacks.photo.api")

DISCONNECT_POLL_SECONDS = 0.5

T = TypeVar("T")


class ClientDisconnected(Exception):
    pass


def _error(status_code: int, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code})


async def _run_until_disconnect(request: Request, work: Awaitable[T]) -> T:
    """Await ``work``, cancelling it if the client goes away first."""

    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


async def _read_limited(upload: Optional[UploadFile], limit: int) -> bytes:
    if upload is None:
        return b""
    try:
        # One byte past the limit is enough to know the upload is too big.
        return await upload.read(limit + 1)
    finally:
        await upload.close()


@router.get("/golfers", response_model=GolferRosterResponse)
def list_golfers(generator: PhotoGenerator = Depends(get_photo_generator)) -> GolferRosterResponse:
    return GolferRosterResponse.model_validate(generator.roster.as_dict())


@router.post(
    "/generate",
    response_model=PhotoGenerateResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def generate_photo(
    request: Request,
    image: Optional[UploadFile] = File(default=None),
    golfer: str = Form(default=""),
    generator: PhotoGenerator = Depends(get_photo_generator),
):
    try:
        image_bytes = await _read_limited(image, generator.max_upload_bytes)
        generation_request = generator.prepare(image_bytes, golfer)
        result = await _run_until_disconnect(request, generator.generate(generation_request))
    except PhotoValidationError as exc:
        logger.info("photo_request_rejected", error=exc.code, golfer=golfer)
        return _error(exc.status_code, exc.code)
    except ClientDisconnected:
        logger.info("photo_generation_cancelled", golfer=golfer)
        return _error(499, "client_closed_request")
    except Exception as exc:
        logger.exception("photo_generation_internal_error", golfer=golfer)
        capture_exception(exc, golfer=golfer.strip() or None)
        return _error(500, "internal")

    return PhotoGenerateResponse(
        image_url=result.data_url(),
        provider=result.provider,
        reason=result.reason.value if result.reason is not None else None,
    )

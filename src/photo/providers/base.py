"""Provider contracts for upstream image editing backends."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Protocol

from src.photo.codec import decode_image, encode_png
from src.photo.errors import PhotoValidationError


class FailureReason(str, Enum):
    MISSING_CREDENTIALS = "missing_credentials"
    UPSTREAM_REJECTED = "upstream_rejected"
    INVALID_UPSTREAM_RESPONSE = "invalid_upstream_response"
    ALL_BYPASSED = "all_bypassed"


class ImageProviderError(RuntimeError):
    """Raised when an image provider cannot fulfill a generation request."""

    reason = FailureReason.UPSTREAM_REJECTED

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamRejected(ImageProviderError):
    """Non-2xx response, transport failure or timeout."""

    reason = FailureReason.UPSTREAM_REJECTED


class InvalidUpstreamResponse(ImageProviderError):
    """2xx response without a usable image payload."""

    reason = FailureReason.INVALID_UPSTREAM_RESPONSE


@dataclass(frozen=True)
class ProviderRequest:
    """Normalized input handed to every provider for one attempt."""

    image_png: bytes
    subject_name: str
    prompt: str
    width: int
    height: int


@dataclass(frozen=True)
class ProviderImage:
    provider: str
    image_bytes: bytes
    payload: Dict[str, Any] = field(default_factory=dict)


class ImageProvider(Protocol):
    provider_name: str

    @property
    def configured(self) -> bool:
        """True when the provider has the credential it needs."""

    async def generate(self, request: ProviderRequest) -> ProviderImage:
        raise NotImplementedError


def truncate_detail(text: str, limit: int = 240) -> str:
    detail = (text or "").strip()
    if len(detail) > limit:
        detail = detail[:limit] + "..."
    return detail


def decode_base64_image(encoded: str, *, provider: str) -> bytes:
    cleaned = encoded.strip()
    if cleaned.startswith("data:") and "," in cleaned:
        cleaned = cleaned.split(",", 1)[1]
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidUpstreamResponse(f"{provider}_invalid_base64_payload") from exc


def ensure_png(data: bytes, *, provider: str) -> bytes:
    """Return ``data`` as PNG, re-encoding other formats; undecodable output is invalid."""

    try:
        image = decode_image(data)
    except PhotoValidationError as exc:
        raise InvalidUpstreamResponse(f"{provider}_image_undecodable") from exc
    if str(image.format or "").upper() == "PNG":
        return data
    return encode_png(image)

"""Upstream image editing provider integrations."""

from src.photo.providers.base import (
    FailureReason,
    ImageProvider,
    ImageProviderError,
    InvalidUpstreamResponse,
    ProviderImage,
    ProviderRequest,
    UpstreamRejected,
)
from src.photo.providers.factory import (
    ProviderConfig,
    ProviderSlot,
    build_provider_slots,
    get_provider_slots,
    reset_provider_cache,
)
from src.photo.providers.openai_provider import OpenAIImageEditProvider
from src.photo.providers.stability_provider import StabilityImageToImageProvider

__all__ = [
    "FailureReason",
    "ImageProvider",
    "ImageProviderError",
    "InvalidUpstreamResponse",
    "OpenAIImageEditProvider",
    "ProviderConfig",
    "ProviderImage",
    "ProviderRequest",
    "ProviderSlot",
    "StabilityImageToImageProvider",
    "UpstreamRejected",
    "build_provider_slots",
    "get_provider_slots",
    "reset_provider_cache",
]

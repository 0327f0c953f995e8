"""Factory resolving the ordered image provider chain from settings."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Tuple

from src.core.config import Settings, get_settings, split_csv
from src.photo.codec import MaskEncoding
from src.photo.providers.base import ImageProvider
from src.photo.providers.openai_provider import OpenAIImageEditProvider
from src.photo.providers.stability_provider import StabilityImageToImageProvider


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    enabled: bool
    priority: int
    bypass: bool


@dataclass(frozen=True)
class ProviderSlot:
    config: ProviderConfig
    provider: ImageProvider


def _build_provider(name: str, settings: Settings) -> ImageProvider:
    if name == "openai":
        return OpenAIImageEditProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_image_model,
            base_url=settings.openai_image_base_url,
            size=settings.openai_image_size,
            mask_encoding=MaskEncoding(settings.openai_mask_encoding.strip().lower()),
            editable_fraction=settings.photo_editable_fraction,
            timeout_seconds=settings.photo_provider_timeout_seconds,
        )
    if name == "stability":
        return StabilityImageToImageProvider(
            api_key=settings.stability_api_key,
            engine=settings.stability_engine,
            base_url=settings.stability_base_url,
            image_strength=settings.stability_image_strength,
            cfg_scale=settings.stability_cfg_scale,
            timeout_seconds=settings.photo_provider_timeout_seconds,
        )
    raise ValueError(f"unknown image provider: {name}")


def bypass_map(settings: Settings) -> Dict[str, bool]:
    bypassed = {name.lower() for name in split_csv(settings.photo_provider_bypass)}
    order = [name.lower() for name in split_csv(settings.photo_provider_order)]
    return {name: name in bypassed for name in order}


def build_provider_slots(settings: Settings) -> Tuple[ProviderSlot, ...]:
    bypass = bypass_map(settings)
    slots: List[ProviderSlot] = []
    for priority, name in enumerate(bypass):
        provider = _build_provider(name, settings)
        slots.append(
            ProviderSlot(
                config=ProviderConfig(
                    name=name,
                    enabled=provider.configured,
                    priority=priority,
                    bypass=bypass[name],
                ),
                provider=provider,
            )
        )
    return tuple(slots)


@lru_cache(maxsize=1)
def get_provider_slots() -> Tuple[ProviderSlot, ...]:
    return build_provider_slots(get_settings())


def reset_provider_cache() -> None:
    get_provider_slots.cache_clear()

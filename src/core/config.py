"""Central runtime configuration for the Fat Hacks API."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


KNOWN_IMAGE_PROVIDERS = ("openai", "stability")
KNOWN_MASK_ENCODINGS = ("white_edits", "black_edits")

DEFAULT_TOP_GOLFERS = "Scottie Scheffler,Rory McIlroy,Xander Schauffele,Russell Henley,Collin Morikawa"
DEFAULT_ALT_GOLFERS = "Greg Norman,Tiger Woods,John Daly,Phil Mickelson,Bubba Watson,Bryson DeChambeau"


def split_csv(value: str) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    database_url: str = "sqlite:///./data/fathacks.sqlite"
    env: str = "development"
    log_level: str = "INFO"
    port: int = 3000
    app_name: str = "fathacks_api"
    app_version: str = "0.1.0"
    cors_allow_origins: str = "*"

    openai_api_key: str = ""
    openai_chat_url: str = "https://api.openai.com/v1/chat/completions"
    openai_chat_model: str = "gpt-4o-mini"
    openai_chat_timeout_seconds: int = 30
    openai_image_base_url: str = "https://api.openai.com/v1"
    openai_image_model: str = "gpt-image-1"
    openai_image_size: str = "1024x1024"
    openai_mask_encoding: str = "black_edits"

    stability_api_key: str = ""
    stability_base_url: str = "https://api.stability.ai/v1"
    stability_engine: str = "stable-diffusion-xl-1024-v1-0"
    stability_image_strength: float = 0.35
    stability_cfg_scale: float = 7.0

    photo_provider_order: str = "openai,stability"
    photo_provider_bypass: str = ""
    photo_provider_timeout_seconds: float = 60.0
    photo_max_upload_bytes: int = 6 * 1024 * 1024
    photo_max_pixels: int = 40_000_000
    photo_target_edge: int = 1024
    photo_editable_fraction: float = 0.46
    photo_event_title: str = "Fat Hacks 2025"
    photo_top_golfers: str = DEFAULT_TOP_GOLFERS
    photo_alt_golfers: str = DEFAULT_ALT_GOLFERS

    message_authors: str = "Gary,Steve,Mick,Dave,Pete,Tony"
    messages_admin_token: str = ""
    messages_list_limit: int = 100

    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = 0.0
    metrics_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def _validate(settings: Settings) -> Settings:
    is_production = settings.env.lower() in {"prod", "production"}
    if is_production and not settings.messages_admin_token.strip():
        raise ValueError("Missing required production secrets/config: MESSAGES_ADMIN_TOKEN.")
    if settings.sentry_traces_sample_rate < 0 or settings.sentry_traces_sample_rate > 1:
        raise ValueError("SENTRY_TRACES_SAMPLE_RATE must be between 0 and 1.")
    if settings.photo_provider_timeout_seconds <= 0:
        raise ValueError("PHOTO_PROVIDER_TIMEOUT_SECONDS must be positive.")
    if settings.openai_chat_timeout_seconds <= 0:
        raise ValueError("OPENAI_CHAT_TIMEOUT_SECONDS must be positive.")
    if settings.photo_max_upload_bytes <= 0:
        raise ValueError("PHOTO_MAX_UPLOAD_BYTES must be positive.")
    if settings.photo_max_pixels < settings.photo_target_edge * settings.photo_target_edge:
        raise ValueError("PHOTO_MAX_PIXELS must cover at least PHOTO_TARGET_EDGE squared.")
    if settings.photo_target_edge < 64:
        raise ValueError("PHOTO_TARGET_EDGE must be at least 64.")
    if not 0 < settings.photo_editable_fraction < 1:
        raise ValueError("PHOTO_EDITABLE_FRACTION must be between 0 and 1.")
    if not 0 <= settings.stability_image_strength <= 1:
        raise ValueError("STABILITY_IMAGE_STRENGTH must be between 0 and 1.")
    if settings.openai_mask_encoding.strip().lower() not in KNOWN_MASK_ENCODINGS:
        raise ValueError("OPENAI_MASK_ENCODING must be one of: white_edits, black_edits.")
    order = [name.lower() for name in split_csv(settings.photo_provider_order)]
    unknown = sorted(set(order) - set(KNOWN_IMAGE_PROVIDERS))
    if unknown:
        raise ValueError(f"PHOTO_PROVIDER_ORDER contains unknown providers: {', '.join(unknown)}.")
    if len(order) != len(set(order)):
        raise ValueError("PHOTO_PROVIDER_ORDER must not repeat providers.")
    bypass = [name.lower() for name in split_csv(settings.photo_provider_bypass)]
    unknown = sorted(set(bypass) - set(KNOWN_IMAGE_PROVIDERS))
    if unknown:
        raise ValueError(f"PHOTO_PROVIDER_BYPASS contains unknown providers: {', '.join(unknown)}.")
    if not split_csv(settings.photo_top_golfers) and not split_csv(settings.photo_alt_golfers):
        raise ValueError("PHOTO_TOP_GOLFERS and PHOTO_ALT_GOLFERS must not both be empty.")
    if settings.messages_list_limit <= 0:
        raise ValueError("MESSAGES_LIST_LIMIT must be positive.")
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return validated settings as a cached singleton."""

    return _validate(Settings())

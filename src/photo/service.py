"""Photo generation: ordered provider fallback chain with a local composite."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from functools import lru_cache
from time import perf_counter
from typing import List, Optional, Sequence, Tuple, Union

from src.core.config import Settings, get_settings
from src.core.logger import get_logger
from src.core.metrics import record_photo_generation, record_photo_provider_failure
from src.core.observability import capture_exception
from src.photo.codec import DEFAULT_MAX_PIXELS, compose_fallback_card, normalize_square, to_data_url
from src.photo.errors import ImageRequiredError, ImageTooLargeError
from src.photo.prompts import build_caption, build_prompt, build_subtitle
from src.photo.providers import (
    FailureReason,
    ImageProviderError,
    ProviderRequest,
    ProviderSlot,
    get_provider_slots,
)
from src.photo.roster import SubjectRoster


logger = get_logger("fathacks.photo")

FALLBACK_PROVIDER = "fallback"

SKIPPED_UNCONFIGURED = "skipped_unconfigured"
SKIPPED_BYPASS = "skipped_bypass"
SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class GenerationRequest:
    image_bytes: bytes
    subject_name: str


@dataclass(frozen=True)
class ProviderAttempt:
    provider: str
    outcome: str
    detail: str = ""
    duration_ms: int = 0


@dataclass(frozen=True)
class Success:
    image_bytes: bytes
    provider_id: str
    attempts: Tuple[ProviderAttempt, ...] = field(default_factory=tuple)

    @property
    def provider(self) -> str:
        return self.provider_id

    @property
    def reason(self) -> Optional[str]:
        return None

    def data_url(self) -> str:
        return to_data_url(self.image_bytes)


@dataclass(frozen=True)
class Fallback:
    image_bytes: bytes
    reason: FailureReason
    attempts: Tuple[ProviderAttempt, ...] = field(default_factory=tuple)

    @property
    def provider(self) -> str:
        return FALLBACK_PROVIDER

    def data_url(self) -> str:
        return to_data_url(self.image_bytes)


GenerationResult = Union[Success, Fallback]


def fallback_reason(slots: Sequence[ProviderSlot], failures: Sequence[FailureReason]) -> FailureReason:
    if not any(slot.config.enabled for slot in slots):
        return FailureReason.MISSING_CREDENTIALS
    if not failures:
        return FailureReason.ALL_BYPASSED
    if FailureReason.UPSTREAM_REJECTED in failures:
        return FailureReason.UPSTREAM_REJECTED
    return FailureReason.INVALID_UPSTREAM_RESPONSE


class PhotoGenerator:
    """Walks the provider chain in priority order; the first success wins.

    Providers are called one at a time. Unconfigured and bypassed providers
    are skipped without a call. When nothing succeeds the local composite is
    returned, so ``generate`` always yields an image for a decodable upload.
    """

    def __init__(
        self,
        slots: Sequence[ProviderSlot],
        *,
        roster: SubjectRoster,
        timeout_seconds: float = 60.0,
        edge: int = 1024,
        max_upload_bytes: int = 6 * 1024 * 1024,
        max_pixels: int = DEFAULT_MAX_PIXELS,
        event_title: str = "",
    ) -> None:
        self._slots = tuple(sorted(slots, key=lambda slot: slot.config.priority))
        self._roster = roster
        self._timeout_seconds = timeout_seconds
        self._edge = edge
        self._max_upload_bytes = max_upload_bytes
        self._max_pixels = max_pixels
        self._event_title = event_title

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        slots: Optional[Sequence[ProviderSlot]] = None,
    ) -> "PhotoGenerator":
        return cls(
            get_provider_slots() if slots is None else slots,
            roster=SubjectRoster.from_settings(settings),
            timeout_seconds=settings.photo_provider_timeout_seconds,
            edge=settings.photo_target_edge,
            max_upload_bytes=settings.photo_max_upload_bytes,
            max_pixels=settings.photo_max_pixels,
            event_title=settings.photo_event_title,
        )

    @property
    def roster(self) -> SubjectRoster:
        return self._roster

    @property
    def max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    @property
    def slots(self) -> Tuple[ProviderSlot, ...]:
        return self._slots

    def prepare(self, image_bytes: Optional[bytes], subject_name: str) -> GenerationRequest:
        """Validate raw input; raises before any decoding or network work."""

        if not image_bytes:
            raise ImageRequiredError("image_required")
        if len(image_bytes) > self._max_upload_bytes:
            raise ImageTooLargeError("image_too_large")
        return GenerationRequest(image_bytes=image_bytes, subject_name=self._roster.validate(subject_name))

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        subject_name = self._roster.validate(request.subject_name)
        normalized = await asyncio.to_thread(
            normalize_square,
            request.image_bytes,
            edge=self._edge,
            max_pixels=self._max_pixels,
        )
        provider_request = ProviderRequest(
            image_png=normalized,
            subject_name=subject_name,
            prompt=build_prompt(subject_name),
            width=self._edge,
            height=self._edge,
        )

        attempts: List[ProviderAttempt] = []
        failures: List[FailureReason] = []
        for slot in self._slots:
            name = slot.config.name
            if not slot.config.enabled:
                attempts.append(ProviderAttempt(provider=name, outcome=SKIPPED_UNCONFIGURED))
                continue
            if slot.config.bypass:
                logger.info("photo_provider_bypassed", provider=name)
                attempts.append(ProviderAttempt(provider=name, outcome=SKIPPED_BYPASS))
                continue

            started_at = perf_counter()
            try:
                output = await asyncio.wait_for(slot.provider.generate(provider_request), self._timeout_seconds)
            except asyncio.TimeoutError:
                reason, detail = FailureReason.UPSTREAM_REJECTED, f"{name}_timeout after {self._timeout_seconds}s"
            except ImageProviderError as exc:
                reason, detail = exc.reason, str(exc)
            except Exception as exc:
                logger.exception("photo_provider_unexpected_error", provider=name)
                capture_exception(exc, provider=name, golfer=subject_name)
                reason, detail = FailureReason.UPSTREAM_REJECTED, f"{name}_unexpected_error {type(exc).__name__}"
            else:
                duration_ms = int((perf_counter() - started_at) * 1000)
                attempts.append(ProviderAttempt(provider=name, outcome=SUCCEEDED, duration_ms=duration_ms))
                logger.info("photo_provider_succeeded", provider=name, golfer=subject_name, duration_ms=duration_ms)
                record_photo_generation(provider=name)
                return Success(
                    image_bytes=output.image_bytes,
                    provider_id=name,
                    attempts=tuple(attempts),
                )

            duration_ms = int((perf_counter() - started_at) * 1000)
            failures.append(reason)
            attempts.append(ProviderAttempt(provider=name, outcome=reason.value, detail=detail, duration_ms=duration_ms))
            record_photo_provider_failure(provider=name, reason=reason.value)
            logger.warning(
                "photo_provider_failed",
                provider=name,
                reason=reason.value,
                detail=detail,
                duration_ms=duration_ms,
            )

        reason = fallback_reason(self._slots, failures)
        image = await asyncio.to_thread(
            compose_fallback_card,
            normalized,
            build_caption(subject_name),
            build_subtitle(self._event_title),
        )
        logger.info(
            "photo_generation_fallback",
            golfer=subject_name,
            reason=reason.value,
            attempts=[attempt.provider + ":" + attempt.outcome for attempt in attempts],
        )
        record_photo_generation(provider=FALLBACK_PROVIDER, reason=reason.value)
        return Fallback(image_bytes=image, reason=reason, attempts=tuple(attempts))


@lru_cache(maxsize=1)
def get_photo_generator() -> PhotoGenerator:
    return PhotoGenerator.from_settings(get_settings())

from __future__ import annotations

import asyncio
import io
from typing import Optional

from PIL import Image
import pytest

from src.core.metrics import render_prometheus_metrics, reset_metrics_for_tests
from src.photo.codec import encode_jpeg, encode_png
from src.photo.errors import DecodeError, ImageRequiredError, ImageTooLargeError, InvalidSubjectError
from src.photo.providers import (
    FailureReason,
    InvalidUpstreamResponse,
    ProviderConfig,
    ProviderImage,
    ProviderSlot,
    UpstreamRejected,
)
from src.photo.roster import RosterGroup, SubjectRoster
from src.photo.service import Fallback, GenerationRequest, PhotoGenerator, Success


ROSTER = SubjectRoster(
    [
        RosterGroup(label="Today's Favourites", names=("Scottie Scheffler",)),
        RosterGroup(label="Alternative Favourites", names=("Greg Norman",)),
    ]
)


class _FakeProvider:
    def __init__(
        self,
        name: str,
        *,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        configured: bool = True,
    ) -> None:
        self.provider_name = name
        self.calls = 0
        self.last_request = None
        self._error = error
        self._delay = delay
        self._configured = configured
        self.output = encode_png(Image.new("RGB", (8, 8), (1, 2, 3)))

    @property
    def configured(self) -> bool:
        return self._configured

    async def generate(self, request):
        self.calls += 1
        self.last_request = request
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return ProviderImage(provider=self.provider_name, image_bytes=self.output)


def _slot(provider: _FakeProvider, priority: int, *, bypass: bool = False) -> ProviderSlot:
    return ProviderSlot(
        config=ProviderConfig(
            name=provider.provider_name,
            enabled=provider.configured,
            priority=priority,
            bypass=bypass,
        ),
        provider=provider,
    )


def _generator(*slots: ProviderSlot, timeout_seconds: float = 5.0) -> PhotoGenerator:
    return PhotoGenerator(slots, roster=ROSTER, timeout_seconds=timeout_seconds, edge=64, event_title="Fat Hacks 2025")


def _upload() -> bytes:
    return encode_jpeg(Image.new("RGB", (200, 100), (30, 90, 160)))


def _request(name: str = "Greg Norman") -> GenerationRequest:
    return GenerationRequest(image_bytes=_upload(), subject_name=name)


def test_first_success_wins_and_later_providers_are_not_called() -> None:
    first = _FakeProvider("openai")
    second = _FakeProvider("stability")

    result = asyncio.run(_generator(_slot(first, 0), _slot(second, 1)).generate(_request()))

    assert isinstance(result, Success)
    assert result.provider == "openai"
    assert result.reason is None
    assert result.image_bytes == first.output
    assert first.calls == 1
    assert second.calls == 0


def test_priority_orders_providers_regardless_of_list_order() -> None:
    first = _FakeProvider("openai")
    second = _FakeProvider("stability")

    result = asyncio.run(_generator(_slot(first, 1), _slot(second, 0)).generate(_request()))

    assert result.provider == "stability"
    assert first.calls == 0


def test_failure_moves_to_next_provider() -> None:
    first = _FakeProvider("openai", error=UpstreamRejected("openai_image_request_failed status=500"))
    second = _FakeProvider("stability")

    result = asyncio.run(_generator(_slot(first, 0), _slot(second, 1)).generate(_request()))

    assert isinstance(result, Success)
    assert result.provider == "stability"
    assert first.calls == 1
    assert second.calls == 1
    assert [attempt.outcome for attempt in result.attempts] == ["upstream_rejected", "succeeded"]


def test_providers_receive_normalized_square_png() -> None:
    provider = _FakeProvider("openai")

    asyncio.run(_generator(_slot(provider, 0)).generate(_request()))

    sent = provider.last_request
    image = Image.open(io.BytesIO(sent.image_png))
    assert image.format == "PNG"
    assert image.size == (64, 64)
    assert (sent.width, sent.height) == (64, 64)
    assert sent.subject_name == "Greg Norman"
    assert "Greg Norman" in sent.prompt


def test_all_providers_failing_falls_back_with_upstream_reason() -> None:
    reset_metrics_for_tests()
    first = _FakeProvider("openai", error=UpstreamRejected("status=503"))
    second = _FakeProvider("stability", error=InvalidUpstreamResponse("stability_missing_artifacts"))

    result = asyncio.run(_generator(_slot(first, 0), _slot(second, 1)).generate(_request()))

    assert isinstance(result, Fallback)
    assert result.provider == "fallback"
    assert result.reason is FailureReason.UPSTREAM_REJECTED
    assert result.data_url().startswith("data:image/png;base64,")
    assert Image.open(io.BytesIO(result.image_bytes)).format == "PNG"
    body = render_prometheus_metrics(app_name="fathacks_api", app_version="0.1.0", env="test")
    assert 'fathacks_photo_provider_failures_total{provider="openai",reason="upstream_rejected"} 1' in body
    assert 'fathacks_photo_generations_total{provider="fallback",reason="upstream_rejected"} 1' in body


def test_only_invalid_responses_report_invalid_reason() -> None:
    first = _FakeProvider("openai", error=InvalidUpstreamResponse("openai_image_missing_data"))

    result = asyncio.run(_generator(_slot(first, 0)).generate(_request()))

    assert isinstance(result, Fallback)
    assert result.reason is FailureReason.INVALID_UPSTREAM_RESPONSE


def test_missing_credentials_skip_every_provider() -> None:
    first = _FakeProvider("openai", configured=False)
    second = _FakeProvider("stability", configured=False)

    result = asyncio.run(_generator(_slot(first, 0), _slot(second, 1)).generate(_request()))

    assert isinstance(result, Fallback)
    assert result.reason is FailureReason.MISSING_CREDENTIALS
    assert first.calls == 0
    assert second.calls == 0


def test_bypassed_provider_is_not_called_and_not_a_failure() -> None:
    first = _FakeProvider("openai", error=UpstreamRejected("status=500"))
    second = _FakeProvider("stability")

    result = asyncio.run(_generator(_slot(first, 0, bypass=True), _slot(second, 1)).generate(_request()))

    assert isinstance(result, Success)
    assert result.provider == "stability"
    assert first.calls == 0
    assert [attempt.outcome for attempt in result.attempts] == ["skipped_bypass", "succeeded"]


def test_all_configured_providers_bypassed() -> None:
    first = _FakeProvider("openai")
    second = _FakeProvider("stability", configured=False)

    result = asyncio.run(_generator(_slot(first, 0, bypass=True), _slot(second, 1)).generate(_request()))

    assert isinstance(result, Fallback)
    assert result.reason is FailureReason.ALL_BYPASSED
    assert first.calls == 0


def test_timeout_is_upstream_rejected_and_chain_continues() -> None:
    slow = _FakeProvider("openai", delay=2.0)
    fast = _FakeProvider("stability")

    result = asyncio.run(
        _generator(_slot(slow, 0), _slot(fast, 1), timeout_seconds=0.05).generate(_request())
    )

    assert isinstance(result, Success)
    assert result.provider == "stability"
    assert result.attempts[0].outcome == "upstream_rejected"
    assert "timeout" in result.attempts[0].detail


def test_unexpected_provider_error_is_contained() -> None:
    broken = _FakeProvider("openai", error=KeyError("boom"))

    result = asyncio.run(_generator(_slot(broken, 0)).generate(_request()))

    assert isinstance(result, Fallback)
    assert result.reason is FailureReason.UPSTREAM_REJECTED


def test_cancellation_propagates_and_returns_nothing() -> None:
    slow = _FakeProvider("openai", delay=5.0)
    generator = _generator(_slot(slow, 0), timeout_seconds=10.0)

    async def scenario():
        task = asyncio.ensure_future(generator.generate(_request()))
        while slow.calls == 0:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert slow.calls == 1


def test_corrupt_upload_raises_decode_error_before_providers() -> None:
    provider = _FakeProvider("openai")

    with pytest.raises(DecodeError):
        asyncio.run(
            _generator(_slot(provider, 0)).generate(GenerationRequest(image_bytes=b"garbage", subject_name="Greg Norman"))
        )
    assert provider.calls == 0


def test_unknown_subject_rejected_before_providers() -> None:
    provider = _FakeProvider("openai")

    with pytest.raises(InvalidSubjectError):
        asyncio.run(_generator(_slot(provider, 0)).generate(_request("Unknown Person")))
    assert provider.calls == 0


def test_prepare_validates_input_in_order() -> None:
    generator = PhotoGenerator([], roster=ROSTER, max_upload_bytes=1024)

    with pytest.raises(ImageRequiredError):
        generator.prepare(b"", "Unknown Person")
    with pytest.raises(ImageRequiredError):
        generator.prepare(None, "Greg Norman")
    with pytest.raises(ImageTooLargeError):
        generator.prepare(b"x" * 1025, "Greg Norman")
    with pytest.raises(InvalidSubjectError):
        generator.prepare(b"x" * 10, "Unknown Person")

    prepared = generator.prepare(b"x" * 1024, " Greg Norman ")
    assert prepared.subject_name == "Greg Norman"


@pytest.mark.parametrize("name", ["Greg Norman", "Scottie Scheffler"])
def test_every_roster_member_gets_an_image_without_providers(name: str) -> None:
    result = asyncio.run(_generator().generate(_request(name)))

    assert isinstance(result, Fallback)
    assert result.image_bytes
    assert result.provider == "fallback"

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient
from PIL import Image
import pytest

import src.api.main as api_main
from src.photo import router as photo_router
from src.photo.codec import encode_jpeg
from src.photo.roster import RosterGroup, SubjectRoster
from src.photo.router import ClientDisconnected
from src.photo.service import PhotoGenerator, get_photo_generator


ROSTER = SubjectRoster([RosterGroup(label="Alternative Favourites", names=("Greg Norman",))])


class _FakeRequest:
    def __init__(self, *, disconnected: bool) -> None:
        self._disconnected = disconnected
        self.checks = 0

    async def is_disconnected(self) -> bool:
        self.checks += 1
        return self._disconnected


def test_disconnect_cancels_in_flight_generation(monkeypatch) -> None:
    monkeypatch.setattr(photo_router, "DISCONNECT_POLL_SECONDS", 0.01)
    events = []
    request = _FakeRequest(disconnected=True)

    async def slow_generation():
        events.append("started")
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            events.append("cancelled")
            raise
        events.append("finished")

    async def scenario():
        with pytest.raises(ClientDisconnected):
            await photo_router._run_until_disconnect(request, slow_generation())
        await asyncio.sleep(0.01)

    asyncio.run(scenario())

    assert events == ["started", "cancelled"]
    assert request.checks == 1


def test_connected_client_gets_the_result(monkeypatch) -> None:
    monkeypatch.setattr(photo_router, "DISCONNECT_POLL_SECONDS", 0.01)
    request = _FakeRequest(disconnected=False)

    async def generation():
        await asyncio.sleep(0.05)
        return "card"

    assert asyncio.run(photo_router._run_until_disconnect(request, generation())) == "card"
    assert request.checks >= 1


def test_generate_returns_499_when_client_went_away(monkeypatch) -> None:
    async def gone(request, work):
        work.close()
        raise ClientDisconnected()

    monkeypatch.setattr(photo_router, "_run_until_disconnect", gone)
    api_main.app.dependency_overrides[get_photo_generator] = lambda: PhotoGenerator([], roster=ROSTER)
    try:
        response = TestClient(api_main.app).post(
            "/api/photo/generate",
            files={"image": ("me.jpg", encode_jpeg(Image.new("RGB", (32, 32))), "image/jpeg")},
            data={"golfer": "Greg Norman"},
        )
    finally:
        api_main.app.dependency_overrides.clear()

    assert response.status_code == 499
    assert response.json() == {"error": "client_closed_request"}


def test_internal_error_is_reported_with_golfer(monkeypatch) -> None:
    reported = []
    generator = PhotoGenerator([], roster=ROSTER)

    async def explode(request):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(generator, "generate", explode)
    monkeypatch.setattr(photo_router, "capture_exception", lambda exc, **tags: reported.append(tags))
    api_main.app.dependency_overrides[get_photo_generator] = lambda: generator
    try:
        response = TestClient(api_main.app).post(
            "/api/photo/generate",
            files={"image": ("me.jpg", encode_jpeg(Image.new("RGB", (32, 32))), "image/jpeg")},
            data={"golfer": " Greg Norman "},
        )
    finally:
        api_main.app.dependency_overrides.clear()

    assert response.status_code == 500
    assert reported == [{"golfer": "Greg Norman"}]

"""Stability AI image-to-image provider (strength based, no mask)."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import httpx

from src.photo.providers.base import (
    ImageProvider,
    ImageProviderError,
    InvalidUpstreamResponse,
    ProviderImage,
    ProviderRequest,
    UpstreamRejected,
    decode_base64_image,
    ensure_png,
    truncate_detail,
)


class StabilityImageToImageProvider(ImageProvider):
    provider_name = "stability"

    def __init__(
        self,
        *,
        api_key: str,
        engine: str = "stable-diffusion-xl-1024-v1-0",
        base_url: str = "https://api.stability.ai/v1",
        image_strength: float = 0.35,
        cfg_scale: float = 7.0,
        timeout_seconds: float = 60,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._engine = engine.strip()
        self._base_url = base_url.rstrip("/")
        self._image_strength = min(max(float(image_strength), 0.0), 1.0)
        self._cfg_scale = float(cfg_scale)
        self._timeout_seconds = max(1.0, float(timeout_seconds))
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _endpoint(self) -> str:
        return f"{self._base_url}/generation/{self._engine}/image-to-image"

    def _headers(self) -> Dict[str, str]:
        if not self._api_key:
            raise ImageProviderError("stability_api_key_missing")
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
        }

    def _build_files(self, request: ProviderRequest) -> Dict[str, Tuple[str, bytes, str]]:
        return {"init_image": ("init.png", request.image_png, "image/png")}

    def _build_data(self, request: ProviderRequest) -> Dict[str, str]:
        # Strength is how far the output may drift from init_image.
        return {
            "init_image_mode": "IMAGE_STRENGTH",
            "image_strength": f"{self._image_strength:.2f}",
            "text_prompts[0][text]": request.prompt,
            "text_prompts[0][weight]": "1",
            "cfg_scale": f"{self._cfg_scale:g}",
            "samples": "1",
        }

    async def generate(self, request: ProviderRequest) -> ProviderImage:
        if self._client is not None:
            return await self._generate_with(self._client, request)
        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            return await self._generate_with(client, request)

    async def _generate_with(self, client: httpx.AsyncClient, request: ProviderRequest) -> ProviderImage:
        try:
            response = await client.post(
                self._endpoint(),
                headers=self._headers(),
                data=self._build_data(request),
                files=self._build_files(request),
            )
        except httpx.HTTPError as exc:
            raise UpstreamRejected(f"stability_transport_error {type(exc).__name__}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise UpstreamRejected(
                f"stability_request_failed status={response.status_code} detail={truncate_detail(response.text)}",
                status_code=response.status_code,
            )

        try:
            body: Dict[str, Any] = response.json()
        except ValueError as exc:
            raise InvalidUpstreamResponse("stability_invalid_json_response") from exc

        artifacts = body.get("artifacts") if isinstance(body, dict) else None
        if not isinstance(artifacts, list):
            raise InvalidUpstreamResponse("stability_missing_artifacts")

        for artifact in artifacts:
            if not isinstance(artifact, dict):
                continue
            finish_reason = str(artifact.get("finishReason") or "SUCCESS").upper()
            if finish_reason != "SUCCESS":
                continue
            encoded = str(artifact.get("base64") or "").strip()
            if not encoded:
                continue
            image_bytes = decode_base64_image(encoded, provider="stability")
            return ProviderImage(
                provider=self.provider_name,
                image_bytes=ensure_png(image_bytes, provider="stability"),
                payload={"seed": artifact.get("seed"), "finish_reason": finish_reason},
            )

        raise InvalidUpstreamResponse("stability_output_not_found")

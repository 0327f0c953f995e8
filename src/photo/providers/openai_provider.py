"""OpenAI-compatible masked image edit provider."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

import httpx

from src.photo.codec import MaskEncoding, build_edit_mask, right_region
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


class OpenAIImageEditProvider(ImageProvider):
    """Masked edit: the photo plus a mask marking where the golfer may be painted in."""

    provider_name = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-image-1",
        base_url: str = "https://api.openai.com/v1",
        size: str = "1024x1024",
        mask_encoding: MaskEncoding = MaskEncoding.BLACK_EDITS,
        editable_fraction: float = 0.46,
        timeout_seconds: float = 60,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._model = model.strip()
        self._base_url = base_url.rstrip("/")
        self._size = size.strip()
        self._mask_encoding = MaskEncoding(mask_encoding)
        self._editable_fraction = editable_fraction
        self._timeout_seconds = max(1.0, float(timeout_seconds))
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @property
    def mask_encoding(self) -> MaskEncoding:
        return self._mask_encoding

    def _endpoint(self) -> str:
        return f"{self._base_url}/images/edits"

    def _headers(self) -> Dict[str, str]:
        if not self._api_key:
            raise ImageProviderError("openai_api_key_missing")
        return {"Authorization": f"Bearer {self._api_key}"}

    def build_mask(self, request: ProviderRequest) -> bytes:
        editable = right_region(request.width, request.height, self._editable_fraction)
        return build_edit_mask(request.width, request.height, editable, self._mask_encoding)

    def _build_files(self, request: ProviderRequest) -> Dict[str, Tuple[str, bytes, str]]:
        return {
            "image": ("photo.png", request.image_png, "image/png"),
            "mask": ("mask.png", self.build_mask(request), "image/png"),
        }

    def _build_data(self, request: ProviderRequest) -> Dict[str, str]:
        return {
            "model": self._model,
            "prompt": request.prompt,
            "size": self._size,
            "n": "1",
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
            raise UpstreamRejected(f"openai_image_transport_error {type(exc).__name__}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise UpstreamRejected(
                f"openai_image_request_failed status={response.status_code} detail={truncate_detail(response.text)}",
                status_code=response.status_code,
            )

        try:
            body: Dict[str, Any] = response.json()
        except ValueError as exc:
            raise InvalidUpstreamResponse("openai_image_invalid_json_response") from exc

        items = body.get("data") if isinstance(body, dict) else None
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            raise InvalidUpstreamResponse("openai_image_missing_data")
        first = items[0]

        encoded = str(first.get("b64_json") or "").strip()
        if encoded:
            image_bytes = decode_base64_image(encoded, provider="openai")
        else:
            url = str(first.get("url") or "").strip()
            if not url:
                raise InvalidUpstreamResponse("openai_image_output_not_found")
            image_bytes = await self._download(client, url)

        return ProviderImage(
            provider=self.provider_name,
            image_bytes=ensure_png(image_bytes, provider="openai"),
            payload={"created": body.get("created")},
        )

    @staticmethod
    async def _download(client: httpx.AsyncClient, url: str) -> bytes:
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            raise UpstreamRejected(f"openai_image_download_error {type(exc).__name__}") from exc
        if response.status_code < 200 or response.status_code >= 300:
            raise UpstreamRejected(
                f"openai_image_download_failed status={response.status_code}",
                status_code=response.status_code,
            )
        return response.content

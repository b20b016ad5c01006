import base64
import binascii
import logging
import time
from typing import Any, Dict, Optional

import httpx
from PIL import UnidentifiedImageError

from .errors import EmptyResultError, RestorationError, TransportError, ValidationError
from .export import CANONICAL_MIME_TYPE, normalize_to_png
from .models import RestorationRequest, SourceImage

logger = logging.getLogger(__name__)

ACCEPTED_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/heic",
    "image/heif",
})

NO_IMAGE_MESSAGE = "No image data returned from the model."
MALFORMED_MESSAGE = "The restoration service sent a malformed response."


class ImageRestorationClient:
    """
    Gemini 2.5 Flash Image over the ``generateContent`` REST endpoint.

    - image + instruction in, one PNG image out
    - every failure is raised as a RestorationError subclass
    - no retries: retrying is up to the user
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.5-flash-image",
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={
                "x-goog-api-key": self.api_key or "",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

    async def close(self):
        """Explicit client shutdown."""
        await self.client.aclose()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    def _validate(self, request: RestorationRequest):
        if not self.api_key:
            raise ValidationError("API key is missing. Set IMAGE_GEN_API_KEY to enable restoration.")

        image = request.image
        if not image.data:
            raise ValidationError("The image is empty.")
        if image.mime_type.lower() not in ACCEPTED_MIME_TYPES:
            raise ValidationError(
                f"Unsupported image type '{image.mime_type}'. Use PNG, JPEG, WEBP or HEIC."
            )

    @staticmethod
    def _build_body(request: RestorationRequest) -> Dict[str, Any]:
        # The transport takes raw base64, the media type travels separately
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {
                            "inline_data": {
                                "mime_type": request.image.mime_type.lower(),
                                "data": request.image.to_base64(),
                            }
                        },
                        {"text": request.instruction},
                    ],
                }
            ],
            "generationConfig": {
                "responseModalities": ["IMAGE"]
            },
        }

    @staticmethod
    def _error_detail(resp: httpx.Response) -> str:
        try:
            error = resp.json().get("error") or {}
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
        except (ValueError, AttributeError):
            pass
        return resp.reason_phrase or "unknown error"

    @staticmethod
    def _extract_image(data: Dict[str, Any]) -> str:
        """Return the base64 payload of the first inline image part of the first candidate."""
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise EmptyResultError(MALFORMED_MESSAGE)
        if not candidates:
            feedback = data.get("promptFeedback") or {}
            reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            if reason:
                raise EmptyResultError(f"{NO_IMAGE_MESSAGE} The request was blocked ({reason}).")
            raise EmptyResultError(NO_IMAGE_MESSAGE)

        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise EmptyResultError(MALFORMED_MESSAGE)
        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            raise EmptyResultError(MALFORMED_MESSAGE)
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise EmptyResultError(MALFORMED_MESSAGE)

        for part in parts:
            if not isinstance(part, dict):
                raise EmptyResultError(MALFORMED_MESSAGE)
            inline = part.get("inlineData") or part.get("inline_data")
            if inline is None:
                continue
            if not isinstance(inline, dict):
                raise EmptyResultError(MALFORMED_MESSAGE)
            if inline.get("data"):
                return inline["data"]

        raise EmptyResultError(NO_IMAGE_MESSAGE)

    async def _send(self, request: RestorationRequest) -> SourceImage:
        self._validate(request)

        start = time.monotonic()
        logger.debug(
            "Sending restoration request model=%s mime=%s size=%d bytes",
            self.model, request.image.mime_type, len(request.image.data),
        )

        try:
            resp = await self.client.post(self.endpoint, json=self._build_body(request))
        except httpx.TimeoutException as e:
            raise TransportError("The restoration service took too long to respond. Please try again.") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Could not reach the restoration service: {e}") from e

        if resp.status_code >= 400:
            detail = self._error_detail(resp)
            logger.error("Gemini API error %s: %s", resp.status_code, resp.text)
            raise TransportError(f"The restoration service returned an error ({resp.status_code}): {detail}")

        try:
            data = resp.json()
        except ValueError as e:
            raise EmptyResultError(MALFORMED_MESSAGE) from e
        if not isinstance(data, dict):
            raise EmptyResultError(MALFORMED_MESSAGE)

        output_b64 = self._extract_image(data)

        try:
            png = normalize_to_png(base64.b64decode(output_b64))
        except (binascii.Error, TypeError, ValueError, UnidentifiedImageError, OSError) as e:
            raise EmptyResultError("The model returned data that is not a valid image.") from e

        elapsed = time.monotonic() - start
        logger.info("Gemini execution time: %.2fs", elapsed)

        return SourceImage(data=png, mime_type=CANONICAL_MIME_TYPE)

    async def restore(self, image: SourceImage, instruction: str) -> SourceImage:
        """
        Send ``image`` with ``instruction`` to the model and return the restored PNG.

        Raises:
            RestorationError: ValidationError, TransportError or EmptyResultError
        """
        request = RestorationRequest(image=image, instruction=instruction)
        try:
            return await self._send(request)
        except RestorationError as e:
            logger.warning("Restoration failed: %s", e.message)
            raise
        except Exception as e:
            logger.exception("Unexpected error while calling the restoration service")
            raise TransportError(f"Failed to restore image: {e}") from e

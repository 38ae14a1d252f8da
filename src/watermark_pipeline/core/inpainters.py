"""Inpainting backends.

Exactly two variants exist: :class:`LocalInpainter` (OpenCV, deterministic,
offline) and :class:`CloudInpainter` (remote generative model). A run picks
one with :func:`create_inpainter` and uses it for every file or frame.
"""

import base64
import binascii
from typing import Any, Dict, List, Optional, Union

import cv2
import numpy as np
import requests
from PIL import Image

from .error_handling import with_inpainter_errors
from .exceptions import (
    MediaIOError,
    NetworkError,
    RateLimitedError,
    ServiceError,
    UnauthorizedError,
)
from .image_utils import OutputFormat, decode_image, encode_image
from .logging_config import get_logger
from .models import InpaintAlgorithm, ProcessingMethod, Region, RemovalOptions

_CV2_METHODS = {
    InpaintAlgorithm.TELEA: cv2.INPAINT_TELEA,
    InpaintAlgorithm.NAVIER_STOKES: cv2.INPAINT_NS,
}

CLOUD_PROMPT = (
    "Remove the watermark or unwanted element from this image. "
    "The watermark is located at position x={x}, y={y} with width={width} and "
    "height={height}. Seamlessly fill the area with appropriate background content "
    "that matches the surrounding pixels. Return only the edited image without any "
    "text response."
)


def create_mask(width: int, height: int, region: Region) -> np.ndarray:
    """Binary 8-bit mask with the region set to 255."""
    mask = np.zeros((height, width), dtype=np.uint8)
    mask[region.y : region.bottom, region.x : region.right] = 255
    return mask


def dilate_mask(mask: np.ndarray, dilate_pixels: int) -> np.ndarray:
    """Grow the mask by ``dilate_pixels`` with an elliptical kernel."""
    if dilate_pixels <= 0:
        return mask.copy()
    kernel_size = dilate_pixels * 2 + 1
    kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (kernel_size, kernel_size))
    return cv2.dilate(mask, kernel, iterations=1)


class LocalInpainter:
    """OpenCV inpainting; identical inputs give byte-identical outputs."""

    method = ProcessingMethod.LOCAL

    def __init__(
        self,
        algorithm: InpaintAlgorithm = InpaintAlgorithm.TELEA,
        dilate_pixels: int = 3,
        inpaint_radius: float = 5.0,
    ):
        self.algorithm = algorithm
        self.dilate_pixels = dilate_pixels
        self.inpaint_radius = inpaint_radius
        self._mask_cache: Dict[Any, np.ndarray] = {}

    def _mask_for(self, width: int, height: int, region: Region) -> np.ndarray:
        # Video frames share one geometry; the mask is computed once per run
        key = (width, height, region)
        mask = self._mask_cache.get(key)
        if mask is None:
            mask = dilate_mask(create_mask(width, height, region), self.dilate_pixels)
            self._mask_cache = {key: mask}
        return mask

    @with_inpainter_errors
    def inpaint(self, image: np.ndarray, region: Region) -> np.ndarray:
        height, width = image.shape[:2]
        mask = self._mask_for(width, height, region)
        return cv2.inpaint(
            image, mask, self.inpaint_radius, _CV2_METHODS[self.algorithm]
        )


class CloudInpainter:
    """Remote generative inpainting over HTTP. No retries: the caller decides."""

    method = ProcessingMethod.CLOUD

    def __init__(
        self,
        credential: str,
        endpoint: str,
        timeout: float = 120.0,
        session: Optional[requests.Session] = None,
    ):
        self._credential = credential
        self._endpoint = endpoint
        self._timeout = timeout
        self._session = session or requests.Session()
        self._logger = get_logger("watermark-pipeline.cloud")

    @property
    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self._credential, "Content-Type": "application/json"}

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            response = self._session.request(
                method, url, headers=self._headers, timeout=self._timeout, **kwargs
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise NetworkError(f"Could not reach the cloud service: {exc}") from exc
        except requests.RequestException as exc:
            raise ServiceError(f"Cloud request failed: {exc}") from exc

        status = response.status_code
        if status in (401, 403):
            raise UnauthorizedError(
                "The cloud service rejected the API key", status_code=status,
                detail=response.text,
            )
        if status == 429:
            raise RateLimitedError(
                "Cloud service rate limit reached; try again later",
                status_code=status, detail=response.text,
            )
        if not 200 <= status < 300:
            raise ServiceError(
                f"Cloud service returned error status {status}",
                status_code=status, detail=response.text,
            )
        return response

    def _build_payload(self, image: np.ndarray, region: Region) -> Dict[str, Any]:
        png_bytes = encode_image(image, OutputFormat("PNG"))
        prompt = CLOUD_PROMPT.format(
            x=region.x, y=region.y, width=region.width, height=region.height
        )
        return {
            "contents": [
                {
                    "parts": [
                        {
                            "inline_data": {
                                "mime_type": "image/png",
                                "data": base64.b64encode(png_bytes).decode("ascii"),
                            }
                        },
                        {"text": prompt},
                    ]
                }
            ],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }

    @staticmethod
    def _extract_image(body: Dict[str, Any]) -> bytes:
        error = body.get("error")
        if error:
            raise ServiceError(
                f"Cloud API error: {error.get('message', 'unknown error')} "
                f"(status: {error.get('status', '')})"
            )

        for candidate in body.get("candidates") or []:
            parts = (candidate.get("content") or {}).get("parts") or []
            for part in parts:
                inline = part.get("inlineData") or part.get("inline_data")
                if inline and inline.get("data"):
                    try:
                        return base64.b64decode(inline["data"], validate=True)
                    except (binascii.Error, ValueError) as exc:
                        raise ServiceError(
                            f"Failed to decode response image: {exc}"
                        ) from exc

        raise ServiceError("No image found in cloud API response")

    def inpaint(self, image: np.ndarray, region: Region) -> np.ndarray:
        height, width = image.shape[:2]
        self._logger.info(
            f"Sending {width}x{height} image to cloud inpainting "
            f"(region {region.x},{region.y} {region.width}x{region.height})"
        )
        response = self._request(
            "POST", self._endpoint, json=self._build_payload(image, region)
        )

        try:
            body = response.json()
        except ValueError as exc:
            raise ServiceError(f"Failed to parse cloud response: {exc}") from exc

        try:
            decoded = decode_image(self._extract_image(body))
        except MediaIOError as exc:
            raise ServiceError(f"Cloud service returned an unreadable image: {exc}") from exc

        result = decoded.pixels
        if result.shape[:2] != (height, width):
            self._logger.warning(
                f"Cloud result is {result.shape[1]}x{result.shape[0]}, "
                f"resizing to {width}x{height}"
            )
            resized = Image.fromarray(result).resize((width, height), Image.LANCZOS)
            result = np.array(resized)
        return result

    def _models_url(self) -> str:
        base, _, _ = self._endpoint.partition("/models/")
        return f"{base}/models"

    def test_connection(self) -> bool:
        """Check the credential against the service; raises on failure."""
        self._request("GET", self._models_url())
        return True

    def list_models(self) -> List[str]:
        """Names of the image-capable models available to the credential."""
        response = self._request("GET", self._models_url())
        try:
            models = response.json().get("models") or []
        except ValueError as exc:
            raise ServiceError(f"Failed to parse model list: {exc}") from exc
        names = [m.get("name", "") for m in models if isinstance(m, dict)]
        return [n for n in names if "gemini" in n or "imagen" in n]


Inpainter = Union[LocalInpainter, CloudInpainter]


def create_inpainter(
    options: RemovalOptions,
    credential: Optional[str] = None,
    endpoint: str = "",
    timeout: float = 120.0,
) -> Inpainter:
    """Select the backend for a run from the removal options."""
    if options.method is ProcessingMethod.LOCAL:
        return LocalInpainter(
            algorithm=options.algorithm,
            dilate_pixels=options.dilate_pixels,
            inpaint_radius=options.inpaint_radius,
        )
    if options.method is ProcessingMethod.CLOUD:
        return CloudInpainter(credential or "", endpoint, timeout)
    raise ValueError(f"Unknown processing method: {options.method}")

from __future__ import annotations

import re
import time
from typing import Any, Optional, Tuple

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI, OpenAIError

from ..config import EstimatorConfig
from ..domain.models import MAX_BREAD_COUNT
from ..errors import ConfigurationError, InvalidSubmissionError, ProcessingError
from ..logging import get_logger

LOG = get_logger("estimator")


COUNT_INSTRUCTION = (
    "Count the number of breads in this image. Return ONLY the integer number. "
    "If no bread is found, return 0."
)
DEFAULT_MIME = "image/jpeg"

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^,]*)?,", re.IGNORECASE)
_NON_DIGITS_RE = re.compile(r"\D+")
_DIGIT_GROUP_RE = re.compile(r"\d+")


def strip_data_uri(payload: Optional[str]) -> Tuple[str, str]:
    """Split an encoded image into (mime_type, base64_body).

    Accepts either a ``data:<mime>;base64,<body>`` URL or a bare base64 string.
    """
    text = (payload or "").strip()
    if not text:
        raise InvalidSubmissionError("Image payload is empty")
    mime = DEFAULT_MIME
    match = _DATA_URI_RE.match(text)
    if match:
        mime = (match.group("mime") or DEFAULT_MIME).lower()
        text = text[match.end():].strip()
    if not text:
        raise InvalidSubmissionError("Image payload has no data after the data-URI prefix")
    return mime, text


def parse_count(reply: Optional[str]) -> int:
    """Return the integer formed by every digit in the reply, or 0 if there are none.

    "3 loaves" -> 3, "no bread here" -> 0, "between 4 and 5" -> 45.
    """
    text = (reply or "").strip()
    groups = _DIGIT_GROUP_RE.findall(text)
    if len(groups) > 1:
        LOG.warning("Ambiguous count reply %r; digit groups %s are concatenated", text[:80], groups)
    digits = _NON_DIGITS_RE.sub("", text)
    if not digits:
        return 0
    try:
        return int(digits)
    except ValueError:
        return 0


class BreadCountEstimator:
    """Ask an OpenAI-compatible vision model how many breads are in an image.

    One call per ``estimate``; no caching and no retries (SDK retries are off).
    """

    def __init__(self, config: EstimatorConfig, *, client: Any = None) -> None:
        self.config = config
        # Built once here; the thread pool shares it across requests.
        if client is None and self.is_configured:
            client = self._build_client()
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    def ensure_configured(self) -> None:
        if not self.is_configured:
            raise ConfigurationError("Gemini API key not configured")

    def _build_client(self) -> OpenAI:
        http_client = httpx.Client(
            timeout=httpx.Timeout(self.config.timeout_seconds, connect=10.0),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )
        return OpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            http_client=http_client,
            max_retries=0,
        )

    def close(self) -> None:
        """Release the HTTP connection pool."""
        close = getattr(self._client, "close", None)
        if callable(close):
            close()
            LOG.debug("Vision client closed")

    def estimate(self, image_payload: str) -> int:
        """Return the non-negative bread count the model reports for the image."""
        self.ensure_configured()
        mime, body = strip_data_uri(image_payload)
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": COUNT_INSTRUCTION},
                    {"type": "image_url", "image_url": {"url": f"data:{mime};base64,{body}"}},
                ],
            }
        ]

        client = self._client
        t0 = time.perf_counter()
        LOG.info("Requesting bread count from model='%s' (%d base64 chars)", self.config.model_name, len(body))
        try:
            completion = client.chat.completions.create(
                model=self.config.model_name,
                messages=messages,
                temperature=0,
            )
        except (APIConnectionError, APITimeoutError) as exc:
            LOG.error("Network/timeout while calling the vision service: %s", exc)
            raise ProcessingError("Failed to process image") from exc
        except APIStatusError as exc:
            body_preview = getattr(getattr(exc, "response", None), "text", None)
            LOG.error(
                "Vision service returned %s. Body preview: %r",
                getattr(exc, "status_code", "?"),
                body_preview[:300] if body_preview else None,
            )
            raise ProcessingError("Failed to process image") from exc
        except OpenAIError as exc:
            LOG.error("Vision service call failed: %s", exc)
            raise ProcessingError("Failed to process image") from exc

        choices = getattr(completion, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        text = getattr(message, "content", None) or ""
        count = parse_count(text)
        LOG.info(
            "Count reply in %.2fs id=%s reply=%r -> %d",
            time.perf_counter() - t0,
            getattr(completion, "id", None),
            text[:80],
            count,
        )
        if count > MAX_BREAD_COUNT:
            LOG.error("Count reply %r is beyond %d; treating it as unusable output", text[:80], MAX_BREAD_COUNT)
            raise ProcessingError("Failed to process image")
        return count

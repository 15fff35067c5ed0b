from __future__ import annotations

import time
from typing import Any, Optional

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from ..config import DEFAULT_MODEL
from ..domain.models import SchemaGeneration
from ..errors import UpstreamError
from ..logging import get_logger
from .prompts import prompt_for


LOG = get_logger("fabric-spec-extraction")

DEFAULT_MAX_TOKENS = 2000
DEFAULT_TIMEOUT_SECONDS = 120.0


class VisionExtractor:
    """Send one sheet image to a vision chat model and return its raw text.

    Parsing the text is left to the caller so a malformed answer can be
    surfaced together with the raw output.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model_name: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        client: Any = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self.api_key:
            LOG.error("OPENAI_API_KEY missing in env/.env; cannot run extraction")
            raise UpstreamError("OpenAI API key is not configured")
        http_client = httpx.Client(
            timeout=httpx.Timeout(connect=10.0, read=90.0, write=30.0, pool=10.0),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )
        self._client = OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            http_client=http_client,
            max_retries=0,
        )
        return self._client

    def request_text(self, data_url: str, generation: SchemaGeneration) -> str:
        client = self._get_client()
        approx_mb = round(len(data_url) / (1024 * 1024), 2)
        LOG.info(
            "Calling chat completions (vision) model='%s' generation=%s (~data URL %.2f MiB)…",
            self.model_name,
            generation.value,
            approx_mb,
        )
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt_for(generation)},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }
        ]
        t0 = time.perf_counter()
        try:
            completion = client.chat.completions.create(
                model=self.model_name,
                messages=messages,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
            )
        except (APIConnectionError, APITimeoutError) as e:
            LOG.error("Network/timeout while calling OpenAI (Chat): %s", e)
            raise UpstreamError("이미지 분석 서비스에 연결할 수 없습니다.") from e
        except APIStatusError as e:
            body = getattr(getattr(e, "response", None), "text", None)
            LOG.error(
                "OpenAI API (Chat) returned %s. Body preview: %r",
                getattr(e, "status_code", "?"),
                (body[:300] if body else None),
            )
            raise UpstreamError("이미지 분석 서비스가 오류를 반환했습니다.") from e

        choices = getattr(completion, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        text = getattr(message, "content", None) if message is not None else None

        usage = getattr(completion, "usage", None)
        usage_dict = {
            k: getattr(usage, k, None) if usage else None
            for k in ("prompt_tokens", "completion_tokens", "total_tokens")
        }
        LOG.info(
            "Chat completion finished in %.2fs id=%s usage=%s",
            time.perf_counter() - t0,
            getattr(completion, "id", None),
            usage_dict,
        )
        if not isinstance(text, str) or not text.strip():
            LOG.error("No content received from OpenAI")
            raise UpstreamError("No content received from OpenAI")
        return text

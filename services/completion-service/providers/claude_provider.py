from typing import Optional

import httpx
from pydantic import ValidationError

from shared.config import ANTHROPIC_VERSION, UpstreamSettings
from shared.errors import GenerationNetworkError, GenerationParseError, convert_http_error
from shared.logging import get_logger
from shared.schemas import ClaudeMessagesEnvelope
from .base_provider import GenerationProvider

logger = get_logger(__name__)


class ClaudeProvider(GenerationProvider):
    """Anthropic Claude Messages API client.

    One pooled ``httpx.AsyncClient`` is shared by all requests; auth and
    version headers are built for every call and never stored on the client.
    """

    name = "claude"

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        model: str,
        max_tokens: int = 1024,
        anthropic_version: str = ANTHROPIC_VERSION,
        timeout: float = 60.0,
        connect_retries: int = 0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.url = endpoint
        self.model = model
        self.max_tokens = max_tokens
        self.anthropic_version = anthropic_version
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            timeout=timeout,
            transport=httpx.AsyncHTTPTransport(retries=connect_retries),
        )

    @classmethod
    def from_settings(cls, settings: UpstreamSettings) -> "ClaudeProvider":
        return cls(
            api_key=settings.claude_api_key,
            endpoint=str(settings.claude_api_endpoint),
            model=settings.claude_api_model,
            max_tokens=settings.claude_max_tokens,
            anthropic_version=settings.anthropic_version,
            timeout=settings.generation_timeout_seconds,
            connect_retries=settings.http_connect_retries,
        )

    def _build_payload(self, prompt: str, system_message: str, model: Optional[str]) -> dict:
        return {
            "model": model or self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "system", "content": system_message},
                {"role": "user", "content": prompt},
            ],
        }

    async def complete(self, prompt: str, system_message: str, model: Optional[str] = None) -> str:
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.anthropic_version,
            "content-type": "application/json",
        }
        payload = self._build_payload(prompt, system_message, model)
        try:
            resp = await self.client.post(self.url, headers=headers, json=payload)
            logger.info(f"Claude API response status: {resp.status_code}")
            resp.raise_for_status()
            envelope = ClaudeMessagesEnvelope.model_validate(resp.json())
        except httpx.HTTPStatusError as e:
            logger.error(f"Claude API error: {e.response.status_code} - {e.response.text}")
            raise convert_http_error(e.response.status_code, e.response.text, "generation")
        except httpx.RequestError as e:
            raise GenerationNetworkError(f"Network error calling Claude API: {str(e)}", service="generation")
        except (ValueError, ValidationError) as e:
            raise GenerationParseError(f"Unexpected Claude API response: {str(e)}", service="generation")

        if envelope.usage:
            logger.debug(
                "Claude API usage",
                extra={"input_tokens": envelope.usage.input_tokens, "output_tokens": envelope.usage.output_tokens},
            )
        return envelope.text

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

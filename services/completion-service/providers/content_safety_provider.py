from typing import List, Optional

import httpx
from pydantic import ValidationError

from shared.config import CONTENT_SAFETY_API_VERSION, UpstreamSettings
from shared.errors import ModerationNetworkError, ModerationParseError, convert_http_error
from shared.logging import get_logger
from shared.schemas import CategorySeverity, ContentSafetyAnalysis
from .base_provider import ModerationProvider

logger = get_logger(__name__)


class ContentSafetyProvider(ModerationProvider):
    """Azure AI Content Safety text analysis over its REST API"""

    name = "azure-content-safety"

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        api_version: str = CONTENT_SAFETY_API_VERSION,
        timeout: float = 10.0,
        connect_retries: int = 0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.url = f"{endpoint.rstrip('/')}/contentsafety/text:analyze"
        self.api_version = api_version
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            timeout=timeout,
            transport=httpx.AsyncHTTPTransport(retries=connect_retries),
        )

    @classmethod
    def from_settings(cls, settings: UpstreamSettings) -> "ContentSafetyProvider":
        return cls(
            api_key=settings.content_safety_key,
            endpoint=str(settings.content_safety_endpoint),
            api_version=settings.content_safety_api_version,
            timeout=settings.moderation_timeout_seconds,
            connect_retries=settings.http_connect_retries,
        )

    async def analyze_text(self, text: str) -> List[CategorySeverity]:
        headers = {
            "Ocp-Apim-Subscription-Key": self.api_key,
            "Content-Type": "application/json",
        }
        try:
            resp = await self.client.post(
                self.url,
                params={"api-version": self.api_version},
                headers=headers,
                json={"text": text},
            )
            resp.raise_for_status()
            analysis = ContentSafetyAnalysis.model_validate(resp.json())
        except httpx.HTTPStatusError as e:
            logger.error(f"Content Safety API error: {e.response.status_code} - {e.response.text}")
            raise convert_http_error(e.response.status_code, e.response.text, "moderation")
        except httpx.RequestError as e:
            raise ModerationNetworkError(f"Network error calling Content Safety: {str(e)}", service="moderation")
        except (ValueError, ValidationError) as e:
            raise ModerationParseError(f"Unexpected Content Safety response: {str(e)}", service="moderation")

        return analysis.categories_analysis

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

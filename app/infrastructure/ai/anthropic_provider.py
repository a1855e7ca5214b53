import logging
from typing import Any, Dict

import aiohttp

from ...core.config import settings
from ...application.ports.ai_provider import AIProvider, ProviderReply

logger = logging.getLogger(__name__)


class AnthropicProvider(AIProvider):
    """Calls the Anthropic Messages API with the caller's own API key."""

    def __init__(self, url: str = None, version: str = None, timeout_seconds: float = None) -> None:
        self.url = url or settings.ANTHROPIC_API_URL
        self.version = version or settings.ANTHROPIC_VERSION
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds or settings.ANALYSIS_TIMEOUT_SECONDS)

    async def create_message(self, api_key: str, payload: Dict[str, Any]) -> ProviderReply:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": self.version,
        }
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(self.url, json=payload, headers=headers) as response:
                # Error bodies are relayed as-is, so decode whatever the content type claims
                body = await response.json(content_type=None)
                logger.info(f"AI provider responded with status {response.status}")
                return ProviderReply(status=response.status, body=body)

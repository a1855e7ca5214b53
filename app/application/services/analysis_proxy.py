import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..ports.ai_provider import AIProvider
from ...core.prompts import DEFAULT_ANALYSIS_PROMPT
from ...media_utils import DEFAULT_MEDIA_TYPE, PROVIDER_MEDIA_TYPES, split_data_uri
from ...schemas.analysis.analysis import AnalyzeRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorsPolicy:
    allow_origin: str = "*"
    allow_methods: str = "POST, OPTIONS"
    allow_headers: str = "Content-Type"

    def headers(self) -> Dict[str, str]:
        return {
            "Access-Control-Allow-Origin": self.allow_origin,
            "Access-Control-Allow-Methods": self.allow_methods,
            "Access-Control-Allow-Headers": self.allow_headers,
        }


@dataclass(frozen=True)
class ProxyConfig:
    model: str = "claude-sonnet-4-20250514"
    default_prompt: str = DEFAULT_ANALYSIS_PROMPT
    max_tokens: int = 1500
    cors: Optional[CorsPolicy] = field(default_factory=CorsPolicy)
    allow_custom_prompt: bool = True
    # When False every image is declared image/jpeg whatever its real format
    sniff_media_type: bool = True


@dataclass
class ProxyResponse:
    status_code: int
    body: Any = None  # None means an empty body
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class AnalysisProxy:
    """Reshapes an analyze request for the AI provider and relays its answer.

    Stateless between calls: credential, images and prompt all come in with
    each request. The provider's reply is passed back untouched, status code
    included; only local failures are turned into ``500 {"error": ...}``.
    """

    def __init__(self, config: ProxyConfig, provider: AIProvider) -> None:
        self.config = config
        self.provider = provider

    def _headers(self) -> Dict[str, str]:
        return self.config.cors.headers() if self.config.cors else {}

    def error_response(self, status_code: int, message: str) -> ProxyResponse:
        return ProxyResponse(status_code, {"error": message}, self._headers())

    async def handle(self, method: str, raw_body: Union[bytes, str, None]) -> ProxyResponse:
        method = (method or "").upper()
        if method == "OPTIONS":
            return ProxyResponse(200, None, self._headers())
        if method != "POST":
            return self.error_response(405, "Method not allowed")

        try:
            payload = json.loads(raw_body or b"")
            request = AnalyzeRequest.model_validate(payload)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            logger.warning(f"Rejected malformed analyze request: {e}")
            return self.error_response(500, str(e))

        return await self.forward(
            request.apiKey,
            [bag.model_dump() for bag in request.bags],
            request.customPrompt,
        )

    def image_block(self, data_uri: str) -> Dict[str, Any]:
        declared, data = split_data_uri(data_uri)
        media_type = DEFAULT_MEDIA_TYPE
        if self.config.sniff_media_type and declared in PROVIDER_MEDIA_TYPES:
            media_type = declared
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": data},
        }

    def build_request(self, bags: List[Dict[str, Any]], custom_prompt: Optional[str] = None) -> Dict[str, Any]:
        prompt = self.config.default_prompt
        if custom_prompt and self.config.allow_custom_prompt:
            prompt = custom_prompt

        content = [self.image_block(bag["image"]) for bag in bags]
        content.append({"type": "text", "text": prompt})
        return {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": [{"role": "user", "content": content}],
        }

    async def forward(self, api_key: str, bags: List[Dict[str, Any]], custom_prompt: Optional[str] = None) -> ProxyResponse:
        try:
            payload = self.build_request(bags, custom_prompt)
            logger.info(f"Forwarding {len(bags)} bag image(s) to AI provider (model {self.config.model})")
            reply = await self.provider.create_message(api_key, payload)
        except asyncio.TimeoutError:
            logger.error("AI provider request timed out")
            return self.error_response(500, "Request to AI provider timed out")
        except Exception as e:
            logger.error(f"Analysis proxy failure: {e}", exc_info=True)
            return self.error_response(500, str(e) or e.__class__.__name__)

        if not reply.ok:
            logger.warning(f"AI provider returned status {reply.status}")
            return ProxyResponse(reply.status, reply.body, self._headers())
        return ProxyResponse(200, reply.body, self._headers())

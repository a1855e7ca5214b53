from fastapi import Request

from .core.config import settings
from .application.ports.ai_provider import AIProvider
from .application.services.analysis_proxy import AnalysisProxy, CorsPolicy, ProxyConfig
from .application.services.collection_analysis_service import CollectionAnalysisService
from .application.services.collection_store import CollectionStore
from .infrastructure.ai.anthropic_provider import AnthropicProvider


def build_proxy_config() -> ProxyConfig:
    return ProxyConfig(
        model=settings.ANTHROPIC_MODEL,
        max_tokens=settings.ANALYSIS_MAX_TOKENS,
        cors=CorsPolicy(
            allow_origin=", ".join(settings.allowed_origins_list) or "*",
            allow_methods=", ".join(settings.allowed_methods_list),
            allow_headers=", ".join(settings.allowed_headers_list),
        ),
        allow_custom_prompt=settings.ALLOW_CUSTOM_PROMPT,
        sniff_media_type=settings.SNIFF_IMAGE_MEDIA_TYPE,
    )


def build_analysis_proxy(provider: AIProvider = None) -> AnalysisProxy:
    return AnalysisProxy(build_proxy_config(), provider or AnthropicProvider())


def get_collection_store(request: Request) -> CollectionStore:
    return request.app.state.collection_store


def get_analysis_service(request: Request) -> CollectionAnalysisService:
    return request.app.state.analysis_service


def get_analysis_proxy(request: Request) -> AnalysisProxy:
    return request.app.state.analysis_proxy

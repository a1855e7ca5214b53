from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from ..application.services.analysis_proxy import AnalysisProxy, ProxyResponse
from ..dependencies import get_analysis_proxy

router = APIRouter(tags=["Analysis Proxy"])

ANALYZE_PATH = "/analyze"

# Methods outside this list are answered by method_not_allowed through the app's
# HTTP error handler
PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def to_http_response(result: ProxyResponse) -> Response:
    if result.body is None:
        return Response(status_code=result.status_code, headers=result.headers)
    return JSONResponse(status_code=result.status_code, content=result.body, headers=result.headers)


@router.api_route(ANALYZE_PATH, methods=PROXY_METHODS)
async def analyze(request: Request, proxy: AnalysisProxy = Depends(get_analysis_proxy)):
    """
    Forward a bag collection to the AI provider.

    Body: `{"apiKey": str, "bags": [{"image": "data:..."}], "customPrompt": str?}`.
    The provider's status code and JSON body are relayed unchanged.
    """
    raw_body = await request.body()
    result = await proxy.handle(request.method, raw_body)
    return to_http_response(result)


async def method_not_allowed(request: Request) -> Response:
    """The proxy's own 405 for verbs the router never dispatches (HEAD, TRACE, ...)."""
    proxy = get_analysis_proxy(request)
    return to_http_response(proxy.error_response(405, "Method not allowed"))

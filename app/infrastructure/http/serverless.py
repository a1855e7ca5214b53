"""Serverless entry point for the analysis proxy.

Takes the API-gateway style event (``httpMethod``, ``body``,
``isBase64Encoded``) and returns ``{statusCode, headers, body}``. A new proxy is
built per invocation; nothing is kept between calls.
"""
import asyncio
import base64
import binascii
import json
import logging
from typing import Any, Dict

from ...application.services.analysis_proxy import AnalysisProxy, ProxyResponse
from ...dependencies import build_analysis_proxy

logger = logging.getLogger(__name__)


def to_event_response(result: ProxyResponse) -> Dict[str, Any]:
    headers = dict(result.headers)
    if result.body is None:
        body = ""
    else:
        headers["Content-Type"] = "application/json"
        body = json.dumps(result.body)
    return {"statusCode": result.status_code, "headers": headers, "body": body}


async def handle_event(event: Dict[str, Any], proxy: AnalysisProxy = None) -> Dict[str, Any]:
    proxy = proxy or build_analysis_proxy()
    method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    body = event.get("body")
    if body and event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            return to_event_response(proxy.error_response(500, f"Invalid base64 body: {e}"))
    result = await proxy.handle(method, body)
    logger.info(f"{method} analyze -> {result.status_code}")
    return to_event_response(result)


def handler(event, context=None):
    return asyncio.run(handle_event(event))

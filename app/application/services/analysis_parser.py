"""Turn a provider reply envelope into an :class:`AnalysisResult`.

The model is asked for JSON but usually wraps it in prose, so extraction is a
two stage affair:

1. ``find_json_span`` takes everything from the first ``{`` to the last ``}``.
   This is a greedy textual cut, not a JSON-aware scan; stray braces in the
   surrounding prose will widen the span and make stage 2 fail.
2. ``parse_analysis`` decodes that span strictly. No span or bad JSON degrades
   to an overview-only result carrying the full reply text. Decoded JSON is
   the result even when its fields do not have the expected types.
"""
import json
import logging
from typing import Any, Optional

from ...schemas.analysis.analysis import AnalysisResult

logger = logging.getLogger(__name__)


def first_text_block(envelope: Any) -> str:
    if not isinstance(envelope, dict):
        return ""
    for block in envelope.get("content") or []:
        if isinstance(block, dict) and block.get("type") == "text":
            return block.get("text") or ""
    return ""


def find_json_span(text: str) -> Optional[str]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None
    return text[start:end + 1]


def parse_analysis(envelope: Any) -> AnalysisResult:
    text = first_text_block(envelope)
    span = find_json_span(text)
    if span is None:
        logger.info("No JSON object found in AI reply, using overview-only result")
        return AnalysisResult.overview_only(text)

    try:
        decoded = json.loads(span)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse AI reply as analysis JSON: {e}")
        return AnalysisResult.overview_only(text)
    return AnalysisResult.from_decoded(decoded)

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from .analysis_parser import parse_analysis
from .analysis_proxy import AnalysisProxy, ProxyResponse
from .collection_store import CollectionStore
from ...exceptions import AnalysisFailedError, AnalysisInProgressError, AnalysisInputError
from ...schemas.analysis.analysis import AnalysisResult

logger = logging.getLogger(__name__)


def _error_message(response: ProxyResponse) -> str:
    body = response.body
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return f"API Error: {response.status_code}"


@dataclass
class CollectionAnalysisService:
    store: CollectionStore
    proxy: AnalysisProxy
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    _task: Optional[asyncio.Task] = None
    _cancel_requested: bool = False

    @property
    def is_analyzing(self) -> bool:
        return self._lock.locked()

    async def analyze(self, custom_prompt: Optional[str] = None) -> AnalysisResult:
        if not self.store.bags:
            raise AnalysisInputError("Please upload at least one bag image first!")
        if not self.store.has_credential:
            raise AnalysisInputError("Please enter your API key first!")
        if self._lock.locked():
            raise AnalysisInProgressError()

        async with self._lock:
            # Snapshot of the collection as it is right now
            bags = [{"image": b.image, "name": b.name} for b in self.store.bags]
            self._cancel_requested = False
            self._task = asyncio.create_task(
                self.proxy.forward(self.store.credential, bags, custom_prompt)
            )
            try:
                response = await self._task
            except asyncio.CancelledError:
                if not self._cancel_requested:
                    raise
                logger.info("Analysis cancelled by user")
                raise AnalysisFailedError("request was cancelled")
            finally:
                self._task = None

        if not response.ok:
            message = _error_message(response)
            logger.error(f"Analysis error: {message}")
            raise AnalysisFailedError(message)

        result = parse_analysis(response.body)
        self.store.set_analysis(result)
        logger.info(f"Analysis completed for {len(bags)} bag(s)")
        return result

    def cancel(self) -> bool:
        if self._task is None or self._task.done():
            return False
        self._cancel_requested = True
        self._task.cancel()
        return True

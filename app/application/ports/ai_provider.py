from dataclasses import dataclass
from typing import Any, Dict, Protocol


@dataclass
class ProviderReply:
    status: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class AIProvider(Protocol):
    async def create_message(self, api_key: str, payload: Dict[str, Any]) -> ProviderReply:
        ...

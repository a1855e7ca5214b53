from typing import List, Optional, Protocol

from ...schemas.collection.bag import BagRecord


class CollectionPersistence(Protocol):
    def load_bags(self) -> Optional[List[BagRecord]]:
        ...

    def save_bags(self, bags: List[BagRecord]) -> None:
        ...

    def load_credential(self) -> Optional[str]:
        ...

    def save_credential(self, credential: str) -> None:
        ...

    def clear(self) -> None:
        ...

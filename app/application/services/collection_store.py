import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..ports.collection_repo import CollectionPersistence
from ...core.config import settings
from ...exceptions import APIException, BagNotFoundError, InvalidFieldError
from ...media_utils import detect_image_type, encode_data_uri, guess_media_type
from ...schemas.analysis.analysis import AnalysisResult
from ...schemas.collection.bag import BagRecord, IMMUTABLE_FIELDS, TRACKING_FIELDS

logger = logging.getLogger(__name__)

_SNAKE_TO_CAMEL = {
    "purchase_price": "purchasePrice",
    "estimated_value": "estimatedValue",
}


@dataclass
class CollectionStore:
    """Bag records, provider credential and current analysis of one user.

    Every mutation of the bag list is written through ``persistence``; the
    credential is saved on its own. The analysis result lives in memory only.
    """
    persistence: CollectionPersistence
    bags: List[BagRecord] = field(default_factory=list)
    credential: str = ""
    analysis: Optional[AnalysisResult] = None

    @classmethod
    def load(cls, persistence: CollectionPersistence) -> "CollectionStore":
        bags = persistence.load_bags() or []
        credential = persistence.load_credential() or ""
        logger.info(f"Loaded collection with {len(bags)} bag(s), credential configured: {bool(credential)}")
        return cls(persistence=persistence, bags=list(bags), credential=credential)

    @property
    def has_credential(self) -> bool:
        return bool(self.credential.strip())

    async def add(self, upload) -> BagRecord:
        filename = upload.filename or "upload.jpg"
        declared = guess_media_type(filename, getattr(upload, "content_type", None))
        if declared not in settings.ALLOWED_IMAGE_TYPES:
            raise APIException(status_code=415, detail=f"File type {declared} not allowed")

        data = await upload.read()
        if not data:
            raise APIException(status_code=400, detail=f"File {filename} is empty")
        if len(data) > settings.MAX_FILE_SIZE:
            raise APIException(status_code=413, detail=f"File too large (max {settings.MAX_FILE_SIZE // (1024*1024)}MB)")

        media_type = await asyncio.to_thread(detect_image_type, data)
        if media_type is None or media_type not in settings.ALLOWED_IMAGE_TYPES:
            raise APIException(status_code=415, detail=f"File {filename} is not a supported image")

        bag = BagRecord(
            id=uuid.uuid4().hex,
            image=encode_data_uri(data, media_type),
            name=filename,
        )
        self.bags.append(bag)
        self._save_bags()
        logger.info(f"Added bag {bag.id} ({filename}, {media_type})")
        return bag

    def remove(self, bag_id: str) -> None:
        # The analysis is cleared even when nothing was removed
        self.bags = [b for b in self.bags if b.id != bag_id]
        self.analysis = None
        self._save_bags()

    def update(self, bag_id: str, field_name: str, value) -> BagRecord:
        return self.update_many(bag_id, {field_name: value})

    def update_many(self, bag_id: str, changes: Dict[str, Any]) -> BagRecord:
        """Apply every change or none of them; the record is saved once."""
        resolved = {}
        for field_name, value in changes.items():
            name = _SNAKE_TO_CAMEL.get(field_name, field_name)
            if name in IMMUTABLE_FIELDS:
                raise InvalidFieldError(f"Field '{name}' cannot be changed")
            if name not in TRACKING_FIELDS:
                raise InvalidFieldError(f"Unknown field '{field_name}'")
            resolved[name] = value

        index = next((i for i, b in enumerate(self.bags) if b.id == bag_id), None)
        if index is None:
            raise BagNotFoundError(bag_id)

        data = self.bags[index].model_dump()
        data.update(resolved)
        try:
            updated = BagRecord.model_validate(data)
        except ValidationError as e:
            error = e.errors()[0]
            name = error["loc"][0] if error.get("loc") else "value"
            raise InvalidFieldError(f"Invalid value for '{name}': {error['msg']}")
        self.bags[index] = updated
        self._save_bags()
        return updated

    def set_credential(self, credential: str) -> None:
        if not credential or not credential.strip():
            raise InvalidFieldError("Please enter a valid API key")
        self.credential = credential
        self.persistence.save_credential(self.credential)

    def set_analysis(self, result: Optional[AnalysisResult]) -> None:
        self.analysis = result

    def reset(self) -> None:
        self.bags = []
        self.credential = ""
        self.analysis = None
        self.persistence.clear()
        logger.info("Collection reset")

    def _save_bags(self) -> None:
        self.persistence.save_bags(self.bags)

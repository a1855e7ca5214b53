import json
import logging
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlmodel import Session

from .....db.models import StoredState
from .....application.ports.collection_repo import CollectionPersistence
from .....schemas.collection.bag import BagRecord

logger = logging.getLogger(__name__)

BAGS_KEY = "bagWardrobe.bags"
CREDENTIAL_KEY = "bagWardrobe.apiKey"


class SqlCollectionPersistence(CollectionPersistence):
    """Keeps the collection in two rows of ``stored_state``.

    The bag list is stored as one JSON document; there is no format version,
    so a document that no longer fits ``BagRecord`` is ignored and the
    collection starts empty until it is saved again or reset.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def _get(self, key: str) -> Optional[str]:
        with Session(self.engine) as session:
            row = session.get(StoredState, key)
            return row.value if row else None

    def _put(self, key: str, value: str) -> None:
        with Session(self.engine) as session:
            row = session.get(StoredState, key)
            if row is None:
                row = StoredState(key=key, value=value)
            else:
                row.value = value
                row.updated_at = datetime.utcnow()
            session.add(row)
            session.commit()

    def load_bags(self) -> Optional[List[BagRecord]]:
        raw = self._get(BAGS_KEY)
        if raw is None:
            return None
        try:
            return [BagRecord.model_validate(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning(f"Saved bag list could not be read, starting empty: {e}")
            return None

    def save_bags(self, bags: List[BagRecord]) -> None:
        self._put(BAGS_KEY, json.dumps([b.model_dump(mode="json") for b in bags]))

    def load_credential(self) -> Optional[str]:
        return self._get(CREDENTIAL_KEY)

    def save_credential(self, credential: str) -> None:
        self._put(CREDENTIAL_KEY, credential)

    def clear(self) -> None:
        with Session(self.engine) as session:
            for key in (BAGS_KEY, CREDENTIAL_KEY):
                row = session.get(StoredState, key)
                if row is not None:
                    session.delete(row)
            session.commit()

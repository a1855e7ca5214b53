import io
from typing import List, Optional

import pytest
from PIL import Image

from app.application.services.collection_store import CollectionStore
from app.exceptions import APIException, BagNotFoundError, InvalidFieldError
from app.schemas.analysis.analysis import AnalysisResult
from app.schemas.collection.bag import BagRecord, Condition


class FakePersistence:
    def __init__(self, bags: Optional[List[BagRecord]] = None, credential: Optional[str] = None):
        self.bags = bags
        self.credential = credential
        self.bag_saves = 0
        self.credential_saves = 0
        self.cleared = False

    def load_bags(self):
        return self.bags

    def save_bags(self, bags):
        self.bags = [b.model_copy() for b in bags]
        self.bag_saves += 1

    def load_credential(self):
        return self.credential

    def save_credential(self, credential):
        self.credential = credential
        self.credential_saves += 1

    def clear(self):
        self.bags = None
        self.credential = None
        self.cleared = True


def image_bytes(fmt="PNG"):
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), (200, 30, 60)).save(buf, format=fmt)
    return buf.getvalue()


class DummyUpload:
    def __init__(self, filename: str, data: bytes, content_type: str = "image/png"):
        self.filename = filename
        self.content_type = content_type
        self._data = data

    async def read(self):
        return self._data


def record(bag_id: str) -> BagRecord:
    return BagRecord(id=bag_id, image="data:image/jpeg;base64,AAAA", name=f"{bag_id}.jpg")


def test_load_without_saved_state_is_empty():
    store = CollectionStore.load(FakePersistence())
    assert store.bags == []
    assert store.credential == ""
    assert store.has_credential is False
    assert store.analysis is None


def test_load_restores_saved_state():
    store = CollectionStore.load(FakePersistence(bags=[record("a"), record("b")], credential="sk-ant-1"))
    assert [b.id for b in store.bags] == ["a", "b"]
    assert store.credential == "sk-ant-1"


@pytest.mark.asyncio
async def test_add_creates_record_with_defaults():
    persistence = FakePersistence()
    store = CollectionStore.load(persistence)

    bag = await store.add(DummyUpload("tote.png", image_bytes()))

    assert bag.name == "tote.png"
    assert bag.image.startswith("data:image/png;base64,")
    assert bag.condition == Condition.GOOD
    assert bag.brand is None and bag.purchasePrice is None
    assert persistence.bag_saves == 1
    assert persistence.bags[0].id == bag.id


@pytest.mark.asyncio
async def test_add_uses_detected_format():
    store = CollectionStore.load(FakePersistence())
    bag = await store.add(DummyUpload("really-a-jpeg.png", image_bytes("JPEG")))
    assert bag.image.startswith("data:image/jpeg;base64,")


@pytest.mark.asyncio
async def test_add_assigns_unique_ids():
    store = CollectionStore.load(FakePersistence())
    data = image_bytes()
    ids = {(await store.add(DummyUpload(f"{i}.png", data))).id for i in range(20)}
    assert len(ids) == 20


@pytest.mark.asyncio
async def test_add_rejects_non_images():
    store = CollectionStore.load(FakePersistence())
    with pytest.raises(APIException) as exc:
        await store.add(DummyUpload("notes.png", b"definitely not an image"))
    assert exc.value.status_code == 415
    with pytest.raises(APIException) as exc:
        await store.add(DummyUpload("notes.txt", b"hello", content_type="text/plain"))
    assert exc.value.status_code == 415
    assert store.bags == []


@pytest.mark.asyncio
async def test_add_does_not_clear_analysis():
    store = CollectionStore.load(FakePersistence())
    store.set_analysis(AnalysisResult.overview_only("kept"))
    await store.add(DummyUpload("a.png", image_bytes()))
    assert store.analysis.overview == "kept"


def test_remove_deletes_and_clears_analysis():
    persistence = FakePersistence(bags=[record("a"), record("b")])
    store = CollectionStore.load(persistence)
    store.set_analysis(AnalysisResult.overview_only("old"))

    store.remove("a")

    assert [b.id for b in store.bags] == ["b"]
    assert store.analysis is None
    assert [b.id for b in persistence.bags] == ["b"]


def test_remove_unknown_id_still_clears_analysis():
    store = CollectionStore.load(FakePersistence(bags=[record("a")]))
    store.set_analysis(AnalysisResult.overview_only("old"))

    store.remove("missing")

    assert [b.id for b in store.bags] == ["a"]
    assert store.analysis is None


def test_update_tracking_fields():
    persistence = FakePersistence(bags=[record("a")])
    store = CollectionStore.load(persistence)

    store.update("a", "brand", "Hermès")
    store.update("a", "purchase_price", "1200")
    updated = store.update("a", "condition", "excellent")

    assert updated.brand == "Hermès"
    assert updated.purchasePrice == "1200"
    assert updated.condition == Condition.EXCELLENT
    assert persistence.bags[0].brand == "Hermès"
    assert persistence.bag_saves == 3


def test_update_does_not_clear_analysis():
    store = CollectionStore.load(FakePersistence(bags=[record("a")]))
    store.set_analysis(AnalysisResult.overview_only("kept"))
    store.update("a", "model", "Birkin 30")
    assert store.analysis is not None


@pytest.mark.parametrize("field_name", ["id", "image", "name"])
def test_update_rejects_immutable_fields(field_name):
    store = CollectionStore.load(FakePersistence(bags=[record("a")]))
    with pytest.raises(InvalidFieldError):
        store.update("a", field_name, "x")


def test_update_rejects_unknown_field_and_bad_condition():
    store = CollectionStore.load(FakePersistence(bags=[record("a")]))
    with pytest.raises(InvalidFieldError):
        store.update("a", "colour", "red")
    with pytest.raises(InvalidFieldError):
        store.update("a", "condition", "mint")
    assert store.bags[0].condition == Condition.GOOD


def test_update_many_applies_all_fields_with_one_save():
    persistence = FakePersistence(bags=[record("a")])
    store = CollectionStore.load(persistence)

    updated = store.update_many("a", {"brand": "Chanel", "estimated_value": 5400, "condition": "fair"})

    assert updated.brand == "Chanel"
    assert updated.estimatedValue == "5400"
    assert updated.condition == Condition.FAIR
    assert persistence.bag_saves == 1


def test_update_many_is_all_or_nothing():
    persistence = FakePersistence(bags=[record("a")])
    store = CollectionStore.load(persistence)

    with pytest.raises(InvalidFieldError):
        store.update_many("a", {"brand": "Chanel", "condition": None})
    with pytest.raises(InvalidFieldError):
        store.update_many("a", {"brand": "Chanel", "image": "data:,"})

    assert store.bags[0].brand is None
    assert persistence.bag_saves == 0


def test_update_unknown_bag():
    store = CollectionStore.load(FakePersistence(bags=[record("a")]))
    with pytest.raises(BagNotFoundError):
        store.update("zzz", "brand", "Coach")


def test_credential_is_persisted_separately():
    persistence = FakePersistence()
    store = CollectionStore.load(persistence)

    store.set_credential("sk-ant-123")

    assert store.has_credential
    assert persistence.credential == "sk-ant-123"
    assert persistence.credential_saves == 1
    assert persistence.bag_saves == 0


def test_blank_credential_is_rejected():
    store = CollectionStore.load(FakePersistence())
    with pytest.raises(InvalidFieldError):
        store.set_credential("   ")
    assert store.credential == ""


def test_reset_clears_everything():
    persistence = FakePersistence(bags=[record("a")], credential="k")
    store = CollectionStore.load(persistence)
    store.set_analysis(AnalysisResult.overview_only("x"))

    store.reset()

    assert store.bags == [] and store.credential == "" and store.analysis is None
    assert persistence.cleared

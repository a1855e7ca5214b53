import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from ..application.services.collection_analysis_service import CollectionAnalysisService
from ..application.services.collection_store import CollectionStore
from ..application.services.value_calculator import calculate_collection_value
from ..dependencies import get_analysis_service, get_collection_store
from ..exceptions import create_success_response
from ..schemas.analysis.analysis import CollectionAnalyzeRequest
from ..schemas.collection.bag import BagUpdate, CollectionView, CredentialRequest, CredentialStatus
from ..schemas.common.common import CancelResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/collection",
    tags=["Collection"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)


def _analysis_data(store: CollectionStore):
    return store.analysis.to_data() if store.analysis else None


@router.get("")
async def get_collection(
    store: CollectionStore = Depends(get_collection_store),
    service: CollectionAnalysisService = Depends(get_analysis_service),
):
    view = CollectionView(
        bags=store.bags,
        value=calculate_collection_value(store.bags),
        analysis=_analysis_data(store),
        credentialConfigured=store.has_credential,
        analyzing=service.is_analyzing,
    )
    return create_success_response(view.model_dump(mode="json"))


@router.delete("")
async def reset_collection(store: CollectionStore = Depends(get_collection_store)):
    store.reset()
    return create_success_response({"message": "Collection reset"})


@router.post("/bags")
async def upload_bags(
    files: List[UploadFile] = File(...),
    store: CollectionStore = Depends(get_collection_store),
):
    if not files:
        raise HTTPException(status_code=400, detail="At least one file must be uploaded.")

    added = []
    errors = []
    # Each file is decoded on its own; records land in completion order
    for pending in asyncio.as_completed([store.add(f) for f in files]):
        try:
            bag = await pending
        except HTTPException as e:
            logger.warning(f"Upload rejected: {e.detail}")
            errors.append(e)
            continue
        added.append(bag.model_dump(mode="json"))

    if not added:
        raise HTTPException(status_code=errors[0].status_code, detail="; ".join(e.detail for e in errors))
    return create_success_response({"bags": added, "errors": [e.detail for e in errors]})


@router.patch("/bags/{bag_id}")
async def update_bag(
    bag_id: str,
    changes: BagUpdate,
    store: CollectionStore = Depends(get_collection_store),
):
    fields = changes.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    bag = store.update_many(bag_id, fields)
    return create_success_response(bag.model_dump(mode="json"))


@router.delete("/bags/{bag_id}")
async def remove_bag(bag_id: str, store: CollectionStore = Depends(get_collection_store)):
    store.remove(bag_id)
    return create_success_response({"message": "Bag removed", "remaining": len(store.bags)})


@router.get("/value")
async def get_value(store: CollectionStore = Depends(get_collection_store)):
    return create_success_response(calculate_collection_value(store.bags).model_dump())


@router.get("/credential")
async def get_credential_status(store: CollectionStore = Depends(get_collection_store)):
    return create_success_response(CredentialStatus(configured=store.has_credential).model_dump())


@router.put("/credential")
async def set_credential(body: CredentialRequest, store: CollectionStore = Depends(get_collection_store)):
    store.set_credential(body.apiKey)
    return create_success_response(CredentialStatus(configured=True).model_dump())


@router.post("/analyze", responses={409: {"model": ErrorResponse}, 502: {"model": ErrorResponse}})
async def analyze_collection(
    body: CollectionAnalyzeRequest = None,
    service: CollectionAnalysisService = Depends(get_analysis_service),
):
    custom_prompt = body.customPrompt if body else None
    result = await service.analyze(custom_prompt)
    return create_success_response(result.to_data())


@router.post("/analyze/cancel")
async def cancel_analysis(service: CollectionAnalysisService = Depends(get_analysis_service)):
    return create_success_response(CancelResponse(cancelled=service.cancel()).model_dump())


@router.get("/analysis")
async def get_analysis(store: CollectionStore = Depends(get_collection_store)):
    return create_success_response(_analysis_data(store))

"""Request endpoints that record operations."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_normal
from ..database import get_db
from ..storelight import StorelightClient, get_store_client
from ..services import cleaned_out, destruction, reagent_transfer, release, slot_copy
from ..services.operations import complete_result

# purpose: transport for the validate, transact, record, unstore request pipeline
# status: active
# depends_on: sampletrack.services

router = APIRouter(prefix="/api/operations", tags=["operations"])


@router.post("/release", response_model=schemas.OperationResultOut)
def release_labware(
    payload: schemas.ReleaseRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_normal),
    client: StorelightClient = Depends(get_store_client),
):
    committed = release.perform_release(db, user, payload, client=client)
    return schemas.OperationResultOut.from_result(complete_result(committed))


@router.post("/destroy", response_model=schemas.OperationResultOut)
def destroy_labware(
    payload: schemas.DestroyRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_normal),
    client: StorelightClient = Depends(get_store_client),
):
    committed = destruction.perform_destroy(db, user, payload, client=client)
    return schemas.OperationResultOut.from_result(complete_result(committed))


@router.post("/slot-copy", response_model=schemas.OperationResultOut)
def copy_slots(
    payload: schemas.SlotCopyRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_normal),
    client: StorelightClient = Depends(get_store_client),
):
    committed = slot_copy.perform_slot_copy(db, user, payload, client=client)
    return schemas.OperationResultOut.from_result(complete_result(committed))


@router.post("/reagent-transfer", response_model=schemas.OperationResultOut)
def transfer_reagents(
    payload: schemas.ReagentTransferRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_normal),
):
    committed = reagent_transfer.perform_reagent_transfer(db, user, payload)
    return schemas.OperationResultOut.from_result(complete_result(committed))


@router.post("/clean-out", response_model=schemas.OperationResultOut)
def clean_out_slots(
    payload: schemas.CleanOutRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_normal),
):
    committed = cleaned_out.perform_clean_out(db, user, payload)
    return schemas.OperationResultOut.from_result(complete_result(committed))

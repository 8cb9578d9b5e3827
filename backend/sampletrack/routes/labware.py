from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, require_normal
from ..database import get_db
from ..services import cleaned_out, lookups, sections
from ..transactor import Transactor

router = APIRouter(prefix="/api/labware", tags=["labware"])


@router.get("/{barcode}", response_model=schemas.LabwareOut)
def get_labware(
    barcode: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return schemas.LabwareOut.from_labware(lookups.load_labware_by_barcode(db, barcode))


@router.get("/{barcode}/cleaned-out", response_model=schemas.CleanedOutAddressesOut)
def get_cleaned_out_addresses(
    barcode: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    addresses = cleaned_out.find_cleaned_out_addresses(db, barcode)
    return schemas.CleanedOutAddressesOut(barcode=barcode.strip().upper(), addresses=addresses)


@router.post("/slots/{slot_id}/next-section", response_model=schemas.NextSectionOut)
def issue_next_section(
    slot_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_normal),
):
    section = Transactor.of(db).transact("Next section", lambda: sections.next_section(db, slot_id))
    return schemas.NextSectionOut(slot_id=slot_id, section=section)

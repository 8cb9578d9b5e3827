from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, require_admin
from ..database import get_db
from ..services.admin import get_admin
from ..transactor import Transactor

# purpose: add, enable/disable and list reference data
# status: active

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/{kind}", response_model=list[schemas.ReferenceDataOut])
def list_reference_data(
    kind: str,
    include_disabled: bool = False,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    admin = get_admin(kind)
    return [admin.describe(entity) for entity in admin.list_all(db, include_disabled=include_disabled)]


@router.post("/{kind}", response_model=schemas.ReferenceDataOut, status_code=status.HTTP_201_CREATED)
def add_reference_data(
    kind: str,
    payload: schemas.ReferenceDataCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    admin = get_admin(kind)
    entity = Transactor.of(db).transact(f"Add {admin.label}", lambda: admin.add_new(db, user, payload.value))
    return admin.describe(entity)


@router.put("/{kind}/enabled", response_model=schemas.ReferenceDataOut)
def set_reference_data_enabled(
    kind: str,
    payload: schemas.ReferenceDataEnable,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin),
):
    admin = get_admin(kind)
    entity = Transactor.of(db).transact(
        f"Set {admin.label} enabled",
        lambda: admin.set_enabled(db, payload.value, payload.enabled),
    )
    return admin.describe(entity)

"""Destruction of labware."""

from __future__ import annotations

from sqlalchemy.orm import Session

from .. import models, schemas
from ..logger import get_logger
from ..storelight import StorelightClient
from ..transactor import Committed, Transactor
from ..validation import ProblemSet, add_problem, raise_problems
from . import lookups
from .labware_validation import LabwareValidator
from .operations import OperationResult, create_operation_in_place
from .store import unstore_after_commit

# purpose: validate and record labware destruction, then unstore the destroyed labware after commit
# status: active

logger = get_logger(__name__)

DESTROY_OP_NAME = "Destroy"


def load_reason(problems, db: Session, reason_id: int | None) -> models.DestructionReason | None:
    if reason_id is None:
        add_problem(problems, "No reason id supplied.")
        return None
    reason = db.get(models.DestructionReason, reason_id)
    if reason is None:
        add_problem(problems, f"Unknown destruction reason id: {reason_id}")
    elif not reason.enabled:
        add_problem(problems, "Specified destruction reason is not enabled.")
    return reason


def destroy(
    db: Session,
    user: models.User,
    request: schemas.DestroyRequest,
    *,
    client: StorelightClient | None = None,
) -> OperationResult:
    problems = ProblemSet()
    if not request.barcodes:
        add_problem(problems, "No barcodes supplied.")
    reason = load_reason(problems, db, request.reason_id)
    labware: list[models.Labware] = []
    if request.barcodes:
        validator = LabwareValidator()
        labware = validator.load_labware(db, request.barcodes)
        validator.validate_sources()
        validator.report(problems)
    work = lookups.validate_usable_work(problems, db, request.work_number)
    op_type = lookups.load_operation_type(problems, db, DESTROY_OP_NAME)
    raise_problems(problems, "The destruction request could not be validated.")

    operations = []
    for lw in labware:
        lw.destroyed = True
        operation = create_operation_in_place(db, op_type, user, lw, work=work)
        db.add(
            models.Destruction(
                labware_id=lw.id,
                user_id=user.id,
                reason_id=reason.id,
                operation_id=operation.id,
            )
        )
        operations.append(operation)
    db.flush()
    barcodes = [lw.barcode for lw in labware]
    unstore_after_commit(db, user, barcodes, client=client)
    logger.info("destruction.recorded", barcodes=barcodes, reason=reason.text, operations=len(operations))
    return OperationResult(operations=operations, labware=labware)


def perform_destroy(
    db: Session,
    user: models.User,
    request: schemas.DestroyRequest,
    *,
    client: StorelightClient | None = None,
) -> Committed[OperationResult]:
    return Transactor.of(db).transact_two_phase(
        "Destruction transaction",
        lambda: destroy(db, user, request, client=client),
    )

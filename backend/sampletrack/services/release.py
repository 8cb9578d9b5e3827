"""Release of labware to a destination outside the lab."""

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

# purpose: validate and record labware releases, then unstore the released labware after commit
# status: active
# depends_on: sampletrack.services.operations, sampletrack.services.store

logger = get_logger(__name__)

RELEASE_OP_NAME = "Release"


def validate_release(db: Session, request: schemas.ReleaseRequest):
    """Collect every problem with ``request``; returns the loaded entities and problems."""

    problems = ProblemSet()
    if not request.barcodes:
        add_problem(problems, "No barcodes supplied to release.")
    destination = lookups.load_enabled(
        problems,
        db,
        models.ReleaseDestination,
        models.ReleaseDestination.name,
        request.destination,
        "release destination",
    )
    recipient = lookups.load_enabled(
        problems,
        db,
        models.ReleaseRecipient,
        models.ReleaseRecipient.username,
        request.recipient,
        "release recipient",
    )
    labware: list[models.Labware] = []
    if request.barcodes:
        validator = LabwareValidator()
        labware = validator.load_labware(db, request.barcodes)
        validator.validate_sources()
        validator.report(problems)
    work = lookups.validate_usable_work(problems, db, request.work_number)
    op_type = lookups.load_operation_type(problems, db, RELEASE_OP_NAME)
    return problems, labware, destination, recipient, work, op_type


def release(
    db: Session,
    user: models.User,
    request: schemas.ReleaseRequest,
    *,
    client: StorelightClient | None = None,
) -> OperationResult:
    """Validate and record the release; must run inside a transaction boundary."""

    problems, labware, destination, recipient, work, op_type = validate_release(db, request)
    raise_problems(problems, "The release request could not be validated.")

    operations = []
    for lw in labware:
        lw.released = True
        operation = create_operation_in_place(db, op_type, user, lw, work=work)
        db.add(
            models.Release(
                labware_id=lw.id,
                user_id=user.id,
                destination_id=destination.id,
                recipient_id=recipient.id,
                operation_id=operation.id,
            )
        )
        operations.append(operation)
    db.flush()
    barcodes = [lw.barcode for lw in labware]
    unstore_after_commit(db, user, barcodes, client=client)
    logger.info(
        "release.recorded",
        barcodes=barcodes,
        destination=destination.name,
        recipient=recipient.username,
        operations=len(operations),
    )
    return OperationResult(operations=operations, labware=labware)


def perform_release(
    db: Session,
    user: models.User,
    request: schemas.ReleaseRequest,
    *,
    client: StorelightClient | None = None,
) -> Committed[OperationResult]:
    return Transactor.of(db).transact_two_phase(
        "Release transaction",
        lambda: release(db, user, request, client=client),
    )

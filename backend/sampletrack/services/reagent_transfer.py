"""Transfers of reagents from reagent plates into labware."""

from __future__ import annotations

from typing import NamedTuple

from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..addresses import Address, layout
from ..logger import get_logger
from ..transactor import Committed, Transactor
from ..validation import (
    ProblemSet,
    Validator,
    add_problem,
    describe_problem,
    raise_problems,
    reagent_plate_barcode_validator,
    repr_str,
)
from . import lookups
from .labware_validation import load_active_labware
from .operations import OperationResult, create_operation_in_place

# purpose: validate and record reagent transfers, creating reagent plates on first use
# status: active
# depends_on: sampletrack.services.operations

logger = get_logger(__name__)

PLATE_TYPES = ("Fresh frozen", "FFPE")
PLATE_ROWS = 8
PLATE_COLUMNS = 12


class ReagentSlotRef(NamedTuple):
    barcode: str
    address: Address

    def __str__(self) -> str:
        return f"{self.barcode}: {self.address}"


def canonical_plate_type(value: str | None) -> str | None:
    if value is None:
        return None
    wanted = value.strip().lower()
    return next((plate_type for plate_type in PLATE_TYPES if plate_type.lower() == wanted), None)


def check_op_type(problems, db: Session, name: str | None) -> models.OperationType | None:
    op_type = lookups.load_operation_type(problems, db, name)
    if op_type is not None and not (op_type.in_place and op_type.transfers_reagent):
        add_problem(problems, f"Operation type {op_type.name} cannot be used in this request.")
    return op_type


def load_reagent_plates(db: Session, transfers: list[schemas.ReagentTransfer]) -> dict[str, models.ReagentPlate]:
    barcodes = {t.reagent_plate_barcode.strip() for t in transfers if t.reagent_plate_barcode and t.reagent_plate_barcode.strip()}
    if not barcodes:
        return {}
    plates = (
        db.query(models.ReagentPlate)
        .options(selectinload(models.ReagentPlate.slots))
        .filter(models.ReagentPlate.barcode.in_(barcodes))
        .all()
    )
    return {plate.barcode: plate for plate in plates}


def check_plate_type(problems, plates: list[models.ReagentPlate], given: str | None) -> str | None:
    plate_type = canonical_plate_type(given)
    if plate_type is None:
        add_problem(problems, f"Unknown plate type: {repr_str(given)}")
        return None
    mismatched = [plate.barcode for plate in plates if plate.plate_type.lower() != plate_type.lower()]
    if mismatched:
        add_problem(
            problems,
            f"The given plate type {plate_type} does not match the existing plate{'' if len(mismatched) == 1 else 's'} "
            f"[{', '.join(mismatched)}].",
        )
    return plate_type


def validate_transfers(
    problems,
    transfers: list[schemas.ReagentTransfer],
    plates: dict[str, models.ReagentPlate],
    labware_type: models.LabwareType | None,
    *,
    barcode_validator: Validator[str] = reagent_plate_barcode_validator,
) -> None:
    """Check every transfer line, reporting each class of problem separately."""

    if not transfers:
        add_problem(problems, "No transfers specified.")
        return
    missing_plate_barcodes = False
    missing_reagent_addresses = False
    missing_dest_addresses = False
    new_barcodes_seen: set[str] = set()
    invalid_reagent_slots: list[ReagentSlotRef] = []
    already_used: list[ReagentSlotRef] = []
    invalid_dest_slots: list[str] = []
    occurrences: dict[ReagentSlotRef, list[int]] = {}

    for line, transfer in enumerate(transfers, start=1):
        barcode = (transfer.reagent_plate_barcode or "").strip() or None
        plate = None
        if barcode is None:
            missing_plate_barcodes = True
        else:
            plate = plates.get(barcode)
            if plate is None and barcode.upper() not in new_barcodes_seen:
                new_barcodes_seen.add(barcode.upper())
                barcode_validator.validate(barcode, problems)

        if not transfer.reagent_slot_address:
            missing_reagent_addresses = True
        elif barcode is not None:
            address = Address.parse(transfer.reagent_slot_address)
            ref = ReagentSlotRef(barcode, address) if address else None
            if plate is not None:
                reagent_slot = plate.opt_slot(address)
                if reagent_slot is None:
                    _add_once(invalid_reagent_slots, ReagentSlotRef(barcode, transfer.reagent_slot_address) if ref is None else ref)
                    ref = None
                elif reagent_slot.used:
                    _add_once(already_used, ref)
                    ref = None
            elif address is None or not (1 <= address.row <= PLATE_ROWS and 1 <= address.column <= PLATE_COLUMNS):
                # a new plate is assumed to have the standard 96 well layout
                _add_once(invalid_reagent_slots, ReagentSlotRef(barcode, address or transfer.reagent_slot_address))
                ref = None
            if ref is not None:
                occurrences.setdefault(ref, []).append(line)

        if not transfer.destination_address:
            missing_dest_addresses = True
        elif labware_type is not None and not labware_type.contains(Address.parse(transfer.destination_address)):
            if transfer.destination_address not in invalid_dest_slots:
                invalid_dest_slots.append(transfer.destination_address)

    if missing_plate_barcodes:
        add_problem(problems, "Missing reagent plate barcode for transfer.")
    if missing_reagent_addresses:
        add_problem(problems, "Missing reagent slot address for transfer.")
    if missing_dest_addresses:
        add_problem(problems, "Missing destination slot address for transfer.")
    describe_problem(problems, "Invalid reagent slot{s} specified: ", invalid_reagent_slots)
    describe_problem(problems, "Invalid destination slot{s} specified: ", invalid_dest_slots)
    describe_problem(problems, "Reagent slot{s} already used: ", already_used)
    for ref, lines in occurrences.items():
        if len(lines) > 1:
            for line in lines:
                add_problem(problems, f"Repeated reagent slot specified in transfer {line}: {ref}")


def _add_once(items: list, item) -> None:
    if item not in items:
        items.append(item)


def create_reagent_plate(db: Session, barcode: str, plate_type: str) -> models.ReagentPlate:
    plate = models.ReagentPlate(
        barcode=barcode,
        plate_type=plate_type,
        slots=[models.ReagentSlot(address=str(address)) for address in layout(PLATE_ROWS, PLATE_COLUMNS)],
    )
    db.add(plate)
    db.flush()
    return plate


def record_transfers(
    db: Session,
    user: models.User,
    op_type: models.OperationType,
    work: models.Work | None,
    transfers: list[schemas.ReagentTransfer],
    plates: dict[str, models.ReagentPlate],
    labware: models.Labware,
    plate_type: str,
) -> OperationResult:
    for transfer in transfers:
        barcode = transfer.reagent_plate_barcode.strip()
        if barcode not in plates:
            plates[barcode] = create_reagent_plate(db, barcode, plate_type)
    operation = create_operation_in_place(db, op_type, user, labware, work=work)
    for transfer in transfers:
        plate = plates[transfer.reagent_plate_barcode.strip()]
        reagent_slot = plate.opt_slot(Address.parse(transfer.reagent_slot_address))
        reagent_slot.used = True
        db.add(
            models.ReagentAction(
                operation_id=operation.id,
                reagent_slot_id=reagent_slot.id,
                destination_id=labware.opt_slot(transfer.destination_address).id,
            )
        )
    db.flush()
    return OperationResult(operations=[operation], labware=[labware])


def reagent_transfer(
    db: Session,
    user: models.User,
    request: schemas.ReagentTransferRequest,
    *,
    barcode_validator: Validator[str] = reagent_plate_barcode_validator,
) -> OperationResult:
    problems = ProblemSet()
    op_type = check_op_type(problems, db, request.operation_type)
    work = lookups.validate_usable_work(problems, db, request.work_number)
    labware = load_active_labware(problems, db, request.destination_barcode)
    plates = load_reagent_plates(db, request.transfers)
    plate_type = check_plate_type(problems, list(plates.values()), request.plate_type)
    validate_transfers(
        problems,
        request.transfers,
        plates,
        labware.labware_type if labware is not None else None,
        barcode_validator=barcode_validator,
    )
    raise_problems(problems, "The request could not be validated.")

    result = record_transfers(db, user, op_type, work, request.transfers, plates, labware, plate_type)
    logger.info(
        "reagent_transfer.recorded",
        destination=labware.barcode,
        plates=sorted(plates),
        transfers=len(request.transfers),
    )
    return result


def perform_reagent_transfer(
    db: Session,
    user: models.User,
    request: schemas.ReagentTransferRequest,
    *,
    barcode_validator: Validator[str] = reagent_plate_barcode_validator,
) -> Committed[OperationResult]:
    return Transactor.of(db).transact_two_phase(
        "Reagent transfer transaction",
        lambda: reagent_transfer(db, user, request, barcode_validator=barcode_validator),
    )

"""Cleaning out slots, and finding slots that have been cleaned out."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy.orm import Session

from .. import models, schemas
from ..addresses import Address
from ..logger import get_logger
from ..transactor import Committed, Transactor
from ..validation import ProblemSet, add_problem, describe_items, raise_problems
from . import lookups
from .labware_validation import load_active_labware
from .operations import ActionSpec, OperationResult, create_operation

# purpose: record clean-out operations and derive the cleaned-out state of slots from them
# status: active

logger = get_logger(__name__)

CLEAN_OUT_OP_NAME = "Clean out"


def find_cleaned_out_slots(db: Session, labware: Iterable[models.Labware] | None) -> set[models.Slot]:
    """Slots of ``labware`` that are destinations of actions in a clean-out operation."""

    labware_ids = {lw.id for lw in labware or ()}
    if not labware_ids:
        return set()
    op_type = lookups.find_operation_type(db, CLEAN_OUT_OP_NAME)
    if op_type is None:
        return set()
    slots = (
        db.query(models.Slot)
        .join(models.Action, models.Action.destination_id == models.Slot.id)
        .join(models.Operation, models.Operation.id == models.Action.operation_id)
        .filter(models.Operation.operation_type_id == op_type.id)
        .filter(models.Slot.labware_id.in_(labware_ids))
        .distinct()
        .all()
    )
    return set(slots)


def find_cleaned_out_addresses(db: Session, barcode: str) -> list[str]:
    labware = lookups.load_labware_by_barcode(db, barcode)
    slots = find_cleaned_out_slots(db, [labware])
    return [slot.address for slot in sorted(slots, key=lambda slot: slot.id)]


def check_addresses(problems, labware: models.Labware | None, addresses: list[str]) -> list[models.Slot]:
    if not addresses:
        add_problem(problems, "No slot addresses supplied.")
        return []
    unique: list[Address] = []
    repeated: list[Address] = []
    invalid: list[str] = []
    for text in addresses:
        address = Address.parse(text)
        if address is None:
            invalid.append(text)
        elif address in unique:
            if address not in repeated:
                repeated.append(address)
        else:
            unique.append(address)
    if invalid:
        add_problem(problems, f"Invalid slot address: {describe_items(invalid)}")
    if repeated:
        add_problem(problems, f"Repeated slot address: {describe_items(repeated)}")
    if labware is None:
        return []
    slots = []
    missing = []
    empty = []
    for address in unique:
        slot = labware.opt_slot(address)
        if slot is None:
            missing.append(address)
        elif not slot.samples:
            empty.append(address)
        else:
            slots.append(slot)
    if missing:
        add_problem(problems, f"No slot found in labware {labware.barcode} at address: {describe_items(missing)}")
    if empty:
        add_problem(problems, f"Slot in labware {labware.barcode} is empty: {describe_items(empty)}")
    return slots


def clean_out(db: Session, user: models.User, request: schemas.CleanOutRequest) -> OperationResult:
    problems = ProblemSet()
    op_type = lookups.load_operation_type(problems, db, CLEAN_OUT_OP_NAME)
    work = lookups.validate_usable_work(problems, db, request.work_number)
    labware = load_active_labware(problems, db, request.barcode)
    slots = check_addresses(problems, labware, request.addresses)
    raise_problems(problems, "The clean out request could not be validated.")

    actions = [ActionSpec(slot, slot, sample) for slot in slots for sample in slot.samples]
    operation = create_operation(db, op_type, user, actions, work=work)
    for slot in slots:
        slot.samples = []
    db.flush()
    logger.info("clean_out.recorded", barcode=labware.barcode, addresses=[slot.address for slot in slots])
    return OperationResult(operations=[operation], labware=[labware])


def perform_clean_out(db: Session, user: models.User, request: schemas.CleanOutRequest) -> Committed[OperationResult]:
    return Transactor.of(db).transact_two_phase("Clean out transaction", lambda: clean_out(db, user, request))

"""Copying samples from slots of source labware into new or existing labware."""

from __future__ import annotations

from sqlalchemy.orm import Session

from .. import models, schemas
from ..addresses import Address
from ..logger import get_logger
from ..storelight import StorelightClient
from ..transactor import Committed, Transactor
from ..validation import (
    ProblemSet,
    Sanitiser,
    add_problem,
    concentration_sanitiser,
    describe_items,
    pluralise,
    raise_problems,
    repr_str,
)
from . import lookups
from .cleaned_out import find_cleaned_out_slots
from .labware import create_labware
from .labware_validation import LabwareValidator
from .operations import ActionSpec, OperationResult, create_operation
from .store import unstore_after_commit

# purpose: validate and record slot-to-slot sample copies, one operation per destination labware
# status: active
# depends_on: sampletrack.services.cleaned_out, sampletrack.services.operations

logger = get_logger(__name__)


def _upper(value: str | None) -> str | None:
    return value.strip().upper() if value and value.strip() else None


def describe_content(content: schemas.SlotCopyContent) -> str:
    return f"{content.source_barcode} {content.source_address} -> {content.destination_address}"


def check_op_type(problems, op_type: models.OperationType | None) -> None:
    if op_type is not None and (op_type.in_place or op_type.transfers_reagent):
        add_problem(problems, f"Operation type {op_type.name} cannot be used in this operation.")


def load_labware_types(
    problems,
    db: Session,
    destinations: list[schemas.SlotCopyDestination],
) -> dict[str, models.LabwareType]:
    """Labware types for destinations that describe new labware, keyed by upper-case name."""

    names: list[str] = []
    any_missing = False
    for dest in destinations:
        if _upper(dest.barcode):
            continue
        name = _upper(dest.labware_type)
        if name is None:
            any_missing = True
        elif name not in names:
            names.append(name)
    if any_missing:
        add_problem(problems, "Labware type missing from request.")
    lw_types: dict[str, models.LabwareType] = {}
    unknown: list[str] = []
    for name in names:
        lt = lookups.find_labware_type(db, name)
        if lt is None:
            unknown.append(repr_str(name))
        else:
            lw_types[name] = lt
    if unknown:
        add_problem(problems, pluralise("Unknown labware type{s}: ", len(unknown)) + describe_items(unknown))
    return lw_types


def load_existing_destinations(
    problems,
    db: Session,
    destinations: list[schemas.SlotCopyDestination],
) -> dict[str, models.Labware]:
    barcodes = [_upper(dest.barcode) for dest in destinations if _upper(dest.barcode)]
    if not barcodes:
        return {}
    validator = LabwareValidator()
    labware = validator.load_labware(db, barcodes)
    validator.validate_active_destinations()
    validator.report(problems)
    existing = {lw.barcode: lw for lw in labware}
    for dest in destinations:
        lw = existing.get(_upper(dest.barcode))
        if lw is not None and dest.labware_type and lw.labware_type.name.upper() != _upper(dest.labware_type):
            add_problem(
                problems,
                f"Labware type {dest.labware_type} specified for labware {lw.barcode} "
                f"but it has type {lw.labware_type.name}.",
            )
    return existing


def load_sources(
    problems,
    db: Session,
    destinations: list[schemas.SlotCopyDestination],
) -> dict[str, models.Labware]:
    barcodes: list[str] = []
    any_missing = False
    for dest in destinations:
        for content in dest.contents:
            barcode = _upper(content.source_barcode)
            if barcode is None:
                any_missing = True
            elif barcode not in barcodes:
                barcodes.append(barcode)
    if any_missing:
        add_problem(problems, "Missing source barcode.")
    if not barcodes:
        return {}
    validator = LabwareValidator()
    labware = validator.load_labware(db, barcodes)
    validator.validate_sources()
    validator.report(problems)
    return {lw.barcode: lw for lw in labware}


def validate_contents(
    problems,
    destinations: list[schemas.SlotCopyDestination],
    lw_types: dict[str, models.LabwareType],
    existing: dict[str, models.Labware],
    sources: dict[str, models.Labware],
) -> None:
    if not destinations:
        add_problem(problems, "No destinations specified.")
        return
    if any(not dest.contents for dest in destinations):
        add_problem(problems, "No contents specified in destination.")
    for dest in destinations:
        dest_lw = existing.get(_upper(dest.barcode))
        lt = dest_lw.labware_type if dest_lw is not None else lw_types.get(_upper(dest.labware_type))
        seen_contents: set[tuple] = set()
        seen_addresses: set[Address] = set()
        for content in dest.contents:
            dest_address = Address.parse(content.destination_address)
            src_address = Address.parse(content.source_address)
            key = (_upper(content.source_barcode), src_address, dest_address)
            if key in seen_contents:
                add_problem(problems, f"Repeated copy specified: {describe_content(content)}")
                continue
            seen_contents.add(key)
            if not content.destination_address:
                add_problem(problems, "No destination address specified.")
            elif dest_address in seen_addresses:
                add_problem(problems, f"Repeated destination address: {dest_address}")
            elif dest_lw is not None:
                slot = dest_lw.opt_slot(dest_address)
                if slot is None:
                    add_problem(problems, f"No such slot {content.destination_address} in labware {dest_lw.barcode}.")
                elif slot.samples:
                    add_problem(problems, f"Slot {dest_address} in labware {dest_lw.barcode} is not empty.")
            elif lt is not None and not lt.contains(dest_address):
                add_problem(problems, f"Invalid address {content.destination_address} for labware type {lt.name}.")
            if dest_address is not None:
                seen_addresses.add(dest_address)

            src_lw = sources.get(_upper(content.source_barcode))
            if not content.source_address:
                add_problem(problems, "No source address specified.")
            elif src_lw is not None:
                slot = src_lw.opt_slot(src_address)
                if slot is None:
                    add_problem(problems, f"Invalid address {content.source_address} for source labware {src_lw.barcode}.")
                elif not slot.samples:
                    add_problem(problems, f"Slot {src_address} in labware {src_lw.barcode} is empty.")


def sanitise_concentrations(
    problems,
    destinations: list[schemas.SlotCopyDestination],
    sanitiser: Sanitiser[str],
) -> None:
    """Replace each given concentration with its canonical form."""

    for dest in destinations:
        for content in dest.contents:
            if content.concentration is not None:
                content.concentration = sanitiser.sanitise_into(problems, content.concentration)


def check_cleaned_out_destinations(
    problems,
    db: Session,
    destinations: list[schemas.SlotCopyDestination],
    existing: dict[str, models.Labware],
) -> None:
    """Samples may not be put into slots of existing labware that were cleaned out."""

    if not existing:
        return
    cleaned_out = find_cleaned_out_slots(db, existing.values())
    if not cleaned_out:
        return
    bad: dict[str, list[str]] = {}
    for dest in destinations:
        lw = existing.get(_upper(dest.barcode))
        if lw is None:
            continue
        for content in dest.contents:
            slot = lw.opt_slot(content.destination_address)
            if slot is not None and slot in cleaned_out:
                addresses = bad.setdefault(lw.barcode, [])
                if slot.address not in addresses:
                    addresses.append(slot.address)
    for barcode, addresses in bad.items():
        add_problem(problems, f"Cannot add samples to cleaned out slots in labware {barcode}: {describe_items(addresses)}")


def record_copies(
    db: Session,
    user: models.User,
    op_type: models.OperationType,
    destinations: list[schemas.SlotCopyDestination],
    lw_types: dict[str, models.LabwareType],
    existing: dict[str, models.Labware],
    sources: dict[str, models.Labware],
    work: models.Work | None,
) -> OperationResult:
    result = OperationResult()
    for dest in destinations:
        dest_lw = existing.get(_upper(dest.barcode))
        if dest_lw is None:
            dest_lw = create_labware(db, lw_types[_upper(dest.labware_type)])
        actions = []
        measured = []
        for content in dest.contents:
            src_slot = sources[_upper(content.source_barcode)].opt_slot(content.source_address)
            dest_slot = dest_lw.opt_slot(content.destination_address)
            for sample in src_slot.samples:
                actions.append(ActionSpec(src_slot, dest_slot, sample))
                if sample not in dest_slot.samples:
                    dest_slot.samples.append(sample)
                if content.concentration:
                    measured.append((dest_slot, sample, content.concentration))
        db.flush()
        op = create_operation(db, op_type, user, actions, work=work)
        for slot, sample, value in measured:
            db.add(models.Measurement(name="concentration", value=value, sample=sample, slot=slot, operation=op))
        result.operations.append(op)
        result.labware.append(dest_lw)
    db.flush()
    return result


def slot_copy(
    db: Session,
    user: models.User,
    request: schemas.SlotCopyRequest,
    *,
    client: StorelightClient | None = None,
    sanitiser: Sanitiser[str] = concentration_sanitiser,
) -> OperationResult:
    problems = ProblemSet()
    op_type = lookups.load_operation_type(problems, db, request.operation_type)
    check_op_type(problems, op_type)
    lw_types = load_labware_types(problems, db, request.destinations)
    existing = load_existing_destinations(problems, db, request.destinations)
    sources = load_sources(problems, db, request.destinations)
    validate_contents(problems, request.destinations, lw_types, existing, sources)
    sanitise_concentrations(problems, request.destinations, sanitiser)
    check_cleaned_out_destinations(problems, db, request.destinations, existing)
    work = lookups.validate_usable_work(problems, db, request.work_number)
    raise_problems(problems, "The operation could not be validated.")

    result = record_copies(db, user, op_type, request.destinations, lw_types, existing, sources, work)
    if op_type.discard_source:
        for lw in sources.values():
            lw.discarded = True
        db.flush()
        unstore_after_commit(db, user, sources.keys(), client=client)
    logger.info(
        "slot_copy.recorded",
        operation_type=op_type.name,
        sources=sorted(sources),
        destinations=[lw.barcode for lw in result.labware],
    )
    return result


def perform_slot_copy(
    db: Session,
    user: models.User,
    request: schemas.SlotCopyRequest,
    *,
    client: StorelightClient | None = None,
    sanitiser: Sanitiser[str] = concentration_sanitiser,
) -> Committed[OperationResult]:
    return Transactor.of(db).transact_two_phase(
        "SlotCopy",
        lambda: slot_copy(db, user, request, client=client, sanitiser=sanitiser),
    )

"""Loading of entities named in requests, reporting problems instead of raising."""

from __future__ import annotations

from typing import Callable, TypeVar

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import models
from ..validation import NotFoundError, add_problem, repr_str

# purpose: shared natural-key lookups (operation type, work, reference data, labware)
# status: active

E = TypeVar("E")

USABLE_WORK_STATUSES = {"active", "unstarted"}


def load_entity(
    problems,
    name: str | None,
    label: str,
    finder: Callable[[str], E | None],
) -> E | None:
    """Look up ``name`` with ``finder``, adding a problem if it is missing or unknown."""

    if name is None or not name.strip():
        add_problem(problems, f"No {label} specified.")
        return None
    entity = finder(name.strip())
    if entity is None:
        add_problem(problems, f"Unknown {label}: {repr_str(name)}")
    return entity


def find_operation_type(db: Session, name: str) -> models.OperationType | None:
    return (
        db.query(models.OperationType)
        .filter(sa.func.lower(models.OperationType.name) == name.strip().lower())
        .one_or_none()
    )


def load_operation_type(problems, db: Session, name: str | None) -> models.OperationType | None:
    return load_entity(problems, name, "operation type", lambda value: find_operation_type(db, value))


def find_labware_type(db: Session, name: str) -> models.LabwareType | None:
    return (
        db.query(models.LabwareType)
        .filter(sa.func.lower(models.LabwareType.name) == name.strip().lower())
        .one_or_none()
    )


def find_labware(db: Session, barcode: str) -> models.Labware | None:
    return (
        db.query(models.Labware)
        .filter(models.Labware.barcode == barcode.strip().upper())
        .one_or_none()
    )


def load_labware_by_barcode(db: Session, barcode: str) -> models.Labware:
    labware = find_labware(db, barcode)
    if labware is None:
        raise NotFoundError(f"No labware found with barcode {repr_str(barcode)}")
    return labware


def validate_usable_work(problems, db: Session, work_number: str | None) -> models.Work | None:
    """Load an optional work; it must exist and be in a usable status."""

    if work_number is None:
        return None
    if not work_number.strip():
        add_problem(problems, "Work number is not specified.")
        return None
    work = (
        db.query(models.Work)
        .filter(sa.func.upper(models.Work.work_number) == work_number.strip().upper())
        .one_or_none()
    )
    if work is None:
        add_problem(problems, f"Work number not recognised: {repr_str(work_number)}")
        return None
    if work.status not in USABLE_WORK_STATUSES:
        add_problem(problems, f"{work.work_number} cannot be used because it is {work.status}.")
        return None
    return work


def load_enabled(
    problems,
    db: Session,
    model,
    key_column,
    value: str | None,
    label: str,
):
    """Load a reference-data row by key; it must exist and be enabled."""

    def finder(key: str):
        return db.query(model).filter(sa.func.lower(key_column) == key.lower()).one_or_none()

    entity = load_entity(problems, value, label, finder)
    if entity is not None and not entity.enabled:
        add_problem(problems, f"{label[0].upper()}{label[1:]} is not enabled: {repr_str(value.strip())}")
    return entity

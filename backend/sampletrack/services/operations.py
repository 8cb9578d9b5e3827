"""Creation of operations and their actions, the audit trail of every request."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, NamedTuple, Sequence

from sqlalchemy.orm import Session

from .. import models
from ..transactor import Committed

# purpose: atomic creation of an Operation with all of its Actions inside the caller's transaction
# status: active
# depends_on: sampletrack.transactor.Transactor


class ActionSpec(NamedTuple):
    source: models.Slot
    destination: models.Slot
    sample: models.Sample
    source_sample: models.Sample | None = None


@dataclass
class OperationResult:
    """Operations created by one request and the labware they touched."""

    operations: list[models.Operation] = field(default_factory=list)
    labware: list[models.Labware] = field(default_factory=list)
    # None when the request has no storage step
    unstored: bool | None = None
    warnings: list[str] = field(default_factory=list)


def create_operation(
    db: Session,
    op_type: models.OperationType,
    user: models.User,
    actions: Sequence[ActionSpec],
    *,
    work: models.Work | None = None,
) -> models.Operation:
    """Persist an operation and its actions; flushes but never commits.

    Callers must already have validated the request.
    """

    if not actions:
        raise ValueError("No actions supplied to create operation.")
    operation = models.Operation(operation_type_id=op_type.id, user_id=user.id)
    if work is not None:
        operation.works.append(work)
    db.add(operation)
    db.flush()
    db.add_all(
        models.Action(
            operation_id=operation.id,
            source_id=spec.source.id,
            destination_id=spec.destination.id,
            sample_id=spec.sample.id,
            source_sample_id=(spec.source_sample or spec.sample).id,
        )
        for spec in actions
    )
    db.flush()
    db.expire(operation, ["actions"])
    return operation


def create_operation_for_slot(
    db: Session,
    op_type: models.OperationType,
    user: models.User,
    source: models.Slot,
    destination: models.Slot,
    sample: models.Sample,
) -> models.Operation:
    return create_operation(db, op_type, user, [ActionSpec(source, destination, sample)])


def in_place_actions(labware: models.Labware) -> list[ActionSpec]:
    return [ActionSpec(slot, slot, sample) for slot in labware.slots for sample in slot.samples]


def create_operation_in_place(
    db: Session,
    op_type: models.OperationType,
    user: models.User,
    labware: models.Labware,
    *,
    work: models.Work | None = None,
) -> models.Operation:
    """One action per (slot, sample) of ``labware``, each with source equal to destination."""

    return create_operation(db, op_type, user, in_place_actions(labware), work=work)


def complete_result(committed: Committed[OperationResult]) -> OperationResult:
    """Run the post-commit phase and fold its outcome into the committed result."""

    result = committed.value
    if committed.has_hooks:
        outcome = committed.complete()
        result.unstored = outcome.ok
        result.warnings.extend(outcome.warnings)
    return result


def labware_touched(operations: Iterable[models.Operation]) -> list[models.Labware]:
    seen: dict[int, models.Labware] = {}
    for operation in operations:
        for action in operation.actions:
            lw = action.destination.labware
            seen.setdefault(lw.id, lw)
    return list(seen.values())

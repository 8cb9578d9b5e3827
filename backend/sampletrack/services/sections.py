"""Section numbering for tissue blocks."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import models
from ..logger import get_logger
from ..validation import NotFoundError, ValidationException

# purpose: issue strictly increasing section numbers per block slot with one atomic update
# status: active

logger = get_logger(__name__)


def _planned_sections(slot_id: int) -> sa.Select:
    return (
        sa.select(sa.func.max(models.PlanAction.new_section))
        .join(models.PlanOperation, models.PlanOperation.id == models.PlanAction.plan_operation_id)
        .where(models.PlanAction.source_id == slot_id)
        .where(models.PlanOperation.confirmed.is_(False))
    )


def max_planned_section(db: Session, slot_id: int) -> int | None:
    """Highest section number reserved by an outstanding plan cut from ``slot_id``."""

    return db.execute(_planned_sections(slot_id)).scalar()


def reserve_section(db: Session, slot_id: int) -> int:
    """Bump the slot's counter past both its recorded and planned sections in one statement.

    The read and the write happen in the same UPDATE, so a concurrent caller always
    sees the value committed by the one before it.
    """

    slots = models.Slot.__table__
    recorded = sa.func.coalesce(slots.c.block_highest_section, 0)
    planned = sa.func.coalesce(_planned_sections(slot_id).scalar_subquery(), 0)
    stmt = (
        sa.update(slots)
        .where(slots.c.id == slot_id)
        .values(block_highest_section=sa.case((recorded >= planned, recorded), else_=planned) + 1)
        .returning(slots.c.block_highest_section)
    )
    return db.execute(stmt).scalar_one()


def next_section(db: Session, slot_id: int) -> int:
    """Reserve and return the next section number for the block in ``slot_id``.

    Runs inside the caller's transaction; the counter row stays write-locked until it ends.
    """

    slot = (
        db.query(models.Slot)
        .filter(models.Slot.id == slot_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if slot is None:
        raise NotFoundError(f"No slot with id {slot_id}")
    if not slot.is_block:
        raise ValidationException("Cannot issue a section number.", [f"Slot {slot_id} does not hold a block."])
    section = reserve_section(db, slot_id)
    db.expire(slot, ["block_highest_section"])
    logger.info("section.issued", slot_id=slot_id, section=section)
    return section

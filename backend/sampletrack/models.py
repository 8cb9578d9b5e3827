from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Table,
)
from sqlalchemy.orm import relationship

from .addresses import Address, in_layout, layout
from .database import Base


def _utcnow():
    return datetime.now(timezone.utc)


slot_sample = Table(
    "slot_sample",
    Base.metadata,
    Column("slot_id", Integer, ForeignKey("slots.id", ondelete="CASCADE"), primary_key=True),
    Column("sample_id", Integer, ForeignKey("samples.id"), primary_key=True),
)

work_op = Table(
    "work_op",
    Base.metadata,
    Column("work_id", Integer, ForeignKey("works.id"), primary_key=True),
    Column("operation_id", Integer, ForeignKey("operations.id"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    email = Column(String)
    # enduser, normal, admin
    role = Column(String, default="normal", nullable=False)
    created_at = Column(DateTime, default=_utcnow)


class OperationType(Base):
    __tablename__ = "operation_types"
    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    in_place = Column(Boolean, default=False, nullable=False)
    discard_source = Column(Boolean, default=False, nullable=False)
    transfers_reagent = Column(Boolean, default=False, nullable=False)


class Sample(Base):
    __tablename__ = "samples"
    id = Column(Integer, primary_key=True)
    tissue = Column(String, nullable=False)
    section = Column(Integer)
    created_at = Column(DateTime, default=_utcnow)


class LabwareType(Base):
    __tablename__ = "labware_types"
    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    num_rows = Column(Integer, nullable=False, default=1)
    num_columns = Column(Integer, nullable=False, default=1)

    def addresses(self) -> list[Address]:
        return list(layout(self.num_rows, self.num_columns))

    def contains(self, address: Address | None) -> bool:
        return in_layout(address, self.num_rows, self.num_columns)


class Labware(Base):
    __tablename__ = "labware"
    id = Column(Integer, primary_key=True)
    barcode = Column(String, unique=True, nullable=False)
    labware_type_id = Column(Integer, ForeignKey("labware_types.id"), nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    # lifecycle flags are terminal: set once, never cleared
    discarded = Column(Boolean, default=False, nullable=False)
    destroyed = Column(Boolean, default=False, nullable=False)
    released = Column(Boolean, default=False, nullable=False)

    labware_type = relationship("LabwareType")
    slots = relationship(
        "Slot",
        back_populates="labware",
        cascade="all, delete-orphan",
        order_by="Slot.id",
    )

    @property
    def is_empty(self) -> bool:
        return all(not slot.samples for slot in self.slots)

    @property
    def state(self) -> str:
        if self.destroyed:
            return "destroyed"
        if self.released:
            return "released"
        if self.discarded:
            return "discarded"
        return "empty" if self.is_empty else "active"

    def opt_slot(self, address: Address | str | None) -> "Slot | None":
        if isinstance(address, str):
            address = Address.parse(address)
        if address is None:
            return None
        wanted = str(address)
        return next((slot for slot in self.slots if slot.address == wanted), None)


class Slot(Base):
    __tablename__ = "slots"
    id = Column(Integer, primary_key=True)
    labware_id = Column(Integer, ForeignKey("labware.id", ondelete="CASCADE"), nullable=False)
    address = Column(String, nullable=False)
    block_highest_section = Column(Integer)
    block_sample_id = Column(Integer, ForeignKey("samples.id"))

    labware = relationship("Labware", back_populates="slots")
    samples = relationship("Sample", secondary=slot_sample, order_by="Sample.id")

    __table_args__ = (sa.UniqueConstraint("labware_id", "address"),)

    @property
    def is_block(self) -> bool:
        return self.block_sample_id is not None


class Work(Base):
    __tablename__ = "works"
    id = Column(Integer, primary_key=True)
    work_number = Column(String, unique=True, nullable=False)
    # unstarted, active, paused, completed, failed, withdrawn
    status = Column(String, default="unstarted", nullable=False)


class Operation(Base):
    __tablename__ = "operations"
    id = Column(Integer, primary_key=True)
    operation_type_id = Column(Integer, ForeignKey("operation_types.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    performed = Column(DateTime, default=_utcnow, nullable=False)

    operation_type = relationship("OperationType")
    user = relationship("User")
    actions = relationship("Action", back_populates="operation", order_by="Action.id")
    works = relationship("Work", secondary=work_op)


class Action(Base):
    __tablename__ = "actions"
    id = Column(Integer, primary_key=True)
    operation_id = Column(Integer, ForeignKey("operations.id"), nullable=False)
    source_id = Column(Integer, ForeignKey("slots.id"), nullable=False)
    destination_id = Column(Integer, ForeignKey("slots.id"), nullable=False)
    sample_id = Column(Integer, ForeignKey("samples.id"), nullable=False)
    source_sample_id = Column(Integer, ForeignKey("samples.id"), nullable=False)

    operation = relationship("Operation", back_populates="actions")
    source = relationship("Slot", foreign_keys=[source_id])
    destination = relationship("Slot", foreign_keys=[destination_id])
    sample = relationship("Sample", foreign_keys=[sample_id])
    source_sample = relationship("Sample", foreign_keys=[source_sample_id])


class PlanOperation(Base):
    __tablename__ = "plan_operations"
    id = Column(Integer, primary_key=True)
    operation_type_id = Column(Integer, ForeignKey("operation_types.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    # a plan stays outstanding until the planned operation is confirmed
    confirmed = Column(Boolean, default=False, nullable=False)

    plan_actions = relationship("PlanAction", back_populates="plan_operation", order_by="PlanAction.id")


class PlanAction(Base):
    __tablename__ = "plan_actions"
    id = Column(Integer, primary_key=True)
    plan_operation_id = Column(Integer, ForeignKey("plan_operations.id"), nullable=False)
    source_id = Column(Integer, ForeignKey("slots.id"), nullable=False)
    destination_id = Column(Integer, ForeignKey("slots.id"), nullable=False)
    sample_id = Column(Integer, ForeignKey("samples.id"), nullable=False)
    new_section = Column(Integer)

    plan_operation = relationship("PlanOperation", back_populates="plan_actions")


class ReleaseDestination(Base):
    __tablename__ = "release_destinations"
    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)


class ReleaseRecipient(Base):
    __tablename__ = "release_recipients"
    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)


class DestructionReason(Base):
    __tablename__ = "destruction_reasons"
    id = Column(Integer, primary_key=True)
    text = Column(String, unique=True, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)


class Species(Base):
    __tablename__ = "species"
    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)


class Fixative(Base):
    __tablename__ = "fixatives"
    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)


class CostCode(Base):
    __tablename__ = "cost_codes"
    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)


class Program(Base):
    __tablename__ = "programs"
    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)


class Release(Base):
    __tablename__ = "releases"
    id = Column(Integer, primary_key=True)
    labware_id = Column(Integer, ForeignKey("labware.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    destination_id = Column(Integer, ForeignKey("release_destinations.id"), nullable=False)
    recipient_id = Column(Integer, ForeignKey("release_recipients.id"), nullable=False)
    operation_id = Column(Integer, ForeignKey("operations.id"), nullable=False)
    released = Column(DateTime, default=_utcnow)

    labware = relationship("Labware")
    destination = relationship("ReleaseDestination")
    recipient = relationship("ReleaseRecipient")
    operation = relationship("Operation")


class Destruction(Base):
    __tablename__ = "destructions"
    id = Column(Integer, primary_key=True)
    labware_id = Column(Integer, ForeignKey("labware.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    reason_id = Column(Integer, ForeignKey("destruction_reasons.id"), nullable=False)
    operation_id = Column(Integer, ForeignKey("operations.id"), nullable=False)
    destroyed = Column(DateTime, default=_utcnow)

    labware = relationship("Labware")
    reason = relationship("DestructionReason")
    operation = relationship("Operation")


class ReagentPlate(Base):
    __tablename__ = "reagent_plates"
    id = Column(Integer, primary_key=True)
    barcode = Column(String, unique=True, nullable=False)
    plate_type = Column(String, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    slots = relationship(
        "ReagentSlot",
        back_populates="plate",
        cascade="all, delete-orphan",
        order_by="ReagentSlot.id",
    )

    def opt_slot(self, address: Address | None) -> "ReagentSlot | None":
        if address is None:
            return None
        wanted = str(address)
        return next((slot for slot in self.slots if slot.address == wanted), None)


class ReagentSlot(Base):
    __tablename__ = "reagent_slots"
    id = Column(Integer, primary_key=True)
    plate_id = Column(Integer, ForeignKey("reagent_plates.id", ondelete="CASCADE"), nullable=False)
    address = Column(String, nullable=False)
    used = Column(Boolean, default=False, nullable=False)

    plate = relationship("ReagentPlate", back_populates="slots")

    __table_args__ = (sa.UniqueConstraint("plate_id", "address"),)


class ReagentAction(Base):
    __tablename__ = "reagent_actions"
    id = Column(Integer, primary_key=True)
    operation_id = Column(Integer, ForeignKey("operations.id"), nullable=False)
    reagent_slot_id = Column(Integer, ForeignKey("reagent_slots.id"), nullable=False)
    destination_id = Column(Integer, ForeignKey("slots.id"), nullable=False)

    reagent_slot = relationship("ReagentSlot")
    destination = relationship("Slot")


class Measurement(Base):
    __tablename__ = "measurements"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    # canonical decimal text, as produced by the sanitiser
    value = Column(String, nullable=False)
    sample_id = Column(Integer, ForeignKey("samples.id"), nullable=False)
    slot_id = Column(Integer, ForeignKey("slots.id"), nullable=False)
    operation_id = Column(Integer, ForeignKey("operations.id"), nullable=False)

    sample = relationship("Sample")
    slot = relationship("Slot")
    operation = relationship("Operation")

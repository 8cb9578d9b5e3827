"""Administration of simple reference data (species, fixatives, cost codes, ...)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import models, validation
from ..logger import get_logger
from ..validation import NotFoundError, ValidationException, Validator
from . import admin_notify

# purpose: one configurable add/enable/list component for every enable-able reference data table
# status: active
# depends_on: sampletrack.services.admin_notify

logger = get_logger(__name__)


class EntityExistsError(ValidationException):
    """Raised when a new reference-data value duplicates an existing one."""

    def __init__(self, message: str):
        super().__init__(message, [message])


@dataclass(frozen=True)
class ReferenceDataAdmin:
    model: Any
    key: str
    label: str
    validator: Validator[str] | None = None
    notification_name: str | None = None

    @property
    def key_column(self):
        return getattr(self.model, self.key)

    def find(self, db: Session, value: str):
        return (
            db.query(self.model)
            .filter(sa.func.lower(self.key_column) == value.strip().lower())
            .one_or_none()
        )

    def validate_identifier(self, value: str | None) -> str:
        value = (value or "").strip()
        if not value:
            raise ValidationException(f"No {self.label.lower()} specified.", [f"No {self.label.lower()} specified."])
        if self.validator is not None:
            problems: list[str] = []
            if not self.validator.validate(value, problems):
                raise ValidationException(f"Invalid {self.label.lower()}.", problems)
        return value

    def add_new(self, db: Session, creator: models.User, value: str | None):
        """Create a new enabled value; end users' creations are announced to the admins."""

        value = self.validate_identifier(value)
        if self.find(db, value) is not None:
            raise EntityExistsError(f"{self.label} already exists: {value}")
        entity = self.model(**{self.key: value}, enabled=True)
        db.add(entity)
        db.flush()
        logger.info("admin.created", entity=self.label, value=value, creator=creator.username)
        if creator.role == "enduser" and self.notification_name:
            admin_notify.issue(
                db,
                self.notification_name,
                f"%service new {self.label}",
                f"User {creator.username} has created a new {self.label} on %service: {value}",
            )
        return entity

    def set_enabled(self, db: Session, value: str | None, enabled: bool):
        value = (value or "").strip()
        if not value:
            raise ValidationException(f"No {self.label.lower()} specified.", [f"No {self.label.lower()} specified."])
        entity = self.find(db, value)
        if entity is None:
            raise NotFoundError(f"{self.label} not found: {value}")
        if entity.enabled != enabled:
            entity.enabled = enabled
            db.flush()
            logger.info("admin.enabled_changed", entity=self.label, value=value, enabled=enabled)
        return entity

    def list_all(self, db: Session, include_disabled: bool = False) -> list:
        query = db.query(self.model)
        if not include_disabled:
            query = query.filter(self.model.enabled.is_(True))
        return query.order_by(self.key_column).all()

    def describe(self, entity) -> dict:
        return {"id": entity.id, "value": getattr(entity, self.key), "enabled": entity.enabled}


ADMINS: dict[str, ReferenceDataAdmin] = {
    "species": ReferenceDataAdmin(models.Species, "name", "Species", validation.species_validator, "species"),
    "fixatives": ReferenceDataAdmin(models.Fixative, "name", "Fixative", validation.fixative_validator, "fixative"),
    "cost-codes": ReferenceDataAdmin(models.CostCode, "code", "Cost code", validation.cost_code_validator),
    "programs": ReferenceDataAdmin(models.Program, "name", "Program", validation.program_name_validator, "program"),
    "release-destinations": ReferenceDataAdmin(
        models.ReleaseDestination, "name", "Release destination", validation.release_destination_validator
    ),
    "release-recipients": ReferenceDataAdmin(
        models.ReleaseRecipient, "username", "Release recipient", validation.release_recipient_validator
    ),
    "destruction-reasons": ReferenceDataAdmin(
        models.DestructionReason, "text", "Destruction reason", validation.destruction_reason_validator
    ),
}


def get_admin(kind: str) -> ReferenceDataAdmin:
    admin = ADMINS.get(kind)
    if admin is None:
        raise NotFoundError(f"Unknown reference data: {kind}")
    return admin

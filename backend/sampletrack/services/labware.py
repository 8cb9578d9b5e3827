"""Creation of labware with a full set of empty slots."""

from __future__ import annotations

from sqlalchemy.orm import Session

from .. import models
from ..barcodes import generate_labware_barcode


def create_labware(
    db: Session,
    labware_type: models.LabwareType,
    barcode: str | None = None,
) -> models.Labware:
    """Create labware of ``labware_type``; a barcode is generated when none is given."""

    labware = models.Labware(
        barcode=(barcode or generate_labware_barcode(db)).strip().upper(),
        labware_type=labware_type,
        slots=[models.Slot(address=str(address)) for address in labware_type.addresses()],
    )
    db.add(labware)
    db.flush()
    return labware

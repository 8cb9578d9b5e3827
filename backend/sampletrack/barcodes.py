import uuid

from sqlalchemy.orm import Session

from . import models

LABWARE_BARCODE_PREFIX = "STAN-"


def generate_unique_code() -> str:
    num = uuid.uuid4().int % 16**8
    return format(num, "08X")


def generate_labware_barcode(db: Session) -> str:
    """A barcode for new labware that no existing labware uses."""
    while True:
        barcode = LABWARE_BARCODE_PREFIX + generate_unique_code()
        exists = db.query(models.Labware.id).filter(models.Labware.barcode == barcode).first()
        if exists is None:
            return barcode

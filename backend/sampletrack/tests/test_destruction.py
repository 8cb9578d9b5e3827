import pytest

from sampletrack import models, schemas
from sampletrack.services.destruction import perform_destroy
from sampletrack.services.operations import complete_result
from sampletrack.validation import ValidationException

from .conftest import FakeStoreClient, make_labware, make_reference, make_user, seed_operation_types, table_counts


def test_destroy_labware(db):
    seed_operation_types(db)
    user = make_user(db)
    reason = make_reference(db, models.DestructionReason, "text")
    lw = make_labware(db, filled=("A1", "A2", "B1"))
    store = FakeStoreClient()

    result = complete_result(
        perform_destroy(db, user, schemas.DestroyRequest(barcodes=[lw.barcode], reason_id=reason.id), client=store)
    )

    assert result.unstored is True
    assert store.calls == [([lw.barcode], user.username)]
    (operation,) = result.operations
    assert operation.operation_type.name == "Destroy"
    assert len(operation.actions) == 3
    destruction = db.query(models.Destruction).filter(models.Destruction.labware_id == lw.id).one()
    assert destruction.reason_id == reason.id
    assert destruction.operation_id == operation.id
    db.expire_all()
    assert db.get(models.Labware, lw.id).state == "destroyed"


def test_destroy_reports_reason_and_labware_problems(db):
    seed_operation_types(db)
    user = make_user(db)
    disabled = make_reference(db, models.DestructionReason, "text", enabled=False)
    destroyed = make_labware(db, destroyed=True)
    discarded = make_labware(db, discarded=True)
    before = table_counts(db)

    with pytest.raises(ValidationException) as exc:
        perform_destroy(
            db,
            user,
            schemas.DestroyRequest(barcodes=[destroyed.barcode, discarded.barcode], reason_id=disabled.id),
            client=FakeStoreClient(),
        )

    assert exc.value.problems == [
        "Specified destruction reason is not enabled.",
        f"Labware is discarded: [{discarded.barcode}].",
        f"Labware is destroyed: [{destroyed.barcode}].",
    ]
    assert table_counts(db) == before


def test_destroy_requires_barcodes_and_reason(db):
    seed_operation_types(db)
    user = make_user(db)
    with pytest.raises(ValidationException) as exc:
        perform_destroy(db, user, schemas.DestroyRequest(barcodes=[], reason_id=None), client=FakeStoreClient())
    assert exc.value.problems == ["No barcodes supplied.", "No reason id supplied."]

    with pytest.raises(ValidationException) as exc:
        perform_destroy(db, user, schemas.DestroyRequest(barcodes=[], reason_id=-5), client=FakeStoreClient())
    assert "Unknown destruction reason id: -5" in exc.value.problems

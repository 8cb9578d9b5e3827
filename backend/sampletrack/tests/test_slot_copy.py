import pytest

from sampletrack import models, schemas
from sampletrack.services.cleaned_out import perform_clean_out
from sampletrack.services.operations import complete_result
from sampletrack.services.slot_copy import perform_slot_copy
from sampletrack.validation import DecimalSanitiser, ValidationException

from .conftest import FakeStoreClient, labware_type, make_labware, make_user, seed_operation_types, table_counts


def _content(source, source_address, destination_address):
    return schemas.SlotCopyContent(
        source_barcode=source.barcode,
        source_address=source_address,
        destination_address=destination_address,
    )


def test_transfer_into_new_labware_discards_sources(db):
    seed_operation_types(db)
    user = make_user(db)
    lw_type = labware_type(db)
    source = make_labware(db, filled=("A1", "A2"))
    store = FakeStoreClient()
    request = schemas.SlotCopyRequest(
        operation_type="transfer",
        destinations=[
            schemas.SlotCopyDestination(
                labware_type=lw_type.name,
                contents=[_content(source, "A1", "A1"), _content(source, "A2", "B2")],
            )
        ],
    )

    result = complete_result(perform_slot_copy(db, user, request, client=store))

    (operation,) = result.operations
    (new_lw,) = result.labware
    assert new_lw.barcode != source.barcode
    assert new_lw.labware_type.name == lw_type.name
    assert len(operation.actions) == 2
    assert {action.destination.address for action in operation.actions} == {"A1", "B2"}
    assert new_lw.opt_slot("B2").samples == source.opt_slot("A2").samples
    assert result.unstored is True
    assert store.calls == [([source.barcode], user.username)]
    db.expire_all()
    assert db.get(models.Labware, source.id).discarded


def test_aliquot_into_existing_labware(db):
    seed_operation_types(db)
    user = make_user(db)
    source = make_labware(db, filled=("A1",))
    dest = make_labware(db, filled=("A2",))
    store = FakeStoreClient()
    request = schemas.SlotCopyRequest(
        operation_type="Aliquot",
        destinations=[schemas.SlotCopyDestination(barcode=dest.barcode.lower(), contents=[_content(source, "A1", "B1")])],
    )

    result = complete_result(perform_slot_copy(db, user, request, client=store))

    assert [lw.id for lw in result.labware] == [dest.id]
    assert result.unstored is None
    assert store.calls == []
    db.expire_all()
    assert dest.opt_slot("B1").samples == source.opt_slot("A1").samples
    assert not source.discarded


def test_cleaned_out_slots_cannot_be_filled(db):
    seed_operation_types(db)
    user = make_user(db)
    source = make_labware(db, filled=("A1",))
    dest = make_labware(db, filled=("A1",))
    complete_result(perform_clean_out(db, user, schemas.CleanOutRequest(barcode=dest.barcode, addresses=["A1"])))
    before = table_counts(db)

    request = schemas.SlotCopyRequest(
        operation_type="Aliquot",
        destinations=[schemas.SlotCopyDestination(barcode=dest.barcode, contents=[_content(source, "A1", "A1")])],
    )
    with pytest.raises(ValidationException) as exc:
        perform_slot_copy(db, user, request, client=FakeStoreClient())

    assert exc.value.problems == [f"Cannot add samples to cleaned out slots in labware {dest.barcode}: [A1]"]
    assert table_counts(db) == before


def test_slot_copy_problems(db):
    seed_operation_types(db)
    user = make_user(db)
    source = make_labware(db, filled=("A1",))
    request = schemas.SlotCopyRequest(
        operation_type="Release",
        destinations=[
            schemas.SlotCopyDestination(contents=[_content(source, "B2", "A1")]),
            schemas.SlotCopyDestination(labware_type="No such type", contents=[]),
        ],
    )

    with pytest.raises(ValidationException) as exc:
        perform_slot_copy(db, user, request, client=FakeStoreClient())

    assert exc.value.message == "The operation could not be validated."
    assert exc.value.problems == [
        "Operation type Release cannot be used in this operation.",
        "Labware type missing from request.",
        'Unknown labware type: ["NO SUCH TYPE"]',
        "No contents specified in destination.",
        f"Slot B2 in labware {source.barcode} is empty.",
    ]


def test_slot_copy_address_problems(db):
    seed_operation_types(db)
    user = make_user(db)
    lw_type = labware_type(db)
    source = make_labware(db, filled=("A1",))
    dest = make_labware(db, filled=("A1",))
    request = schemas.SlotCopyRequest(
        operation_type="Aliquot",
        destinations=[
            schemas.SlotCopyDestination(
                labware_type=lw_type.name,
                contents=[
                    _content(source, "A1", "C3"),
                    _content(source, "A1", "C3"),
                    _content(source, "A1", None),
                ],
            ),
            schemas.SlotCopyDestination(barcode=dest.barcode, contents=[_content(source, "A1", "A1")]),
        ],
    )

    with pytest.raises(ValidationException) as exc:
        perform_slot_copy(db, user, request, client=FakeStoreClient())

    assert exc.value.problems == [
        f"Invalid address C3 for labware type {lw_type.name}.",
        f"Repeated copy specified: {source.barcode} A1 -> C3",
        "No destination address specified.",
        f"Slot A1 in labware {dest.barcode} is not empty.",
    ]


def test_concentrations_are_recorded_in_canonical_form(db):
    seed_operation_types(db)
    user = make_user(db)
    lw_type = labware_type(db)
    source = make_labware(db, filled=("A1", "A2"))
    measured = _content(source, "A1", "A1")
    measured.concentration = " 3 "
    request = schemas.SlotCopyRequest(
        operation_type="Aliquot",
        destinations=[
            schemas.SlotCopyDestination(labware_type=lw_type.name, contents=[measured, _content(source, "A2", "A2")])
        ],
    )

    result = complete_result(perform_slot_copy(db, user, request, client=FakeStoreClient()))

    (operation,) = result.operations
    (measurement,) = db.query(models.Measurement).filter(models.Measurement.operation_id == operation.id).all()
    assert measurement.name == "concentration"
    assert measurement.value == "3.00"
    assert measurement.slot_id == result.labware[0].opt_slot("A1").id
    assert measurement.sample_id == source.opt_slot("A1").samples[0].id


def test_invalid_concentrations_are_collected_with_other_problems(db):
    seed_operation_types(db)
    user = make_user(db)
    source = make_labware(db, filled=("A1",))
    too_precise = _content(source, "A1", "A1")
    too_precise.concentration = "12.345"
    huge = _content(source, "A1", "A2")
    huge.concentration = "1e30"
    request = schemas.SlotCopyRequest(
        operation_type="Aliquot",
        destinations=[schemas.SlotCopyDestination(labware_type="No such type", contents=[too_precise, huge])],
    )
    before = table_counts(db)

    with pytest.raises(ValidationException) as exc:
        perform_slot_copy(db, user, request, client=FakeStoreClient())

    assert exc.value.problems == [
        'Unknown labware type: ["NO SUCH TYPE"]',
        'Invalid concentration: "12.345"',
        'Invalid concentration: "1e30"',
    ]
    assert table_counts(db) == before


def test_slot_copy_uses_the_given_sanitiser(db):
    seed_operation_types(db)
    user = make_user(db)
    lw_type = labware_type(db)
    source = make_labware(db, filled=("A1",))
    content = _content(source, "A1", "A1")
    content.concentration = "2.25"
    request = schemas.SlotCopyRequest(
        operation_type="Aliquot",
        destinations=[schemas.SlotCopyDestination(labware_type=lw_type.name, contents=[content])],
    )

    with pytest.raises(ValidationException) as exc:
        perform_slot_copy(
            db, user, request, client=FakeStoreClient(), sanitiser=DecimalSanitiser("concentration", places=1)
        )

    assert exc.value.problems == ['Invalid concentration: "2.25"']

"""Loading labware by barcode and checking it is fit for use."""

from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session, selectinload

from .. import models
from ..validation import ProblemSet, add_problem, describe_items, pluralise, repr_str

# purpose: collect problems about requested labware (unknown, repeated, empty, terminal state)
# status: active


class LabwareValidator:
    """Accumulates labware problems; callers add them to the request's problem set."""

    def __init__(self, labware: list[models.Labware] | None = None):
        self.labware: list[models.Labware] = list(labware or [])
        self.problems = ProblemSet()
        self._given_barcodes: list[str] | None = None

    def load_labware(self, db: Session, barcodes: list[str]) -> list[models.Labware]:
        self._given_barcodes = [barcode.strip().upper() for barcode in barcodes if barcode is not None]
        wanted = sorted(set(self._given_barcodes))
        found = (
            db.query(models.Labware)
            .options(selectinload(models.Labware.slots).selectinload(models.Slot.samples))
            .filter(models.Labware.barcode.in_(wanted))
            .all()
            if wanted
            else []
        )
        by_barcode = {lw.barcode: lw for lw in found}
        missing: list[str] = []
        if any(barcode is None for barcode in barcodes):
            missing.append(repr_str(None))
        for barcode in self._given_barcodes:
            if barcode not in by_barcode and repr_str(barcode) not in missing:
                missing.append(repr_str(barcode))
        if missing:
            self.add_problem(pluralise("Invalid labware barcode{s}: ", len(missing)) + describe_items(missing) + ".")
        seen: set[str] = set()
        self.labware = []
        for barcode in self._given_barcodes:
            lw = by_barcode.get(barcode)
            if lw is not None and barcode not in seen:
                seen.add(barcode)
                self.labware.append(lw)
        return self.labware

    def add_problem(self, problem: str) -> None:
        self.problems.add(problem)

    def validate_unique(self) -> None:
        if self._given_barcodes is None:
            return
        counts: dict[str, int] = {}
        known = {lw.barcode for lw in self.labware}
        for barcode in self._given_barcodes:
            if barcode in known:
                counts[barcode] = counts.get(barcode, 0) + 1
        repeated = [barcode for barcode, count in counts.items() if count > 1]
        if repeated:
            self.add_problem(f"Labware is repeated: {describe_items(repeated)}.")

    def validate_state(self, predicate: Callable[[models.Labware], bool], state_name: str) -> None:
        bad = [lw.barcode for lw in self.labware if predicate(lw)]
        if bad:
            self.add_problem(f"Labware is {state_name}: {describe_items(bad)}.")

    def validate_non_empty(self) -> None:
        self.validate_state(lambda lw: lw.is_empty, "empty")

    def validate_states(self) -> None:
        self.validate_state(lambda lw: lw.discarded, "discarded")
        self.validate_state(lambda lw: lw.released, "released")
        self.validate_state(lambda lw: lw.destroyed, "destroyed")

    def validate_sources(self) -> None:
        self.validate_unique()
        self.validate_non_empty()
        self.validate_states()

    def validate_active_destinations(self) -> None:
        self.validate_unique()
        self.validate_states()

    def report(self, problems) -> None:
        for problem in self.problems:
            add_problem(problems, problem)


def load_active_labware(problems, db: Session, barcode: str | None, *, allow_empty: bool = False) -> models.Labware | None:
    """Load one piece of labware that must exist and not be in a terminal state."""

    if barcode is None or not barcode.strip():
        add_problem(problems, "No labware barcode specified.")
        return None
    validator = LabwareValidator()
    labware = validator.load_labware(db, [barcode])
    if allow_empty:
        validator.validate_active_destinations()
    else:
        validator.validate_sources()
    validator.report(problems)
    return labware[0] if labware else None

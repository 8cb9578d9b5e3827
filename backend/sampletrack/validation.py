"""Field validators, value sanitisers and the problem-collecting validation error.

Every request service accumulates problems into one ordered collection and
raises :class:`ValidationException` once, at a single decision point, with the
complete list.
"""

from __future__ import annotations

import enum
import re
from decimal import Decimal, InvalidOperation
from typing import Collection, Generic, Iterable, Protocol, TypeVar

T = TypeVar("T")
T_contra = TypeVar("T_contra", contravariant=True)


class ProblemSet:
    """Ordered collection of problem strings; repeated problems are kept once."""

    def __init__(self, problems: Iterable[str] = ()):
        self._problems: dict[str, None] = {}
        for problem in problems:
            self.add(problem)

    def add(self, problem: str) -> None:
        self._problems[problem] = None

    append = add

    def extend(self, problems: Iterable[str]) -> None:
        for problem in problems:
            self.add(problem)

    def __iter__(self):
        return iter(self._problems)

    def __len__(self) -> int:
        return len(self._problems)

    def __bool__(self) -> bool:
        return bool(self._problems)

    def __contains__(self, problem: object) -> bool:
        return problem in self._problems

    def to_list(self) -> list[str]:
        return list(self._problems)

    def __repr__(self) -> str:
        return f"ProblemSet({self.to_list()!r})"


def add_problem(problems, problem: str) -> None:
    """Add ``problem`` to a list-like or set-like problem sink."""

    if hasattr(problems, "append"):
        problems.append(problem)
    else:
        problems.add(problem)


class ValidationException(Exception):
    """A request could not be validated; carries every problem found, in order."""

    def __init__(self, message: str, problems: Iterable[str]):
        super().__init__(message)
        self.message = message
        self.problems: list[str] = list(problems)

    def __str__(self) -> str:
        if not self.problems:
            return self.message
        return f"{self.message} {self.problems}"


class NotFoundError(LookupError):
    """Raised by unconditional lookups when the named entity does not exist."""


def raise_problems(problems, message: str = "The request could not be validated.") -> None:
    """Raise :class:`ValidationException` if ``problems`` is non-empty."""

    if problems:
        raise ValidationException(message, problems)


def repr_str(value) -> str:
    if value is None:
        return "null"
    return f'"{value}"'


def pluralise(template: str, count: int) -> str:
    """Resolve ``{s}`` (and ``{es}``) placeholders in ``template`` for ``count`` items."""

    suffix = "" if count == 1 else "s"
    return template.replace("{s}", suffix).replace("{es}", "" if count == 1 else "es")


def describe_items(items: Iterable) -> str:
    return "[" + ", ".join(str(item) for item in items) + "]"


def describe_problem(problems, description: str, items: Collection) -> None:
    """Add a problem listing ``items`` under a pluralised ``description``, if there are any."""

    if items:
        add_problem(problems, pluralise(description, len(items)) + describe_items(items))


class Validator(Protocol[T_contra]):
    def validate(self, item: T_contra, problems) -> bool:
        """Return whether ``item`` is valid; add at least one problem if it is not."""


class CharacterType(enum.Enum):
    UPPER = "upper"
    LOWER = "lower"
    DIGIT = "digit"
    HYPHEN = "hyphen"
    UNDERSCORE = "underscore"
    SPACE = "space"
    SLASH = "slash"
    PAREN = "paren"
    FULL_STOP = "full_stop"
    APOSTROPHE = "apostrophe"

    @classmethod
    def alpha(cls) -> set["CharacterType"]:
        return {cls.UPPER, cls.LOWER}

    @classmethod
    def of(cls, ch: str) -> "CharacterType | None":
        if "A" <= ch <= "Z":
            return cls.UPPER
        if "a" <= ch <= "z":
            return cls.LOWER
        if "0" <= ch <= "9":
            return cls.DIGIT
        return _PUNCTUATION.get(ch)


_PUNCTUATION = {
    "-": CharacterType.HYPHEN,
    "_": CharacterType.UNDERSCORE,
    " ": CharacterType.SPACE,
    "/": CharacterType.SLASH,
    "(": CharacterType.PAREN,
    ")": CharacterType.PAREN,
    ".": CharacterType.FULL_STOP,
    "'": CharacterType.APOSTROPHE,
}


class StringValidator:
    """Checks length, permitted characters and (optionally) a full-match pattern."""

    def __init__(
        self,
        field_name: str,
        min_length: int,
        max_length: int,
        char_types: Iterable[CharacterType],
        pattern: str | None = None,
    ):
        self.field_name = field_name
        self.min_length = min_length
        self.max_length = max_length
        self.char_types = frozenset(char_types)
        self.pattern = re.compile(pattern, re.IGNORECASE) if pattern else None

    def validate(self, item: str, problems) -> bool:
        ok = True
        length = len(item)
        if length < self.min_length:
            add_problem(problems, f'{self.field_name} "{item}" below minimum length {self.min_length}.')
            ok = False
        if length > self.max_length:
            add_problem(problems, f'{self.field_name} "{item}" longer than maximum length {self.max_length}.')
            ok = False
        invalid = sorted({ch for ch in item if CharacterType.of(ch) not in self.char_types})
        if invalid:
            add_problem(
                problems,
                f'{self.field_name} "{item}" contains invalid characters "{"".join(invalid)}".',
            )
            ok = False
        if ok and self.pattern is not None and not self.pattern.fullmatch(item):
            add_problem(problems, f'{self.field_name} "{item}" does not match the expected format.')
            ok = False
        return ok

    def check_argument(self, item: str) -> None:
        """Raise :class:`ValidationException` if ``item`` is invalid."""

        problems: list[str] = []
        if not self.validate(item, problems):
            raise ValidationException(f"Invalid {self.field_name.lower()}.", problems)


class Sanitiser(Generic[T]):
    """Normalises a raw value, returning ``None`` when it cannot be sanitised."""

    field_name = "value"

    def sanitise(self, value: str | None) -> T | None:
        raise NotImplementedError

    def sanitise_into(self, problems, value: str | None) -> T | None:
        """Sanitise ``value``, adding ``Invalid <field>: <value>`` to ``problems`` on failure."""

        sanitised = self.sanitise(value)
        if sanitised is None:
            add_problem(problems, f"Invalid {self.field_name}: {repr_str(value)}")
        return sanitised


class DecimalSanitiser(Sanitiser[str]):
    """Canonicalises decimal strings to a fixed number of places, never in exponent form."""

    def __init__(self, field_name: str, places: int = 2, max_length: int = 16):
        self.field_name = field_name
        self.places = places
        self.max_length = max_length

    def sanitise(self, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
        if not number.is_finite():
            return None
        if -number.as_tuple().exponent > self.places:
            # drop trailing zeros before judging the precision: "1.500" is fine for two places
            normalised = number.normalize()
            if -normalised.as_tuple().exponent > self.places:
                return None
        try:
            canonical = f"{number.quantize(Decimal(1).scaleb(-self.places)):f}"
        except InvalidOperation:
            # more digits than the decimal context holds
            return None
        if canonical.startswith("-") and Decimal(canonical) == 0:
            canonical = canonical[1:]
        if len(canonical) > self.max_length:
            return None
        return canonical


_DESCRIPTIVE_CHARS = CharacterType.alpha() | {
    CharacterType.DIGIT,
    CharacterType.HYPHEN,
    CharacterType.SPACE,
    CharacterType.SLASH,
    CharacterType.PAREN,
    CharacterType.FULL_STOP,
    CharacterType.APOSTROPHE,
}

reagent_plate_barcode_validator = StringValidator(
    "Reagent plate barcode", 24, 24, {CharacterType.DIGIT}, pattern=r"[0-9]{24}"
)
release_destination_validator = StringValidator("Release destination", 3, 64, _DESCRIPTIVE_CHARS - {CharacterType.FULL_STOP})
release_recipient_validator = StringValidator("Release recipient", 1, 16, CharacterType.alpha() | {CharacterType.DIGIT})
destruction_reason_validator = StringValidator("Destruction reason", 3, 128, _DESCRIPTIVE_CHARS)
species_validator = StringValidator("Species", 1, 64, _DESCRIPTIVE_CHARS - {CharacterType.FULL_STOP})
fixative_validator = StringValidator("Fixative", 2, 64, _DESCRIPTIVE_CHARS)
program_name_validator = StringValidator("Program name", 2, 64, _DESCRIPTIVE_CHARS)
cost_code_validator = StringValidator(
    "Cost code", 2, 10, CharacterType.alpha() | {CharacterType.DIGIT}, pattern=r"[A-Z][0-9]+"
)

concentration_sanitiser = DecimalSanitiser("concentration")
cq_sanitiser = DecimalSanitiser("Cq value")

import pytest

from sampletrack.validation import (
    CharacterType,
    DecimalSanitiser,
    ProblemSet,
    StringValidator,
    ValidationException,
    concentration_sanitiser,
    cost_code_validator,
    cq_sanitiser,
    describe_problem,
    pluralise,
    reagent_plate_barcode_validator,
    repr_str,
)


def test_string_validator_accepts_valid_value():
    validator = StringValidator("Name", 2, 8, CharacterType.alpha())
    problems = []
    assert validator.validate("Alpha", problems)
    assert problems == []


def test_string_validator_reports_every_problem():
    validator = StringValidator("Name", 3, 4, CharacterType.alpha() | {CharacterType.DIGIT})
    problems = []
    assert not validator.validate("a!b?c-d", problems)
    assert problems == [
        'Name "a!b?c-d" longer than maximum length 4.',
        'Name "a!b?c-d" contains invalid characters "!-?".',
    ]


def test_string_validator_below_minimum():
    validator = StringValidator("Name", 3, 10, CharacterType.alpha())
    problems = ProblemSet()
    assert not validator.validate("ab", problems)
    assert problems.to_list() == ['Name "ab" below minimum length 3.']


def test_cost_code_pattern():
    assert cost_code_validator.validate("S1234", [])
    problems = []
    assert not cost_code_validator.validate("1234S", problems)
    assert problems == ['Cost code "1234S" does not match the expected format.']


def test_reagent_plate_barcode_validator():
    assert reagent_plate_barcode_validator.validate("1" * 24, [])
    problems = []
    assert not reagent_plate_barcode_validator.validate("12345", problems)
    assert problems == ['Reagent plate barcode "12345" below minimum length 24.']


def test_check_argument_raises_with_problems():
    validator = StringValidator("Species", 1, 4, CharacterType.alpha())
    with pytest.raises(ValidationException) as exc:
        validator.check_argument("Human")
    assert exc.value.problems == ['Species "Human" longer than maximum length 4.']


@pytest.mark.parametrize(
    "value,expected",
    [
        ("3", "3.00"),
        ("3.1", "3.10"),
        (" 12.34 ", "12.34"),
        ("1.500", "1.50"),
        ("1E+2", "100.00"),
        ("-0.00", "0.00"),
        ("-4.5", "-4.50"),
    ],
)
def test_decimal_sanitiser_canonical_form(value, expected):
    assert concentration_sanitiser.sanitise(value) == expected


@pytest.mark.parametrize(
    "value",
    [None, "", "abc", "12.345", "NaN", "Infinity", "1" * 15, "1e30", "12345678901234567890123456789"],
)
def test_decimal_sanitiser_rejects(value):
    assert concentration_sanitiser.sanitise(value) is None


@pytest.mark.parametrize("value", ["3", "0.1", "-17.25", "9999999999999.9"])
def test_decimal_sanitiser_is_idempotent(value):
    once = concentration_sanitiser.sanitise(value)
    assert once is not None
    assert concentration_sanitiser.sanitise(once) == once


def test_sanitise_into_reports_invalid_value():
    problems = []
    assert concentration_sanitiser.sanitise_into(problems, "12.345") is None
    assert problems == ['Invalid concentration: "12.345"']


def test_decimal_sanitiser_places():
    sanitiser = DecimalSanitiser("Cq value", places=1, max_length=6)
    assert sanitiser.sanitise("12.3") == "12.3"
    assert sanitiser.sanitise("12.34") is None
    assert sanitiser.sanitise("123456") is None


def test_problem_set_keeps_order_and_drops_repeats():
    problems = ProblemSet(["b", "a"])
    problems.add("b")
    problems.append("c")
    assert problems.to_list() == ["b", "a", "c"]
    assert len(problems) == 3
    assert "a" in problems


def test_pluralise_and_describe_problem():
    assert pluralise("slot{s}", 1) == "slot"
    assert pluralise("slot{s}", 2) == "slots"
    problems = []
    describe_problem(problems, "Invalid slot{s}: ", ["A1"])
    describe_problem(problems, "Invalid slot{s}: ", ["A1", "B2"])
    describe_problem(problems, "Invalid slot{s}: ", [])
    assert problems == ["Invalid slot: [A1]", "Invalid slots: [A1, B2]"]


def test_repr_str():
    assert repr_str(None) == "null"
    assert repr_str("x") == '"x"'


def test_cq_sanitiser():
    problems = []
    assert cq_sanitiser.sanitise_into(problems, "31.5") == "31.50"
    assert cq_sanitiser.sanitise_into(problems, "x") is None
    assert problems == ['Invalid Cq value: "x"']

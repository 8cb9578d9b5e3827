"""Slot addresses in labware layouts (``A1``, ``B12``, ...)."""

from __future__ import annotations

import re
from typing import Iterator, NamedTuple

_ADDRESS_PATTERN = re.compile(r"^([A-Z])([0-9]{1,2})$")


class Address(NamedTuple):
    row: int
    column: int

    def __str__(self) -> str:
        return f"{chr(ord('A') + self.row - 1)}{self.column}"

    @classmethod
    def parse(cls, text: str | None) -> "Address | None":
        """Return the address described by ``text``, or ``None`` if it is not a valid address."""

        if not text:
            return None
        match = _ADDRESS_PATTERN.match(text.strip().upper())
        if not match:
            return None
        column = int(match.group(2))
        if column < 1:
            return None
        return cls(ord(match.group(1)) - ord("A") + 1, column)


def layout(num_rows: int, num_columns: int) -> Iterator[Address]:
    """Yield every address of a grid in row-major order."""

    for row in range(1, num_rows + 1):
        for column in range(1, num_columns + 1):
            yield Address(row, column)


def in_layout(address: Address | None, num_rows: int, num_columns: int) -> bool:
    return address is not None and 1 <= address.row <= num_rows and 1 <= address.column <= num_columns

"""Exact rational number type for the expression engine.

All arithmetic is done on numerator/denominator pairs in lowest terms via
``fractions.Fraction``; no float operations take place anywhere in the engine.
The only operation that can lose precision is an irrational root, which is
truncated to ROOT_PRECISION_DIGITS decimal digits and flagged ``inexact``.
The flag is sticky: every Number derived from an inexact operand is inexact.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from fractions import Fraction
from functools import total_ordering
from typing import Final

from apecrunch.calc.errors import EvalError, EvalErrorKind

# Decimal digits kept when a root has no exact rational value. Results whose
# root is exact never reach this threshold and stay unflagged.
ROOT_PRECISION_DIGITS: Final[int] = 32

# Largest integer exponent evaluated exactly; beyond this the result size
# grows without bound and the exponent is rejected.
MAX_EXPONENT: Final[int] = 100_000

# Largest root degree accepted.
MAX_ROOT_DEGREE: Final[int] = 1024

# Largest numerator or denominator, in bits (about 100 000 decimal digits).
MAX_RESULT_BITS: Final[int] = 332_193

# Longest numeric literal accepted, in digits.
MAX_LITERAL_DIGITS: Final[int] = 100_000

# Decimal digits per int/str conversion step; each step stays under the
# interpreter's integer string conversion limit.
_CONVERSION_CHUNK_DIGITS: Final[int] = 1000

ELLIPSIS: Final[str] = "…"

_LITERAL_PATTERN = re.compile(r"^(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)$")


def digits_to_int(digits: str) -> int:
    """Convert a string of ASCII decimal digits to an int of any length."""
    value = 0
    for start in range(0, len(digits), _CONVERSION_CHUNK_DIGITS):
        chunk = digits[start : start + _CONVERSION_CHUNK_DIGITS]
        value = value * 10 ** len(chunk) + int(chunk)
    return value


def int_to_digits(value: int) -> str:
    """Render an int in decimal regardless of its length."""
    if value < 0:
        return "-" + int_to_digits(-value)
    chunk = 10**_CONVERSION_CHUNK_DIGITS
    if value < chunk:
        return str(value)

    parts: list[int] = []
    while value:
        value, remainder = divmod(value, chunk)
        parts.append(remainder)
    head = str(parts.pop())
    return head + "".join(str(part).zfill(_CONVERSION_CHUNK_DIGITS) for part in reversed(parts))


def _describe(value: Fraction | int) -> str:
    """Text for error messages; oversized values are summarized by size."""
    value = Fraction(value)
    bits = max(value.numerator.bit_length(), value.denominator.bit_length())
    if bits > 256:
        return f"<{bits}-bit value>"
    return str(value)


def _check_size(value: Fraction) -> Fraction:
    if (
        value.numerator.bit_length() > MAX_RESULT_BITS
        or value.denominator.bit_length() > MAX_RESULT_BITS
    ):
        raise EvalError(
            EvalErrorKind.RESULT_TOO_LARGE,
            f"Result exceeds the supported size of {MAX_RESULT_BITS} bits",
        )
    return value


def integer_root(value: int, degree: int) -> int:
    """Return the floor of the ``degree``-th root of a non-negative integer.

    Newton iteration from an initial guess that is never below the root, so
    the sequence decreases monotonically to the floor.
    """
    if value < 0:
        raise ValueError(f"value must be non-negative, got {value}")
    if degree < 1:
        raise ValueError(f"degree must be positive, got {degree}")
    if value < 2 or degree == 1:
        return value

    guess = 1 << -(-value.bit_length() // degree)
    while True:
        candidate = ((degree - 1) * guess + value // guess ** (degree - 1)) // degree
        if candidate >= guess:
            return guess
        guess = candidate


def exact_root(value: Fraction, degree: int) -> Fraction | None:
    """Return the exact ``degree``-th root of a non-negative rational, or None.

    A rational in lowest terms has a rational root only when both numerator
    and denominator are perfect powers.
    """
    numerator_root = integer_root(value.numerator, degree)
    if numerator_root**degree != value.numerator:
        return None
    denominator_root = integer_root(value.denominator, degree)
    if denominator_root**degree != value.denominator:
        return None
    return Fraction(numerator_root, denominator_root)


def truncated_root(value: Fraction, degree: int, digits: int = ROOT_PRECISION_DIGITS) -> Fraction:
    """Approximate the root of a non-negative rational, truncated toward zero."""
    scale = 10**digits
    scaled = value.numerator * scale**degree // value.denominator
    return Fraction(integer_root(scaled, degree), scale)


@total_ordering
@dataclass(frozen=True, eq=False)
class Number:
    """Exact rational value with a precision-loss flag.

    Equality, ordering and hashing look at the value only; ``inexact`` is
    provenance, so an approximation and an exact Number of the same value
    compare equal.

    Attributes:
        value: The rational value, always in lowest terms with a positive
            denominator.
        inexact: True when the value is a truncated approximation.
    """

    value: Fraction
    inexact: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.value, Fraction):
            object.__setattr__(self, "value", Fraction(self.value))

    @classmethod
    def from_literal(cls, text: str) -> Number:
        """Build a Number from an unsigned integer or decimal literal.

        Decimal literals are exact: ``0.1`` is one tenth, not a binary float.

        Raises:
            ValueError: If ``text`` is not a numeric literal.
            EvalError: RESULT_TOO_LARGE for literals over MAX_LITERAL_DIGITS.
        """
        if not _LITERAL_PATTERN.match(text):
            raise ValueError("Invalid numeric literal")
        integer_digits, _, fraction_digits = text.partition(".")
        if len(integer_digits) + len(fraction_digits) > MAX_LITERAL_DIGITS:
            raise EvalError(
                EvalErrorKind.RESULT_TOO_LARGE,
                f"Numeric literal exceeds {MAX_LITERAL_DIGITS} digits",
            )
        numerator = digits_to_int(integer_digits + fraction_digits)
        return cls(Fraction(numerator, 10 ** len(fraction_digits)))

    @classmethod
    def from_parts(cls, numerator: int, denominator: int, inexact: bool = False) -> Number:
        """Build a Number from a numerator/denominator pair."""
        if denominator == 0:
            raise ValueError("denominator must be non-zero")
        return cls(Fraction(numerator, denominator), inexact)

    @property
    def numerator(self) -> int:
        return self.value.numerator

    @property
    def denominator(self) -> int:
        return self.value.denominator

    @property
    def sign(self) -> int:
        """Return -1, 0 or 1."""
        return (self.value > 0) - (self.value < 0)

    def is_integer(self) -> bool:
        return self.value.denominator == 1

    def is_zero(self) -> bool:
        return self.value == 0

    # -- comparisons ------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Number):
            return NotImplemented
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Number):
            return NotImplemented
        return self.value < other.value

    # -- arithmetic -------------------------------------------------------

    def _derived(self, value: Fraction, *others: Number) -> Number:
        inexact = self.inexact or any(other.inexact for other in others)
        return Number(_check_size(value), inexact)

    def __neg__(self) -> Number:
        return self._derived(-self.value)

    def __pos__(self) -> Number:
        return self

    def __add__(self, other: Number) -> Number:
        return self._derived(self.value + other.value, other)

    def __sub__(self, other: Number) -> Number:
        return self._derived(self.value - other.value, other)

    def __mul__(self, other: Number) -> Number:
        return self._derived(self.value * other.value, other)

    def __truediv__(self, other: Number) -> Number:
        if other.is_zero():
            raise EvalError(EvalErrorKind.DIVISION_BY_ZERO, "Division by zero")
        return self._derived(self.value / other.value, other)

    def __pow__(self, exponent: Number) -> Number:
        """Raise to a rational power, exactly or not at all.

        Integer exponents are always exact. A fractional exponent p/q is
        accepted only when the q-th root of the base is itself rational.
        """
        power = exponent.value
        if self.is_zero():
            if power < 0:
                raise EvalError(
                    EvalErrorKind.DIVISION_BY_ZERO,
                    "Zero cannot be raised to a negative power",
                )
            return self._derived(Fraction(1) if power == 0 else Fraction(0), exponent)

        if abs(power.numerator) > MAX_EXPONENT and abs(self.value) != 1:
            raise EvalError(
                EvalErrorKind.INVALID_EXPONENT,
                f"Exponent {_describe(power)} exceeds the supported magnitude {MAX_EXPONENT}",
            )

        base = self.value
        if power.denominator != 1:
            degree = power.denominator
            if degree > MAX_ROOT_DEGREE:
                raise EvalError(
                    EvalErrorKind.INVALID_EXPONENT,
                    f"Exponent {_describe(power)} has a root degree above {MAX_ROOT_DEGREE}",
                )
            if base < 0 and degree % 2 == 0:
                raise EvalError(
                    EvalErrorKind.COMPLEX_RESULT,
                    f"{_describe(base)} raised to {_describe(power)} has no real value",
                )
            root = exact_root(abs(base), degree)
            if root is None:
                raise EvalError(
                    EvalErrorKind.INVALID_EXPONENT,
                    f"{_describe(base)} raised to {_describe(power)} has no exact rational value",
                )
            base = -root if base < 0 else root

        # Result size is about (bits of base) * |p|; reject before computing it.
        base_bits = max(base.numerator.bit_length(), base.denominator.bit_length()) - 1
        if base_bits * abs(power.numerator) > MAX_RESULT_BITS:
            raise EvalError(
                EvalErrorKind.INVALID_EXPONENT,
                f"Exponent {_describe(power)} would exceed the supported result size",
            )

        return self._derived(base ** power.numerator, exponent)

    def root(self, degree: Number) -> Number:
        """Return the ``degree``-th root.

        Exact when the radicand is a perfect power of a rational; otherwise a
        truncated approximation flagged inexact.
        """
        if not degree.is_integer() or degree.value < 1:
            raise EvalError(
                EvalErrorKind.INVALID_EXPONENT,
                f"Root degree must be a positive integer, got {_describe(degree.value)}",
            )
        n = degree.numerator
        if n > MAX_ROOT_DEGREE:
            raise EvalError(
                EvalErrorKind.INVALID_EXPONENT,
                f"Root degree {_describe(n)} exceeds the supported maximum {MAX_ROOT_DEGREE}",
            )
        if self.value < 0 and n % 2 == 0:
            raise EvalError(
                EvalErrorKind.COMPLEX_RESULT,
                f"Even root of negative number {_describe(self.value)} is not a real number",
            )

        magnitude = abs(self.value)
        result = exact_root(magnitude, n)
        approximated = result is None
        if result is None:
            result = truncated_root(magnitude, n)
        if self.value < 0:
            result = -result

        return Number(result, approximated or self.inexact or degree.inexact)

    # -- display ----------------------------------------------------------

    def to_decimal_string(self, decimal_places: int) -> str:
        """Render as a decimal truncated to ``decimal_places`` digits.

        Trailing zeros are stripped. The ellipsis marker is appended when the
        value is flagged inexact or the printed digits do not cover the exact
        value.
        """
        if decimal_places < 0:
            raise ValueError(f"decimal_places must be non-negative, got {decimal_places}")

        magnitude = abs(self.value)
        scale = 10**decimal_places
        scaled = magnitude.numerator * scale // magnitude.denominator
        truncated = scaled * magnitude.denominator != magnitude.numerator * scale

        integer_part, fraction_part = divmod(scaled, scale)
        text = int_to_digits(integer_part)
        if decimal_places:
            digits = str(fraction_part).rjust(decimal_places, "0").rstrip("0")
            if digits:
                text = f"{text}.{digits}"

        if self.value < 0:
            text = f"-{text}"
        if self.inexact or truncated:
            text = f"{text}{ELLIPSIS}"
        return text

    def to_fraction_string(self) -> str:
        """Render as ``p/q`` (or ``p`` for integers)."""
        if self.is_integer():
            return int_to_digits(self.numerator)
        return f"{int_to_digits(self.numerator)}/{int_to_digits(self.denominator)}"

    def __str__(self) -> str:
        return self.to_fraction_string()

"""Value (motes) and cost (gas) amounts with checked arithmetic."""

from __future__ import annotations

from dataclasses import dataclass

from .config import U512_MAX
from .errors import ErrorCode, EngineError


def _check_bounds(kind: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise EngineError(ErrorCode.TYPE_MISMATCH, f"{kind} must be an int, got {type(value).__name__}")
    if value < 0:
        raise EngineError(ErrorCode.UNDERFLOW, f"{kind} negative: {value}")
    if value > U512_MAX:
        raise EngineError(ErrorCode.OVERFLOW, f"{kind} exceeds u512 max")


@dataclass(frozen=True, order=True)
class Gas:
    value: int

    def __post_init__(self) -> None:
        _check_bounds("gas", self.value)

    @classmethod
    def zero(cls) -> "Gas":
        return cls(0)

    @classmethod
    def from_motes(cls, motes: "Motes", conv_rate: int) -> "Gas":
        """Gas purchasable with `motes`, rounded down."""
        if conv_rate <= 0:
            raise EngineError(ErrorCode.INVALID_CONVERSION_RATE, f"conversion rate must be positive: {conv_rate}")
        return cls(motes.value // conv_rate)

    def __add__(self, other: "Gas") -> "Gas":
        return Gas(self.value + other.value)

    def __sub__(self, other: "Gas") -> "Gas":
        return Gas(self.value - other.value)

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, order=True)
class Motes:
    value: int

    def __post_init__(self) -> None:
        _check_bounds("motes", self.value)

    @classmethod
    def zero(cls) -> "Motes":
        return cls(0)

    @classmethod
    def from_gas(cls, gas: Gas, conv_rate: int) -> "Motes":
        """Motes = gas * conv_rate.

        Raises instead of returning zero when the rate is not positive or the
        product leaves the u512 range.
        """
        if conv_rate <= 0:
            raise EngineError(ErrorCode.INVALID_CONVERSION_RATE, f"conversion rate must be positive: {conv_rate}")
        product = gas.value * conv_rate
        if product > U512_MAX:
            raise EngineError(ErrorCode.OVERFLOW, "motes from gas overflow")
        return cls(product)

    def __add__(self, other: "Motes") -> "Motes":
        return Motes(self.value + other.value)

    def __sub__(self, other: "Motes") -> "Motes":
        return Motes(self.value - other.value)

    def __str__(self) -> str:
        return str(self.value)


def as_motes(amount: "Motes | int") -> Motes:
    if isinstance(amount, Motes):
        return amount
    return Motes(amount)

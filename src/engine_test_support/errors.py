"""Engine test-support error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class ErrorCategory(IntEnum):
    SUCCESS = 0x00
    VALIDATION = 0x01
    AUTHORIZATION = 0x02
    RESOURCE = 0x03
    STATE = 0x04
    EXECUTION = 0x05
    GENESIS = 0x06
    INTERNAL = 0xFF


class ErrorCode(IntEnum):
    # Success
    SUCCESS = 0x0000

    # Validation
    INVALID_ARGUMENT = 0x0100
    MISSING_ARGUMENT = 0x0101
    INVALID_PROTOCOL_VERSION = 0x0102
    INVALID_CONVERSION_RATE = 0x0103
    INVALID_NAMED_KEY = 0x0104
    TYPE_MISMATCH = 0x0105

    # Authorization
    AUTHORIZATION_FAILURE = 0x0200
    FORGED_REFERENCE = 0x0201
    INVALID_ACCESS_RIGHTS = 0x0202

    # Resource
    INSUFFICIENT_PAYMENT = 0x0300
    INSUFFICIENT_FUNDS = 0x0301
    OUT_OF_GAS = 0x0302
    OVERFLOW = 0x0303
    UNDERFLOW = 0x0304

    # State
    ACCOUNT_NOT_FOUND = 0x0400
    PURSE_NOT_FOUND = 0x0401
    VALUE_NOT_FOUND = 0x0402
    CONTRACT_NOT_FOUND = 0x0403
    NOTHING_TO_COMMIT = 0x0404

    # Execution
    REVERT = 0x0500
    CODE_NOT_FOUND = 0x0501
    NO_EXECUTION = 0x0502

    # Genesis
    DUPLICATE_ACCOUNT = 0x0600
    GENESIS_ALREADY_RUN = 0x0601
    GENESIS_NOT_RUN = 0x0602

    # Internal
    INTERNAL_ERROR = 0xFF00
    UNKNOWN = 0xFFFF

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.value >> 8)


@dataclass(frozen=True)
class EngineError(Exception):
    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen.
_EXCEPTION_ATTRS = frozenset(("__traceback__", "__context__", "__cause__", "__suppress_context__"))
_frozen_setattr = EngineError.__setattr__


def _engine_error_setattr(self: EngineError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


EngineError.__setattr__ = _engine_error_setattr  # type: ignore[method-assign]


class VerificationError(AssertionError):
    """A harness check failed; the running test must not continue."""


class ExecutionFailed(VerificationError):
    def __init__(self, error: Optional[EngineError]):
        self.error = error
        super().__init__(f"expected successful execution, got: {error}")


class BalanceMismatch(VerificationError):
    def __init__(self, label: str, expected: int, actual: int):
        self.label = label
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{label} ending balance does not match; expected: {expected}  actual: {actual}"
        )


class UnresolvedPurse(VerificationError):
    def __init__(self, label: str, error: EngineError):
        self.label = label
        self.error = error
        super().__init__(f"{label} purse balance could not be read: {error}")


class ExpectedBalanceUnderflow(VerificationError):
    def __init__(self, initial: int, transfer_amount: int, cost: int):
        self.initial = initial
        self.transfer_amount = transfer_amount
        self.cost = cost
        super().__init__(
            "expected source ending balance underflows; "
            f"initial: {initial}  transfer: {transfer_amount}  cost: {cost}"
        )

"""Core types for the engine test-support harness.

Keys address committed values; purses are addressed by `URef` and hold
balances in motes. Account identities are 32-byte public keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Any, Dict, Optional, Set, Union

from .errors import ErrorCode, EngineError

PublicKey = bytes
URefAddr = bytes

ADDR_LENGTH = 32


class AccessRights(IntFlag):
    NONE = 0
    READ = 0b001
    WRITE = 0b010
    ADD = 0b100
    READ_ADD = READ | ADD
    READ_WRITE = READ | WRITE
    ADD_WRITE = ADD | WRITE
    READ_ADD_WRITE = READ | ADD | WRITE


@dataclass(frozen=True)
class URef:
    addr: URefAddr
    access_rights: AccessRights = AccessRights.NONE

    def __post_init__(self) -> None:
        if len(self.addr) != ADDR_LENGTH:
            raise EngineError(ErrorCode.INVALID_ARGUMENT, f"uref addr must be {ADDR_LENGTH} bytes")

    def with_access_rights(self, rights: AccessRights) -> "URef":
        return URef(self.addr, rights)

    def remove_access_rights(self) -> "URef":
        return URef(self.addr, AccessRights.NONE)

    def __str__(self) -> str:
        return f"uref-{self.addr.hex()}-{int(self.access_rights):03d}"


class KeyTag(IntEnum):
    ACCOUNT = 0
    HASH = 1
    UREF = 2


@dataclass(frozen=True)
class Key:
    tag: KeyTag
    addr: bytes

    def __post_init__(self) -> None:
        if len(self.addr) != ADDR_LENGTH:
            raise EngineError(ErrorCode.INVALID_ARGUMENT, f"key addr must be {ADDR_LENGTH} bytes")

    @classmethod
    def account(cls, public_key: PublicKey) -> "Key":
        return cls(KeyTag.ACCOUNT, public_key)

    @classmethod
    def hash(cls, addr: bytes) -> "Key":
        return cls(KeyTag.HASH, addr)

    @classmethod
    def uref(cls, uref: URef) -> "Key":
        return cls(KeyTag.UREF, uref.addr)

    def __str__(self) -> str:
        return f"{self.tag.name.lower()}-{self.addr.hex()}"


@dataclass(frozen=True, order=True)
class ProtocolVersion:
    major: int
    minor: int = 0
    patch: int = 0

    @classmethod
    def from_tuple(cls, version: tuple[int, int, int]) -> "ProtocolVersion":
        return cls(*version)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass
class CLValue:
    value: Any


@dataclass
class Account:
    public_key: PublicKey
    main_purse: URef
    named_keys: Dict[str, Union[Key, URef]] = field(default_factory=dict)
    associated_keys: Set[PublicKey] = field(default_factory=set)


@dataclass
class Contract:
    entry_point: str
    named_keys: Dict[str, Union[Key, URef]] = field(default_factory=dict)
    protocol_version: Optional[ProtocolVersion] = None


StoredValue = Union[CLValue, Account, Contract]


class Value:
    """Result of a committed-state query."""

    def __init__(self, stored: StoredValue):
        self.stored = stored

    def as_cl_value(self) -> Any:
        if not isinstance(self.stored, CLValue):
            raise EngineError(ErrorCode.TYPE_MISMATCH, f"expected CLValue, got {type(self.stored).__name__}")
        return self.stored.value

    def as_account(self) -> Account:
        if not isinstance(self.stored, Account):
            raise EngineError(ErrorCode.TYPE_MISMATCH, f"expected Account, got {type(self.stored).__name__}")
        return self.stored

    def as_contract(self) -> Contract:
        if not isinstance(self.stored, Contract):
            raise EngineError(ErrorCode.TYPE_MISMATCH, f"expected Contract, got {type(self.stored).__name__}")
        return self.stored

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Value):
            return self.stored == other.stored
        return NotImplemented

    def __repr__(self) -> str:
        return f"Value({self.stored!r})"

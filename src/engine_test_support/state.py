"""Ledger state: committed values and purse balances."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Union

from blake3 import blake3

from .config import MAX_PATH_SEGMENTS, U512_MAX
from .errors import ErrorCode, EngineError
from .motes import as_motes
from .types import (
    AccessRights,
    Account,
    Contract,
    Key,
    ProtocolVersion,
    PublicKey,
    StoredValue,
    URef,
    URefAddr,
)


class AddressGenerator:
    """Derives unique 32-byte addresses from a seed and a running counter."""

    def __init__(self, seed: bytes):
        self._seed = seed
        self._count = 0

    def next_addr(self) -> bytes:
        h = blake3(self._seed + self._count.to_bytes(8, "big"))
        self._count += 1
        return h.digest()

    def new_uref(self, rights: AccessRights = AccessRights.READ_ADD_WRITE) -> URef:
        return URef(self.next_addr(), rights)


@dataclass
class GlobalState:
    values: Dict[Key, StoredValue] = field(default_factory=dict)
    balances: Dict[URefAddr, int] = field(default_factory=dict)
    rewards_purse: Optional[URef] = None
    bonding_purse: Optional[URef] = None
    total_supply: int = 0
    protocol_version: Optional[ProtocolVersion] = None
    genesis_hash: Optional[bytes] = None

    def get_account(self, public_key: PublicKey) -> Optional[Account]:
        value = self.values.get(Key.account(public_key))
        if isinstance(value, Account):
            return value
        return None

    def put_account(self, account: Account) -> None:
        self.values[Key.account(account.public_key)] = account

    def get_balance(self, addr: URefAddr) -> int:
        balance = self.balances.get(addr)
        if balance is None:
            raise EngineError(ErrorCode.PURSE_NOT_FOUND, f"purse not found: {addr.hex()}")
        return balance

    def create_purse(self, uref: URef, balance: int = 0) -> URef:
        self.balances[uref.addr] = balance
        return uref

    def move_balance(self, source: URefAddr, target: URefAddr, amount: "Motes | int") -> None:
        amount = as_motes(amount).value
        source_balance = self.get_balance(source)
        target_balance = self.get_balance(target)
        if source_balance < amount:
            raise EngineError(ErrorCode.INSUFFICIENT_FUNDS, "insufficient funds in source purse")
        if source == target:
            return
        if target_balance + amount > U512_MAX:
            raise EngineError(ErrorCode.OVERFLOW, "target purse balance overflow")
        self.balances[source] = source_balance - amount
        self.balances[target] = target_balance + amount


def _lookup_key(state: GlobalState, key: Union[Key, URef]) -> StoredValue:
    if isinstance(key, URef):
        key = Key.uref(key)
    value = state.values.get(key)
    if value is None:
        raise EngineError(ErrorCode.VALUE_NOT_FOUND, f"no value under {key}")
    return value


def query(state: GlobalState, base_key: Key, path: Sequence[str]) -> StoredValue:
    """Resolve `path` through named keys, starting at `base_key`.

    Each segment must name a key on the account or contract reached so far.
    """
    if len(path) > MAX_PATH_SEGMENTS:
        raise EngineError(ErrorCode.INVALID_ARGUMENT, "query path too long")
    current = _lookup_key(state, base_key)
    for depth, name in enumerate(path):
        if not isinstance(current, (Account, Contract)):
            raise EngineError(
                ErrorCode.VALUE_NOT_FOUND,
                f"path segment {depth} ({name!r}) reached a value without named keys",
            )
        next_key = current.named_keys.get(name)
        if next_key is None:
            raise EngineError(ErrorCode.VALUE_NOT_FOUND, f"named key {name!r} not found")
        current = _lookup_key(state, next_key)
    return current

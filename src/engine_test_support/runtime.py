"""Host API exposed to session code during one execution.

Every host call is metered against the execution's gas limit. Purse and
value operations require a URef the execution legitimately obtained, with
sufficient access rights.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .config import HOST_FUNCTION_COSTS, MAX_NAMED_KEY_LENGTH
from .errors import ErrorCode, EngineError
from .motes import Gas, as_motes
from .state import AddressGenerator, GlobalState
from .types import (
    AccessRights,
    Account,
    CLValue,
    Contract,
    Key,
    KeyTag,
    PublicKey,
    URef,
)

NamedKey = Union[Key, URef]
EntryPointResolver = Callable[[str], Callable[["Runtime"], Any]]

_MISSING = object()


class TransferResult(Enum):
    EXISTING_ACCOUNT = "existing_account"
    NEW_ACCOUNT = "new_account"


class Runtime:
    def __init__(
        self,
        state: GlobalState,
        account: Account,
        args: Mapping[str, Any],
        gas_limit: Gas,
        address_generator: AddressGenerator,
        resolve_entry_point: EntryPointResolver,
    ):
        self.state = state
        self.account = account
        self.gas_limit = gas_limit
        self.gas_used = Gas.zero()
        self._args = dict(args)
        self._addresses = address_generator
        self._resolve_entry_point = resolve_entry_point
        self._named_keys = account.named_keys
        self._known: Dict[bytes, AccessRights] = {}
        self._grant(account.main_purse)
        for key in account.named_keys.values():
            if isinstance(key, URef):
                self._grant(key)

    # --- gas ---

    def use_gas(self, amount: int) -> None:
        """Charge `amount` gas, failing once the limit is crossed."""
        total = self.gas_used.value + Gas(amount).value
        if total > self.gas_limit.value:
            self.gas_used = self.gas_limit
            raise EngineError(ErrorCode.OUT_OF_GAS, f"gas limit {self.gas_limit} exceeded")
        self.gas_used = Gas(total)

    def _charge(self, host_function: str) -> None:
        self.use_gas(HOST_FUNCTION_COSTS[host_function])

    # --- access rights ---

    def _grant(self, uref: URef) -> None:
        self._known[uref.addr] = self._known.get(uref.addr, AccessRights.NONE) | uref.access_rights

    def _validate_uref(self, uref: URef, required: AccessRights) -> None:
        known = self._known.get(uref.addr)
        if known is None or int(uref.access_rights) & ~int(known):
            raise EngineError(ErrorCode.FORGED_REFERENCE, f"forged reference: {uref}")
        if uref.access_rights & required != required:
            raise EngineError(
                ErrorCode.INVALID_ACCESS_RIGHTS,
                f"{uref} lacks {required!r}",
            )

    # --- context ---

    def caller(self) -> PublicKey:
        self._charge("caller")
        return self.account.public_key

    def main_purse(self) -> URef:
        self._charge("main_purse")
        return self.account.main_purse

    def get_named_arg(self, name: str, default: Any = _MISSING) -> Any:
        self._charge("get_named_arg")
        if name not in self._args:
            if default is not _MISSING:
                return default
            raise EngineError(ErrorCode.MISSING_ARGUMENT, f"missing argument {name!r}")
        return self._args[name]

    def revert(self, code: int) -> None:
        self._charge("revert")
        raise EngineError(ErrorCode.REVERT, f"user error {code}")

    # --- purses ---

    def create_purse(self) -> URef:
        self._charge("create_purse")
        uref = self.state.create_purse(self._addresses.new_uref())
        self._grant(uref)
        return uref

    def get_balance(self, purse: URef) -> int:
        self._charge("get_balance")
        self._validate_uref(purse, AccessRights.READ)
        return self.state.get_balance(purse.addr)

    def transfer_to_account(self, target: PublicKey, amount: int) -> TransferResult:
        self._charge("transfer_to_account")
        return self._transfer_to_account(self.account.main_purse, target, amount)

    def transfer_from_purse_to_account(self, source: URef, target: PublicKey, amount: int) -> TransferResult:
        self._charge("transfer_from_purse_to_account")
        return self._transfer_to_account(source, target, amount)

    def transfer_from_purse_to_purse(self, source: URef, target: URef, amount: int) -> None:
        self._charge("transfer_from_purse_to_purse")
        self._validate_uref(source, AccessRights.WRITE)
        self._validate_uref(target, AccessRights.ADD)
        self.state.move_balance(source.addr, target.addr, as_motes(amount))

    def _transfer_to_account(self, source: URef, target: PublicKey, amount: int) -> TransferResult:
        # Bad amounts fail before a target account gets created.
        value = as_motes(amount)
        self._validate_uref(source, AccessRights.WRITE)
        if self.state.get_balance(source.addr) < value.value:
            raise EngineError(ErrorCode.INSUFFICIENT_FUNDS, "insufficient funds in source purse")
        result = TransferResult.EXISTING_ACCOUNT
        target_account = self.state.get_account(target)
        if target_account is None:
            purse = self.state.create_purse(self._addresses.new_uref())
            target_account = Account(public_key=target, main_purse=purse, associated_keys={target})
            self.state.put_account(target_account)
            result = TransferResult.NEW_ACCOUNT
        self.state.move_balance(source.addr, target_account.main_purse.addr, value)
        return result

    # --- named keys ---

    def put_key(self, name: str, key: NamedKey) -> None:
        self._charge("put_key")
        if not name or len(name) > MAX_NAMED_KEY_LENGTH:
            raise EngineError(ErrorCode.INVALID_NAMED_KEY, f"invalid named key: {name!r}")
        if isinstance(key, URef):
            self._validate_uref(key, AccessRights.NONE)
        self._named_keys[name] = key

    def get_key(self, name: str) -> Optional[NamedKey]:
        self._charge("get_key")
        return self._named_keys.get(name)

    def has_key(self, name: str) -> bool:
        self._charge("has_key")
        return name in self._named_keys

    def remove_key(self, name: str) -> None:
        self._charge("remove_key")
        self._named_keys.pop(name, None)

    # --- values ---

    def new_uref(self, value: Any) -> URef:
        self._charge("new_uref")
        uref = self._addresses.new_uref()
        self.state.values[Key.uref(uref)] = CLValue(value)
        self._grant(uref)
        return uref

    def read(self, uref: URef) -> Any:
        self._charge("read")
        self._validate_uref(uref, AccessRights.READ)
        stored = self.state.values.get(Key.uref(uref))
        if not isinstance(stored, CLValue):
            raise EngineError(ErrorCode.VALUE_NOT_FOUND, f"no value under {uref}")
        return stored.value

    def write(self, uref: URef, value: Any) -> None:
        self._charge("write")
        self._validate_uref(uref, AccessRights.WRITE)
        self.state.values[Key.uref(uref)] = CLValue(value)

    # --- contracts ---

    def store_contract(self, entry_point: str, named_keys: Optional[Mapping[str, NamedKey]] = None) -> Key:
        self._charge("store_contract")
        # Fails with CODE_NOT_FOUND for unknown entry points.
        self._resolve_entry_point(entry_point)
        for key in (named_keys or {}).values():
            if isinstance(key, URef):
                self._validate_uref(key, AccessRights.NONE)
        key = Key.hash(self._addresses.next_addr())
        self.state.values[key] = Contract(
            entry_point=entry_point,
            named_keys=dict(named_keys or {}),
            protocol_version=self.state.protocol_version,
        )
        return key

    def call_contract(self, key: Key, args: Optional[Mapping[str, Any]] = None) -> Any:
        """Run a stored contract with its own named keys and arguments."""
        self._charge("call_contract")
        contract = self.state.values.get(key) if key.tag == KeyTag.HASH else None
        if not isinstance(contract, Contract):
            raise EngineError(ErrorCode.CONTRACT_NOT_FOUND, f"no contract under {key}")
        entry = self._resolve_entry_point(contract.entry_point)
        for named in contract.named_keys.values():
            if isinstance(named, URef):
                self._grant(named)
        saved = (self._named_keys, self._args)
        self._named_keys, self._args = contract.named_keys, dict(args or {})
        try:
            return entry(self)
        finally:
            self._named_keys, self._args = saved

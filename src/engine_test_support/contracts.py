"""Stock session code and the `Code` descriptor used by deploys.

Session code is a callable taking a `Runtime`. Named stock code is looked up
in `REGISTRY`, the way compiled modules are looked up by file name.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from .errors import ErrorCode, EngineError
from .types import Key, URef

if TYPE_CHECKING:
    from .runtime import Runtime

EntryPoint = Callable[["Runtime"], Any]

REGISTRY: Dict[str, EntryPoint] = {}

COUNTER_KEY = "counter"
COUNTER_VALUE_KEY = "count"


def entry_point(name: str) -> Callable[[EntryPoint], EntryPoint]:
    def _register(fn: EntryPoint) -> EntryPoint:
        REGISTRY[name] = fn
        return fn

    return _register


def resolve_entry_point(name: str) -> EntryPoint:
    fn = REGISTRY.get(name)
    if fn is None:
        raise EngineError(ErrorCode.CODE_NOT_FOUND, f"no session code named {name!r}")
    return fn


@entry_point("do_nothing")
def do_nothing(rt: "Runtime") -> None:
    return None


@entry_point("transfer_to_account")
def transfer_to_account(rt: "Runtime") -> None:
    """Args: `target` (public key), `amount` (motes)."""
    target = rt.get_named_arg("target")
    amount = rt.get_named_arg("amount")
    rt.transfer_to_account(target, amount)


@entry_point("transfer_purse_to_account")
def transfer_purse_to_account(rt: "Runtime") -> None:
    """Args: `purse_name` (named key of the source purse), `target`, `amount`."""
    purse = rt.get_key(rt.get_named_arg("purse_name"))
    if not isinstance(purse, URef):
        rt.revert(1)
    rt.transfer_from_purse_to_account(purse, rt.get_named_arg("target"), rt.get_named_arg("amount"))


@entry_point("create_named_purse")
def create_named_purse(rt: "Runtime") -> None:
    """Args: `purse_name`."""
    name = rt.get_named_arg("purse_name")
    purse = rt.create_purse()
    rt.put_key(name, purse)


@entry_point("transfer_main_purse_to_new_purse")
def transfer_main_purse_to_new_purse(rt: "Runtime") -> None:
    """Args: `purse_name`, `amount`. Funds a fresh named purse from the main purse."""
    name = rt.get_named_arg("purse_name")
    amount = rt.get_named_arg("amount")
    purse = rt.create_purse()
    rt.transfer_from_purse_to_purse(rt.main_purse(), purse, amount)
    rt.put_key(name, purse)


@entry_point("write_named_value")
def write_named_value(rt: "Runtime") -> None:
    """Args: `name`, `value`. Stores `value` in a new URef under `name`."""
    uref = rt.new_uref(rt.get_named_arg("value"))
    rt.put_key(rt.get_named_arg("name"), uref)


@entry_point("counter")
def counter(rt: "Runtime") -> int:
    """Stored-contract entry point: increments the contract's `count` value."""
    uref = rt.get_key(COUNTER_VALUE_KEY)
    if not isinstance(uref, URef):
        rt.revert(2)
    value = rt.read(uref) + 1
    rt.write(uref, value)
    return value


@entry_point("store_counter")
def store_counter(rt: "Runtime") -> None:
    """Stores a `counter` contract under the caller's `counter` named key."""
    count = rt.new_uref(0)
    key = rt.store_contract("counter", {COUNTER_VALUE_KEY: count})
    rt.put_key(COUNTER_KEY, key)


@entry_point("revert")
def revert(rt: "Runtime") -> None:
    """Args: `code` (optional, default 0)."""
    code = rt.get_named_arg("code", 0)
    rt.revert(code)


@entry_point("burn_gas")
def burn_gas(rt: "Runtime") -> None:
    """Args: `amount` (gas units)."""
    rt.use_gas(rt.get_named_arg("amount"))


class CodeKind(Enum):
    PATH = "path"
    CALLABLE = "callable"
    NAMED_KEY = "named_key"
    HASH = "hash"


@dataclass(frozen=True)
class Code:
    kind: CodeKind
    name: Optional[str] = None
    fn: Optional[EntryPoint] = None
    hash_addr: Optional[bytes] = None

    @classmethod
    def path(cls, name: str) -> "Code":
        return cls(CodeKind.PATH, name=name)

    @classmethod
    def from_callable(cls, fn: EntryPoint) -> "Code":
        return cls(CodeKind.CALLABLE, name=getattr(fn, "__name__", "session"), fn=fn)

    @classmethod
    def named_key(cls, name: str) -> "Code":
        return cls(CodeKind.NAMED_KEY, name=name)

    @classmethod
    def hash(cls, addr: bytes) -> "Code":
        return cls(CodeKind.HASH, hash_addr=addr)

    def identity(self) -> bytes:
        """Stable bytes naming this code, used for deploy hashes."""
        if self.kind == CodeKind.HASH:
            return b"hash:" + (self.hash_addr or b"")
        return f"{self.kind.value}:{self.name}".encode("utf-8")


def stored_contract_key(rt: "Runtime", code: Code) -> Key:
    if code.kind == CodeKind.HASH:
        return Key.hash(code.hash_addr or b"")
    key = rt.get_key(code.name or "")
    if not isinstance(key, Key):
        raise EngineError(ErrorCode.CONTRACT_NOT_FOUND, f"no contract under named key {code.name!r}")
    return key

"""In-memory execution engine.

Executes deploys against the committed `GlobalState` and keeps the result
pending until `commit`. Reads (`get_purse_balance`, `get_account`, `query`)
only ever see committed state.

Execution semantics:
- Pre-validation failure: nothing charged, zero gas, state unchanged.
- Otherwise the payment amount is escrowed from the payer's main purse and
  the session runs with a gas limit of `payment_amount // CONV_RATE`.
- Session failure: session effects are discarded, gas used is still charged.
- Settlement: `gas_used * CONV_RATE` motes go to the rewards purse, the rest
  of the escrow is refunded to the payer's main purse.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .config import (
    CONV_RATE,
    DEFAULT_BLOCK_TIME,
    DEFAULT_PAYMENT,
    DEFAULT_PROTOCOL_VERSION,
    EXEC_BASE_COST,
)
from .contracts import Code, CodeKind, resolve_entry_point, stored_contract_key
from .errors import ErrorCode, EngineError, ExecutionFailed
from .genesis import RunGenesisRequest
from .motes import Gas, Motes
from .runtime import Runtime
from .state import AddressGenerator, GlobalState, query as query_state
from .types import Account, Key, ProtocolVersion, PublicKey, StoredValue, URef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecuteRequest:
    address: PublicKey
    session: Code
    session_args: Mapping[str, Any] = field(default_factory=dict)
    payment_amount: int = DEFAULT_PAYMENT
    authorization_keys: Tuple[PublicKey, ...] = ()
    deploy_hash: bytes = bytes(32)
    block_time: int = DEFAULT_BLOCK_TIME
    protocol_version: ProtocolVersion = ProtocolVersion.from_tuple(DEFAULT_PROTOCOL_VERSION)


@dataclass
class ExecutionResult:
    ok: bool
    error: Optional[EngineError]
    gas: Gas
    cost: Motes
    post_state: GlobalState

    @classmethod
    def precondition_failure(cls, error: EngineError, state: GlobalState) -> "ExecutionResult":
        return cls(False, error, Gas.zero(), Motes.zero(), state)


def _validate(state: GlobalState, request: ExecuteRequest) -> Account:
    if state.protocol_version != request.protocol_version:
        raise EngineError(
            ErrorCode.INVALID_PROTOCOL_VERSION,
            f"protocol version {request.protocol_version} does not match {state.protocol_version}",
        )

    account = state.get_account(request.address)
    if account is None:
        raise EngineError(ErrorCode.ACCOUNT_NOT_FOUND, f"account not found: {request.address.hex()}")

    if not request.authorization_keys:
        raise EngineError(ErrorCode.AUTHORIZATION_FAILURE, "no authorization keys")
    for key in request.authorization_keys:
        if key not in account.associated_keys:
            raise EngineError(ErrorCode.AUTHORIZATION_FAILURE, f"key not associated: {key.hex()}")

    payment = Motes(request.payment_amount)
    if state.get_balance(account.main_purse.addr) < payment.value:
        raise EngineError(ErrorCode.INSUFFICIENT_PAYMENT, "main purse cannot cover payment")
    return account


def _run_session(runtime: Runtime, code: Code, args: Mapping[str, Any]) -> None:
    if code.kind == CodeKind.PATH:
        resolve_entry_point(code.name or "")(runtime)
    elif code.kind == CodeKind.CALLABLE:
        if code.fn is None:
            raise EngineError(ErrorCode.CODE_NOT_FOUND, "callable session code without a function")
        code.fn(runtime)
    else:
        runtime.call_contract(stored_contract_key(runtime, code), args)


def execute(state: GlobalState, request: ExecuteRequest, exec_index: int) -> ExecutionResult:
    """Execute one deploy against `state`; `state` itself is never mutated."""
    try:
        _validate(state, request)
    except EngineError as exc:
        return ExecutionResult.precondition_failure(exc, state)

    working = deepcopy(state)
    payer = working.get_account(request.address)
    escrow = Motes(request.payment_amount)
    working.balances[payer.main_purse.addr] -= escrow.value
    checkpoint = deepcopy(working)

    runtime = Runtime(
        working,
        payer,
        request.session_args,
        Gas.from_motes(escrow, CONV_RATE),
        AddressGenerator(request.deploy_hash + exec_index.to_bytes(8, "big")),
        resolve_entry_point,
    )
    error: Optional[EngineError] = None
    try:
        runtime.use_gas(EXEC_BASE_COST)
        _run_session(runtime, request.session, request.session_args)
    except EngineError as exc:
        error = exc
        working = checkpoint

    gas = runtime.gas_used
    cost = Motes.from_gas(gas, CONV_RATE)
    refund = escrow - cost
    payer = working.get_account(request.address)
    working.balances[payer.main_purse.addr] += refund.value
    working.balances[working.rewards_purse.addr] += cost.value
    return ExecutionResult(error is None, error, gas, cost, working)


class InMemoryEngine:
    """Execution engine handle owning the committed ledger state."""

    def __init__(self) -> None:
        self._state: Optional[GlobalState] = None
        self._pending: Optional[ExecutionResult] = None
        self._results: List[ExecutionResult] = []

    @property
    def committed_state(self) -> GlobalState:
        # Before genesis every read behaves as against an empty ledger.
        return self._state if self._state is not None else GlobalState()

    def run_genesis(self, request: RunGenesisRequest) -> "InMemoryEngine":
        if self._state is not None:
            raise EngineError(ErrorCode.GENESIS_ALREADY_RUN, "genesis already run")

        seen: set[bytes] = set()
        for acc in request.ee_config.accounts:
            if acc.public_key in seen:
                raise EngineError(
                    ErrorCode.DUPLICATE_ACCOUNT,
                    f"duplicate genesis account: {acc.public_key.hex()}",
                )
            seen.add(acc.public_key)

        addresses = AddressGenerator(request.genesis_config_hash)
        state = GlobalState(
            protocol_version=request.protocol_version,
            genesis_hash=request.genesis_config_hash,
        )
        bonded = sum(acc.bonded_amount.value for acc in request.ee_config.accounts)
        state.rewards_purse = state.create_purse(addresses.new_uref())
        state.bonding_purse = state.create_purse(addresses.new_uref(), bonded)
        for acc in request.ee_config.accounts:
            purse = state.create_purse(addresses.new_uref(), acc.balance.value)
            state.put_account(
                Account(public_key=acc.public_key, main_purse=purse, associated_keys={acc.public_key})
            )
        state.total_supply = bonded + sum(acc.balance.value for acc in request.ee_config.accounts)

        self._state = state
        logger.debug(
            "genesis %s: %d accounts, total supply %d",
            request.genesis_config_hash.hex(),
            len(request.ee_config.accounts),
            state.total_supply,
        )
        return self

    def exec(self, request: ExecuteRequest) -> "InMemoryEngine":
        if self._state is None:
            raise EngineError(ErrorCode.GENESIS_NOT_RUN, "exec before genesis")
        result = execute(self._state, request, len(self._results))
        self._pending = result
        self._results.append(result)
        logger.debug(
            "exec #%d %s: ok=%s gas=%s error=%s",
            len(self._results),
            request.session.identity().decode("utf-8", "replace"),
            result.ok,
            result.gas,
            result.error,
        )
        return self

    def last_exec_result(self) -> ExecutionResult:
        if not self._results:
            raise EngineError(ErrorCode.NO_EXECUTION, "nothing executed yet")
        return self._results[-1]

    def exec_results(self) -> List[ExecutionResult]:
        return list(self._results)

    def expect_success(self) -> "InMemoryEngine":
        result = self.last_exec_result()
        if not result.ok:
            raise ExecutionFailed(result.error)
        return self

    def is_error(self) -> bool:
        return not self.last_exec_result().ok

    def get_error(self) -> Optional[EngineError]:
        return self.last_exec_result().error

    def commit(self) -> "InMemoryEngine":
        if self._pending is None:
            raise EngineError(ErrorCode.NOTHING_TO_COMMIT, "no pending execution to commit")
        self._state = self._pending.post_state
        self._pending = None
        return self

    def last_exec_gas_cost(self) -> Gas:
        return self.last_exec_result().gas

    def get_purse_balance(self, purse: URef) -> int:
        return self.committed_state.get_balance(purse.addr)

    def get_account(self, public_key: PublicKey) -> Optional[Account]:
        return self.committed_state.get_account(public_key)

    def query(self, base_key: Key, path: Sequence[str]) -> StoredValue:
        return query_state(self.committed_state, base_key, path)

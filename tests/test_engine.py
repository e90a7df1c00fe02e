"""In-memory engine execution semantics."""

from __future__ import annotations

from typing import Any, Optional

import pytest

from engine_test_support.config import CONV_RATE, EXEC_BASE_COST, HOST_FUNCTION_COSTS
from engine_test_support.contracts import COUNTER_KEY, COUNTER_VALUE_KEY, Code
from engine_test_support.engine import ExecuteRequest, InMemoryEngine
from engine_test_support.errors import EngineError, ErrorCode, ExecutionFailed
from engine_test_support.motes import Gas
from engine_test_support.runtime import Runtime, TransferResult
from engine_test_support.session import SessionBuilder
from engine_test_support.test_accounts import ALICE, BOB, CAROL
from engine_test_support.test_context import TestContextBuilder
from engine_test_support.types import AccessRights, CLValue, Key, ProtocolVersion

ALICE_BALANCE = 10_000_000_000


def _engine() -> InMemoryEngine:
    return TestContextBuilder().with_account(ALICE, ALICE_BALANCE).with_account(BOB, 0).build().engine


def _mk_request(code: Code, args: Optional[dict[str, Any]] = None, sender: bytes = ALICE, **opts: Any) -> ExecuteRequest:
    builder = SessionBuilder(code, args).with_address(sender)
    if "payment" in opts:
        builder.with_payment_amount(opts["payment"])
    if "auth" in opts:
        builder.with_authorization_keys(opts["auth"])
    if "protocol_version" in opts:
        builder.with_protocol_version(opts["protocol_version"])
    return builder.build().inner


def _balance(engine: InMemoryEngine, who: bytes) -> int:
    account = engine.get_account(who)
    assert account is not None
    return engine.get_purse_balance(account.main_purse)


def test_exec_without_commit_leaves_committed_state() -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.path("transfer_to_account"), {"target": BOB, "amount": 500}))
    assert not engine.is_error()
    assert _balance(engine, BOB) == 0
    assert _balance(engine, ALICE) == ALICE_BALANCE

    engine.commit()
    gas = engine.last_exec_gas_cost()
    assert _balance(engine, BOB) == 500
    assert _balance(engine, ALICE) == ALICE_BALANCE - 500 - gas.value * CONV_RATE


def test_second_exec_replaces_pending_result() -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.path("transfer_to_account"), {"target": BOB, "amount": 500}))
    engine.exec(_mk_request(Code.path("transfer_to_account"), {"target": BOB, "amount": 7}))
    engine.commit()
    assert _balance(engine, BOB) == 7
    assert len(engine.exec_results()) == 2


def test_fees_go_to_rewards_purse() -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.path("do_nothing"))).expect_success().commit()
    rewards = engine.committed_state.rewards_purse
    assert rewards is not None
    assert engine.last_exec_gas_cost() == Gas(EXEC_BASE_COST)
    assert engine.get_purse_balance(rewards) == EXEC_BASE_COST * CONV_RATE


def test_failed_session_discards_effects_but_pays_gas() -> None:
    def transfer_then_revert(rt: Runtime) -> None:
        rt.transfer_to_account(BOB, 1_000)
        rt.revert(3)

    engine = _engine()
    engine.exec(_mk_request(Code.from_callable(transfer_then_revert)))
    assert engine.is_error()
    error = engine.get_error()
    assert error is not None and error.code == ErrorCode.REVERT
    assert "user error 3" in error.message

    engine.commit()
    expected_gas = EXEC_BASE_COST + HOST_FUNCTION_COSTS["transfer_to_account"] + HOST_FUNCTION_COSTS["revert"]
    assert engine.last_exec_gas_cost() == Gas(expected_gas)
    assert _balance(engine, BOB) == 0
    assert _balance(engine, ALICE) == ALICE_BALANCE - expected_gas * CONV_RATE


def test_expect_success_raises_execution_failed() -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.path("revert"), {"code": 9}))
    with pytest.raises(ExecutionFailed) as exc_info:
        engine.expect_success()
    assert exc_info.value.error is not None
    assert exc_info.value.error.code == ErrorCode.REVERT


@pytest.mark.parametrize(
    "sender, opts, code",
    [
        (CAROL, {}, ErrorCode.ACCOUNT_NOT_FOUND),
        (ALICE, {"auth": [BOB]}, ErrorCode.AUTHORIZATION_FAILURE),
        (ALICE, {"auth": []}, ErrorCode.AUTHORIZATION_FAILURE),
        (ALICE, {"payment": ALICE_BALANCE + 1}, ErrorCode.INSUFFICIENT_PAYMENT),
        (ALICE, {"protocol_version": ProtocolVersion(2)}, ErrorCode.INVALID_PROTOCOL_VERSION),
    ],
)
def test_precondition_failures_charge_nothing(sender: bytes, opts: dict, code: ErrorCode) -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.path("do_nothing"), sender=sender, **opts))
    error = engine.get_error()
    assert error is not None and error.code == code
    assert engine.last_exec_gas_cost() == Gas.zero()
    engine.commit()
    assert _balance(engine, ALICE) == ALICE_BALANCE


def test_out_of_gas_charges_whole_limit() -> None:
    engine = _engine()
    payment = 20_000
    engine.exec(_mk_request(Code.path("burn_gas"), {"amount": 5_000}, payment=payment))
    error = engine.get_error()
    assert error is not None and error.code == ErrorCode.OUT_OF_GAS
    assert engine.last_exec_gas_cost() == Gas(payment // CONV_RATE)
    engine.commit()
    assert _balance(engine, ALICE) == ALICE_BALANCE - payment


def test_forged_purse_reference_rejected() -> None:
    engine = _engine()
    bob = engine.get_account(BOB)
    assert bob is not None

    def steal(rt: Runtime) -> None:
        rt.transfer_from_purse_to_purse(bob.main_purse, rt.main_purse(), 1)

    engine.exec(_mk_request(Code.from_callable(steal)))
    error = engine.get_error()
    assert error is not None and error.code == ErrorCode.FORGED_REFERENCE


def test_add_only_purse_cannot_be_debited() -> None:
    engine = _engine()

    def debit_add_only(rt: Runtime) -> None:
        purse = rt.main_purse().with_access_rights(AccessRights.ADD)
        rt.transfer_from_purse_to_account(purse, BOB, 1)

    engine.exec(_mk_request(Code.from_callable(debit_add_only)))
    error = engine.get_error()
    assert error is not None and error.code == ErrorCode.INVALID_ACCESS_RIGHTS


def test_transfer_creates_new_account() -> None:
    engine = _engine()
    results = []

    def fund_carol(rt: Runtime) -> None:
        results.append(rt.transfer_to_account(CAROL, 1_234))
        results.append(rt.transfer_to_account(CAROL, 1))

    engine.exec(_mk_request(Code.from_callable(fund_carol))).expect_success().commit()
    assert results == [TransferResult.NEW_ACCOUNT, TransferResult.EXISTING_ACCOUNT]
    assert _balance(engine, CAROL) == 1_235


def test_insufficient_funds_in_session() -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.path("transfer_to_account"), {"target": BOB, "amount": ALICE_BALANCE}))
    error = engine.get_error()
    assert error is not None and error.code == ErrorCode.INSUFFICIENT_FUNDS


def test_missing_argument_and_unknown_code() -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.path("transfer_to_account"), {"target": BOB}))
    error = engine.get_error()
    assert error is not None and error.code == ErrorCode.MISSING_ARGUMENT

    engine.exec(_mk_request(Code.path("no_such_code")))
    error = engine.get_error()
    assert error is not None and error.code == ErrorCode.CODE_NOT_FOUND


def test_query_named_value_after_commit() -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.path("write_named_value"), {"name": "answer", "value": 42}))
    with pytest.raises(EngineError) as exc_info:
        engine.query(Key.account(ALICE), ["answer"])
    assert exc_info.value.code == ErrorCode.VALUE_NOT_FOUND

    engine.commit()
    assert engine.query(Key.account(ALICE), ["answer"]) == CLValue(42)


def test_stored_contract_counter() -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.path("store_counter"))).expect_success().commit()
    for _ in range(2):
        engine.exec(_mk_request(Code.named_key(COUNTER_KEY))).expect_success().commit()
    assert engine.query(Key.account(ALICE), [COUNTER_KEY, COUNTER_VALUE_KEY]) == CLValue(2)

    contract_key = engine.get_account(ALICE).named_keys[COUNTER_KEY]
    engine.exec(_mk_request(Code.hash(contract_key.addr))).expect_success().commit()
    assert engine.query(Key.account(ALICE), [COUNTER_KEY, COUNTER_VALUE_KEY]) == CLValue(3)


def test_missing_stored_contract() -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.named_key("nothing_here")))
    error = engine.get_error()
    assert error is not None and error.code == ErrorCode.CONTRACT_NOT_FOUND


def test_engine_usage_errors() -> None:
    engine = InMemoryEngine()
    with pytest.raises(EngineError) as exc_info:
        engine.exec(_mk_request(Code.path("do_nothing")))
    assert exc_info.value.code == ErrorCode.GENESIS_NOT_RUN
    with pytest.raises(EngineError) as exc_info:
        engine.last_exec_gas_cost()
    assert exc_info.value.code == ErrorCode.NO_EXECUTION
    with pytest.raises(EngineError) as exc_info:
        engine.commit()
    assert exc_info.value.code == ErrorCode.NOTHING_TO_COMMIT
    assert engine.get_account(ALICE) is None
    with pytest.raises(EngineError) as exc_info:
        engine.query(Key.account(ALICE), [])
    assert exc_info.value.code == ErrorCode.VALUE_NOT_FOUND


@pytest.mark.parametrize(
    "amount,code",
    [
        (1.5, ErrorCode.TYPE_MISMATCH),
        ("100", ErrorCode.TYPE_MISMATCH),
        (-1, ErrorCode.UNDERFLOW),
    ],
)
def test_transfer_amount_must_be_motes(amount: Any, code: ErrorCode) -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.path("transfer_to_account"), {"target": BOB, "amount": amount}))
    error = engine.get_error()
    assert error is not None and error.code == code
    engine.commit()
    assert _balance(engine, BOB) == 0
    gas = engine.last_exec_gas_cost()
    assert _balance(engine, ALICE) == ALICE_BALANCE - gas.value * CONV_RATE


def test_purse_to_purse_amount_must_be_motes() -> None:
    engine = _engine()

    def move_fraction(rt: Runtime) -> None:
        purse = rt.create_purse()
        rt.transfer_from_purse_to_purse(rt.main_purse(), purse, 0.5)

    engine.exec(_mk_request(Code.from_callable(move_fraction)))
    error = engine.get_error()
    assert error is not None and error.code == ErrorCode.TYPE_MISMATCH
    engine.commit()
    assert all(isinstance(balance, int) for balance in engine.committed_state.balances.values())


def test_negative_gas_cannot_refund_base_cost() -> None:
    engine = _engine()
    engine.exec(_mk_request(Code.path("burn_gas"), {"amount": -EXEC_BASE_COST}))
    error = engine.get_error()
    assert error is not None and error.code == ErrorCode.UNDERFLOW
    assert engine.last_exec_gas_cost().value >= EXEC_BASE_COST


def test_stripped_purse_cannot_be_read() -> None:
    engine = _engine()

    def read_stripped(rt: Runtime) -> None:
        rt.get_balance(rt.main_purse().remove_access_rights())

    engine.exec(_mk_request(Code.from_callable(read_stripped)))
    error = engine.get_error()
    assert error is not None and error.code == ErrorCode.INVALID_ACCESS_RIGHTS

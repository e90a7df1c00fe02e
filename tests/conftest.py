"""Shared fixtures for engine test-support tests."""

from __future__ import annotations

from typing import Any, Callable, Optional

import pytest

from engine_test_support.config import CONV_RATE, EXEC_BASE_COST, HOST_FUNCTION_COSTS
from engine_test_support.contracts import Code
from engine_test_support.session import Session, SessionBuilder, SessionTransferInfo
from engine_test_support.test_accounts import ALICE, BOB
from engine_test_support.test_context import TestContext, TestContextBuilder

ALICE_INITIAL_BALANCE = 1_000_000_000_000
BOB_INITIAL_BALANCE = 5_000_000_000

# Gas used by the stock `transfer_to_account` code: base + two args + transfer.
TRANSFER_GAS = (
    EXEC_BASE_COST
    + 2 * HOST_FUNCTION_COSTS["get_named_arg"]
    + HOST_FUNCTION_COSTS["transfer_to_account"]
)
TRANSFER_COST = TRANSFER_GAS * CONV_RATE


@pytest.fixture
def ctx() -> TestContext:
    """Context with ALICE and BOB seeded next to the default account."""
    return (
        TestContextBuilder()
        .with_account(ALICE, ALICE_INITIAL_BALANCE)
        .with_account(BOB, BOB_INITIAL_BALANCE)
        .build()
    )


@pytest.fixture
def transfer_session() -> Callable[..., Session]:
    """Build a `transfer_to_account` session from `sender` to `target`."""

    def _transfer_session(
        sender: bytes,
        target: bytes,
        amount: int,
        check: Optional[SessionTransferInfo] = None,
        **builder_opts: Any,
    ) -> Session:
        builder = SessionBuilder(
            Code.path("transfer_to_account"), {"target": target, "amount": amount}
        ).with_address(sender)
        if check is not None:
            builder.with_check_transfer_success(check)
        if builder_opts.get("expect_failure"):
            builder.expect_failure()
        if builder_opts.get("without_commit"):
            builder.without_commit()
        if "payment" in builder_opts:
            builder.with_payment_amount(builder_opts["payment"])
        return builder.build()

    return _transfer_session

"""Load YAML scenarios and turn them into a `TestContext` and sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from engine_test_support.config import DEFAULT_PAYMENT
from engine_test_support.contracts import Code
from engine_test_support.session import Session, SessionBuilder, SessionTransferInfo
from engine_test_support.test_accounts import DEFAULT_ACCOUNT_ADDR, account_by_name
from engine_test_support.test_context import TestContext, TestContextBuilder


class ScenarioError(ValueError):
    pass


@dataclass
class TransferCheck:
    source: str
    amount: int
    target: Optional[str] = None


@dataclass
class ScenarioSession:
    name: str
    code: str
    address: Optional[str] = None
    args: dict[str, Any] = field(default_factory=dict)
    payment: int = DEFAULT_PAYMENT
    expect_success: bool = True
    commit: bool = True
    check_transfer: Optional[TransferCheck] = None


@dataclass
class Scenario:
    name: str
    accounts: list[tuple[str, int]] = field(default_factory=list)
    sessions: list[ScenarioSession] = field(default_factory=list)


def _require(data: dict[str, Any], key: str, where: str) -> Any:
    if key not in data:
        raise ScenarioError(f"{where}: missing '{key}'")
    return data[key]


def _resolve_arg(value: Any) -> Any:
    # {account: bob} -> bob's public key bytes
    if isinstance(value, dict) and set(value) == {"account"}:
        return account_by_name(str(value["account"]))
    return value


def _check_from_json(data: Optional[dict[str, Any]], where: str) -> Optional[TransferCheck]:
    if data is None:
        return None
    return TransferCheck(
        source=str(_require(data, "source", where)),
        amount=int(data.get("amount", 0)),
        target=data.get("target"),
    )


def session_from_json(data: dict[str, Any], index: int) -> ScenarioSession:
    where = f"session[{index}]"
    return ScenarioSession(
        name=str(data.get("name", f"session_{index}")),
        code=str(_require(data, "code", where)),
        address=data.get("address"),
        args={k: _resolve_arg(v) for k, v in (data.get("args") or {}).items()},
        payment=int(data.get("payment", DEFAULT_PAYMENT)),
        expect_success=bool(data.get("expect_success", True)),
        commit=bool(data.get("commit", True)),
        check_transfer=_check_from_json(data.get("check_transfer"), where),
    )


def scenario_from_json(data: dict[str, Any], default_name: str = "scenario") -> Scenario:
    if not isinstance(data, dict):
        raise ScenarioError("scenario must be a mapping")
    accounts = []
    for i, acc in enumerate(data.get("accounts") or []):
        accounts.append(
            (str(_require(acc, "name", f"accounts[{i}]")), int(_require(acc, "balance", f"accounts[{i}]")))
        )
    sessions = [session_from_json(s, i) for i, s in enumerate(data.get("sessions") or [])]
    return Scenario(name=str(data.get("name", default_name)), accounts=accounts, sessions=sessions)


def load_scenario(path: Path) -> Scenario:
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ScenarioError(f"{path}: invalid yaml: {exc}") from exc
    return scenario_from_json(data, default_name=path.stem)


def build_context(scenario: Scenario) -> TestContext:
    builder = TestContextBuilder()
    for name, balance in scenario.accounts:
        builder.with_account(account_by_name(name), balance)
    return builder.build()


def build_session(ctx: TestContext, step: ScenarioSession) -> Session:
    """Build a session; purses are resolved against the context's current state."""
    address = account_by_name(step.address) if step.address else DEFAULT_ACCOUNT_ADDR
    builder = (
        SessionBuilder(Code.path(step.code), step.args)
        .with_address(address)
        .with_payment_amount(step.payment)
    )
    if not step.expect_success:
        builder.expect_failure()
    if not step.commit:
        builder.without_commit()
    check = step.check_transfer
    if check is not None:
        source = ctx.main_purse_address(account_by_name(check.source))
        if source is None:
            raise ScenarioError(f"{step.name}: source account {check.source!r} does not exist")
        # An unknown target account means the target side is not checked.
        target = ctx.main_purse_address(account_by_name(check.target)) if check.target else None
        builder.with_check_transfer_success(SessionTransferInfo(source, target, check.amount))
    return builder.build()

"""Sessions: one deploy plus the checks `TestContext.run` applies to it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from blake3 import blake3

from .config import DEFAULT_BLOCK_TIME, DEFAULT_PAYMENT, DEFAULT_PROTOCOL_VERSION
from .contracts import Code
from .engine import ExecuteRequest
from .motes import Motes, as_motes
from .test_accounts import DEFAULT_ACCOUNT_ADDR
from .types import ProtocolVersion, PublicKey, URef


@dataclass(frozen=True)
class SessionTransferInfo:
    """Declares a value-conservation check for a session.

    The source purse is checked unconditionally: it must end at
    `initial - transfer_amount - gas * CONV_RATE`. The target purse, when
    given, must end at `initial + transfer_amount`.
    """

    source_purse: URef
    maybe_target_purse: Optional[URef] = None
    transfer_amount: Motes = Motes(0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "transfer_amount", as_motes(self.transfer_amount))


@dataclass(frozen=True)
class Session:
    """A deploy to execute plus verification policy.

    With `commit=False` the transfer check reads committed state, which is
    then still the pre-execution state; combining the two is the caller's call.
    """

    inner: ExecuteRequest
    expect_success: bool = True
    commit: bool = True
    check_transfer_success: Optional[SessionTransferInfo] = None


def _args_fingerprint(args: Mapping[str, Any]) -> bytes:
    return repr(sorted(args.items())).encode("utf-8")


class SessionBuilder:
    """Fluent builder for `Session`.

    Defaults: deploy from `DEFAULT_ACCOUNT_ADDR`, authorized by the deploying
    account, paying `DEFAULT_PAYMENT`, expecting success and committing.
    """

    def __init__(self, session_code: Code, session_args: Optional[Mapping[str, Any]] = None):
        self._code = session_code
        self._args = dict(session_args or {})
        self._address: PublicKey = DEFAULT_ACCOUNT_ADDR
        self._authorization_keys: Optional[tuple[PublicKey, ...]] = None
        self._payment_amount = DEFAULT_PAYMENT
        self._block_time = DEFAULT_BLOCK_TIME
        self._protocol_version = ProtocolVersion.from_tuple(DEFAULT_PROTOCOL_VERSION)
        self._deploy_hash: Optional[bytes] = None
        self._expect_success = True
        self._commit = True
        self._check_transfer_success: Optional[SessionTransferInfo] = None

    def with_address(self, address: PublicKey) -> "SessionBuilder":
        self._address = address
        return self

    def with_authorization_keys(self, keys: Iterable[PublicKey]) -> "SessionBuilder":
        self._authorization_keys = tuple(keys)
        return self

    def with_payment_amount(self, amount: int) -> "SessionBuilder":
        self._payment_amount = amount
        return self

    def with_block_time(self, block_time: int) -> "SessionBuilder":
        self._block_time = block_time
        return self

    def with_protocol_version(self, version: ProtocolVersion) -> "SessionBuilder":
        self._protocol_version = version
        return self

    def with_deploy_hash(self, deploy_hash: bytes) -> "SessionBuilder":
        self._deploy_hash = deploy_hash
        return self

    def with_check_transfer_success(self, info: SessionTransferInfo) -> "SessionBuilder":
        self._check_transfer_success = info
        return self

    def without_commit(self) -> "SessionBuilder":
        self._commit = False
        return self

    def expect_failure(self) -> "SessionBuilder":
        self._expect_success = False
        return self

    def _default_deploy_hash(self) -> bytes:
        return blake3(self._address + self._code.identity() + _args_fingerprint(self._args)).digest()

    def build(self) -> Session:
        keys = self._authorization_keys
        if keys is None:
            keys = (self._address,)
        request = ExecuteRequest(
            address=self._address,
            session=self._code,
            session_args=dict(self._args),
            payment_amount=self._payment_amount,
            authorization_keys=keys,
            deploy_hash=self._deploy_hash or self._default_deploy_hash(),
            block_time=self._block_time,
            protocol_version=self._protocol_version,
        )
        return Session(
            inner=request,
            expect_success=self._expect_success,
            commit=self._commit,
            check_transfer_success=self._check_transfer_success,
        )

"""Genesis configuration and the one-time ledger bootstrap."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from blake3 import blake3

from .config import (
    DEFAULT_ACCOUNT_INITIAL_BALANCE,
    DEFAULT_CHAIN_NAME,
    DEFAULT_GENESIS_TIMESTAMP,
    DEFAULT_PROTOCOL_VERSION,
)
from .errors import ErrorCode, EngineError
from .motes import Motes
from .types import ProtocolVersion, PublicKey
from .test_accounts import DEFAULT_ACCOUNT_ADDR


@dataclass(frozen=True)
class GenesisAccount:
    public_key: PublicKey
    balance: Motes
    bonded_amount: Motes = field(default_factory=Motes.zero)


@dataclass
class ExecConfig:
    accounts: List[GenesisAccount] = field(default_factory=list)

    def push_account(self, account: GenesisAccount) -> None:
        """Append a genesis account; an identity may only appear once."""
        if any(a.public_key == account.public_key for a in self.accounts):
            raise EngineError(
                ErrorCode.DUPLICATE_ACCOUNT,
                f"genesis account already present: {account.public_key.hex()}",
            )
        self.accounts.append(account)


def _u64_be(value: int) -> bytes:
    return int(value).to_bytes(8, "big", signed=False)


def _uint_be(value: int) -> bytes:
    # Length-prefixed big-endian, sized to the value (u512 amounts).
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big") if value else b""
    return bytes([len(raw)]) + raw


@dataclass
class GenesisConfig:
    name: str
    timestamp: int
    protocol_version: ProtocolVersion
    ee_config: ExecConfig = field(default_factory=ExecConfig)

    def ee_config_mut(self) -> ExecConfig:
        return self.ee_config

    def take_ee_config(self) -> ExecConfig:
        """Hand out the exec config, leaving an empty one behind."""
        taken = self.ee_config
        self.ee_config = ExecConfig()
        return taken

    def config_hash(self) -> bytes:
        """BLAKE3 digest of the canonical config encoding.

        Fields in order: name (length-prefixed utf-8), timestamp, protocol
        version, then each account as (public key, balance, bonded amount).
        """
        buf = bytearray()
        name = self.name.encode("utf-8")
        buf += _u64_be(len(name))
        buf += name
        buf += _u64_be(self.timestamp)
        v = self.protocol_version
        buf += _u64_be(v.major) + _u64_be(v.minor) + _u64_be(v.patch)
        buf += _u64_be(len(self.ee_config.accounts))
        for acc in self.ee_config.accounts:
            buf += acc.public_key
            buf += _uint_be(acc.balance.value)
            buf += _uint_be(acc.bonded_amount.value)
        return blake3(bytes(buf)).digest()


def default_genesis_config() -> GenesisConfig:
    config = GenesisConfig(
        name=DEFAULT_CHAIN_NAME,
        timestamp=DEFAULT_GENESIS_TIMESTAMP,
        protocol_version=ProtocolVersion.from_tuple(DEFAULT_PROTOCOL_VERSION),
    )
    config.ee_config.push_account(
        GenesisAccount(DEFAULT_ACCOUNT_ADDR, Motes(DEFAULT_ACCOUNT_INITIAL_BALANCE), Motes.zero())
    )
    return config


@dataclass(frozen=True)
class RunGenesisRequest:
    genesis_config_hash: bytes
    protocol_version: ProtocolVersion
    ee_config: ExecConfig

    @classmethod
    def from_config(cls, config: GenesisConfig) -> "RunGenesisRequest":
        # Hash before taking the accounts out of the config.
        config_hash = config.config_hash()
        return cls(config_hash, config.protocol_version, config.take_ee_config())

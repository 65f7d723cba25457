# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from bls_wallet.constants import (
    DEFAULT_DST,
    DEFAULT_LOG_LEVEL,
    LOG_LEVEL_ENV,
    MAX_DST_LENGTH,
    MAX_PAYLOAD_LENGTH,
    MIN_GAS_LIMIT,
)
from bls_wallet.exceptions import ConfigError
from bls_wallet.files import from_hex, load_json, save_json
from bls_wallet.keys import KeyMode


class Scheme(Enum):
    MULTISIG = "multisig"
    THRESHOLD = "threshold"


@dataclass(frozen=True)
class WalletConfig:
    """
    Everything a wallet needs at construction; immutable afterwards.

    In multisig mode every member must sign and `threshold` defaults to
    the member count. In threshold mode `member_ids` holds the member id
    produced by group setup for each public key, in the same order.
    """

    key_mode: KeyMode
    scheme: Scheme
    public_keys: tuple[bytes, ...]
    member_ids: tuple[bytes, ...] = ()
    threshold: int = 0
    dst: bytes = DEFAULT_DST
    min_gas_limit: int = MIN_GAS_LIMIT
    max_payload_length: int = MAX_PAYLOAD_LENGTH

    def __post_init__(self):
        # normalize lists handed in by callers
        object.__setattr__(self, "public_keys", tuple(bytes(pk) for pk in self.public_keys))
        object.__setattr__(self, "member_ids", tuple(bytes(m) for m in self.member_ids))
        n = len(self.public_keys)
        if self.scheme is Scheme.MULTISIG and self.threshold == 0:
            object.__setattr__(self, "threshold", n)
        self.validate()

    def validate(self) -> None:
        n = len(self.public_keys)
        if n == 0:
            raise ConfigError("at least one public key is required")
        size = self.key_mode.public_key_group.size
        for pk in self.public_keys:
            if len(pk) != size:
                raise ConfigError(
                    f"{self.key_mode.value} public keys must be {size} bytes, got {len(pk)}"
                )
        if len(set(self.public_keys)) != n:
            raise ConfigError("public keys must be distinct")

        if self.scheme is Scheme.THRESHOLD:
            if len(self.member_ids) != n:
                raise ConfigError(f"expected {n} member ids, got {len(self.member_ids)}")
            if not 1 <= self.threshold <= n:
                raise ConfigError(f"threshold must be between 1 and {n}, got {self.threshold}")
        else:
            if self.member_ids:
                raise ConfigError("member ids are only used in threshold mode")
            if self.threshold != n:
                raise ConfigError("a multisig wallet requires every member to sign")

        if not 0 < len(self.dst) <= MAX_DST_LENGTH:
            raise ConfigError(f"DST must be 1 to {MAX_DST_LENGTH} bytes, got {len(self.dst)}")
        if not self.dst.isascii():
            raise ConfigError("DST must be ASCII")
        if self.min_gas_limit <= 0:
            raise ConfigError("min_gas_limit must be positive")
        if self.max_payload_length <= 0:
            raise ConfigError("max_payload_length must be positive")

    @classmethod
    def from_dict(cls, data: dict) -> "WalletConfig":
        try:
            return cls(
                key_mode=KeyMode(data["key_mode"]),
                scheme=Scheme(data["scheme"]),
                public_keys=tuple(from_hex(pk) for pk in data["public_keys"]),
                member_ids=tuple(from_hex(m) for m in data.get("member_ids", [])),
                threshold=int(data.get("threshold", 0)),
                dst=data.get("dst", DEFAULT_DST.decode("ascii")).encode("ascii"),
                min_gas_limit=int(data.get("min_gas_limit", MIN_GAS_LIMIT)),
                max_payload_length=int(data.get("max_payload_length", MAX_PAYLOAD_LENGTH)),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise ConfigError(f"malformed wallet config: {e!r}") from e

    def to_dict(self) -> dict:
        return {
            "key_mode": self.key_mode.value,
            "scheme": self.scheme.value,
            "public_keys": [pk.hex() for pk in self.public_keys],
            "member_ids": [m.hex() for m in self.member_ids],
            "threshold": self.threshold,
            "dst": self.dst.decode("ascii"),
            "min_gas_limit": self.min_gas_limit,
            "max_payload_length": self.max_payload_length,
        }


def load_config(path: str | Path) -> WalletConfig:
    """
    Load a wallet configuration from a JSON file.

    Args:
        path: Path to a JSON file written by `save_config`.

    Returns:
        WalletConfig: The validated configuration.

    Raises:
        ConfigError: If the file content is not a valid configuration.
        FileNotFoundError: If the file does not exist.
    """
    return WalletConfig.from_dict(load_json(path))


def save_config(path: str | Path, config: WalletConfig) -> None:
    save_json(path, config.to_dict())


def configure_logging(level: str | None = None) -> None:
    """
    Configure stdlib logging for the wallet.

    The level comes from `level`, else the BLS_WALLET_LOG_LEVEL environment
    variable, else INFO.
    """
    level_name = (level or os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

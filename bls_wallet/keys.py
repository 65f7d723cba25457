# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only

from dataclasses import dataclass
from enum import Enum

from bls_wallet.backend import Group
from bls_wallet.bls12381 import GroupOps, rng
from bls_wallet.constants import R
from bls_wallet.files import save_json


class KeyMode(Enum):
    """Which curve holds public keys; signatures live on the other one."""

    G1 = "G1"
    G2 = "G2"

    @property
    def public_key_group(self) -> Group:
        return Group.G1 if self is KeyMode.G1 else Group.G2

    @property
    def signature_group(self) -> Group:
        return self.public_key_group.opposite


@dataclass
class KeyPair:
    mode: KeyMode
    sk: int | None = None
    pk: bytes | None = None

    def __post_init__(self):
        # Secret-known construction
        if self.sk is not None:
            if not 0 < self.sk < R:
                raise ValueError("secret key must be in [1, curve_order - 1]")
            ops = GroupOps()
            self.pk = ops.scale(ops.generator(self.mode.public_key_group), self.sk)
            return

        # Public-only construction
        if self.pk is None:
            raise ValueError("Must provide pk if sk is not known")

    def __eq__(self, other):
        if not isinstance(other, KeyPair):
            return NotImplemented
        return self.mode == other.mode and self.sk == other.sk and self.pk == other.pk

    @classmethod
    def generate(cls, mode: KeyMode) -> "KeyPair":
        return cls(mode=mode, sk=rng())

    @classmethod
    def from_public(cls, mode: KeyMode, pk: bytes) -> "KeyPair":
        return cls(mode=mode, sk=None, pk=pk)

    def to_file(self, path: str = "../data/public-key.json") -> None:
        data = {
            "mode": self.mode.value,
            "pk": self.pk.hex() if self.pk is not None else None,
        }
        save_json(path, data)

# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only

import dataclasses
from dataclasses import dataclass, field
from enum import Enum

import cbor2
from eth_typing import Address, Hash32

from bls_wallet.constants import HASH_CHECK_CODE_SIZE, OPERATION_DOMAIN_TAG
from bls_wallet.files import from_hex
from bls_wallet.hashing import generate


class OperationStatus(Enum):
    NONE = "NONE"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXECUTING = "EXECUTING"
    EXECUTED = "EXECUTED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


@dataclass
class Operation:
    target: Address
    value: int
    effective_time: int
    expiration_time: int
    gas_limit: int
    nonce: int
    hash_check_code: bytes = bytes(HASH_CHECK_CODE_SIZE)
    payload: bytes = b""
    signature: bytes = b""
    signer_set: tuple[bytes, ...] = ()
    status: OperationStatus = OperationStatus.NONE
    failure: str | None = field(default=None, compare=False)

    def content(self) -> bytes:
        """
        Canonical CBOR encoding of the fields that make up the identity.

        Status, signature, signer set, failure text and the hash check code
        are not part of the content.
        """
        return cbor2.dumps(
            [
                OPERATION_DOMAIN_TAG,
                bytes(self.target),
                self.value,
                self.effective_time,
                self.expiration_time,
                self.gas_limit,
                self.nonce,
                self.payload,
            ],
            canonical=True,
        )

    def hash(self) -> Hash32:
        return Hash32(generate(self.content()))

    def with_check_code(self) -> "Operation":
        """Return a copy whose hash check code matches its content hash."""
        return dataclasses.replace(self, hash_check_code=hash_check_code(self.hash()))

    def to_dict(self) -> dict:
        return {
            "target": bytes(self.target).hex(),
            "value": self.value,
            "effective_time": self.effective_time,
            "expiration_time": self.expiration_time,
            "gas_limit": self.gas_limit,
            "nonce": self.nonce,
            "hash_check_code": self.hash_check_code.hex(),
            "payload": self.payload.hex(),
            "signature": self.signature.hex(),
            "signer_set": [pk.hex() for pk in self.signer_set],
            "status": self.status.value,
            "failure": self.failure,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Operation":
        return cls(
            target=Address(from_hex(data["target"])),
            value=int(data["value"]),
            effective_time=int(data["effective_time"]),
            expiration_time=int(data["expiration_time"]),
            gas_limit=int(data["gas_limit"]),
            nonce=int(data["nonce"]),
            hash_check_code=from_hex(data.get("hash_check_code", "")),
            payload=from_hex(data.get("payload", "")),
            signature=from_hex(data.get("signature", "")),
            signer_set=tuple(from_hex(pk) for pk in data.get("signer_set", [])),
            status=OperationStatus(data.get("status", OperationStatus.NONE.value)),
            failure=data.get("failure"),
        )


def hash_check_code(operation_hash: bytes) -> bytes:
    """The low 8 bytes of an operation hash."""
    return bytes(operation_hash[-HASH_CHECK_CODE_SIZE:])

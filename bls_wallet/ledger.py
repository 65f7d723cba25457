# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
"""
The operation ledger: submit, verify and execute governed operations.

Lifecycle of one operation hash:

    NONE -> PENDING -> APPROVED -> EXECUTING -> EXECUTED | FAILED
    PENDING -> REJECTED
    APPROVED -> EXPIRED

An operation submitted with a valid inline signature starts at APPROVED.
Every state but PENDING and APPROVED is final, and records are never
removed, so the same content can never be submitted twice.
"""

import dataclasses
import logging
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from eth_typing import Hash32

from bls_wallet.access import RoleRegistry
from bls_wallet.backend import CurveBackend
from bls_wallet.bls12381 import CurveMapper, GroupOps
from bls_wallet.calls import CallRouter
from bls_wallet.config import Scheme, WalletConfig
from bls_wallet.constants import (
    ADDRESS_SIZE,
    HASH_CHECK_CODE_SIZE,
    PROPOSER_ROLE,
    VERIFIER_ROLE,
    ZERO_ADDRESS,
)
from bls_wallet.exceptions import (
    CallFailed,
    CurveError,
    ExecuteExpiredOperation,
    ExecuteUnapprovedOperation,
    ExecuteUneffectiveOperation,
    GasLimitTooLow,
    HashCheckCodeMismatch,
    InvalidPublicKey,
    InvalidTimeWindow,
    LengthMismatch,
    MalformedOperation,
    NonceMismatch,
    OperationExists,
    OperationExpired,
    PayloadTooLarge,
    ReentrantCall,
    ZeroAddress,
)
from bls_wallet.files import save_json
from bls_wallet.keys import KeyMode
from bls_wallet.operation import Operation, OperationStatus, hash_check_code
from bls_wallet.signatures import SignatureAggregator
from bls_wallet.threshold import ThresholdScheme

logger = logging.getLogger(__name__)


class OperationLedger:
    def __init__(
        self,
        config: WalletConfig,
        router: CallRouter | None = None,
        clock: Callable[[], float] | None = None,
        roles: RoleRegistry | None = None,
        backend: CurveBackend | None = None,
    ):
        self.config = config
        self.router = router if router is not None else CallRouter()
        self.clock = clock if clock is not None else time.time
        self.roles = roles

        mapper = CurveMapper(config.dst, backend)
        self.aggregator = SignatureAggregator(config.key_mode, mapper, GroupOps(mapper.backend))
        public_keys = list(config.public_keys)
        if config.scheme is Scheme.THRESHOLD:
            self.threshold_scheme: ThresholdScheme | None = ThresholdScheme(
                self.aggregator, public_keys, list(config.member_ids)
            )
            self._aggregated_pk = self.threshold_scheme.aggregated_pk
        else:
            self.threshold_scheme = None
            try:
                self._aggregated_pk = self.aggregator.aggregate_pk(public_keys)
            except CurveError as e:
                raise InvalidPublicKey(f"invalid member public key: {e}") from e

        self._nonce = 0
        self._operations: dict[bytes, Operation] = {}
        self._lock = threading.Lock()
        logger.info(
            "%s wallet ready: %d members, threshold %d, public keys on %s",
            config.scheme.value,
            len(public_keys),
            config.threshold,
            config.key_mode.value,
        )

    # read accessors

    @property
    def key_mode(self) -> KeyMode:
        return self.config.key_mode

    @property
    def scheme(self) -> Scheme:
        return self.config.scheme

    @property
    def threshold(self) -> int:
        return self.config.threshold

    @property
    def aggregated_public_key(self) -> bytes:
        return self._aggregated_pk

    @property
    def nonce(self) -> int:
        return self._nonce

    def operation(self, operation_hash: bytes) -> Operation | None:
        record = self._operations.get(bytes(operation_hash))
        return dataclasses.replace(record) if record is not None else None

    def status(self, operation_hash: bytes) -> OperationStatus:
        record = self._operations.get(bytes(operation_hash))
        return record.status if record is not None else OperationStatus.NONE

    def operations(self) -> dict[bytes, Operation]:
        return {h: dataclasses.replace(op) for h, op in self._operations.items()}

    # guards

    @contextmanager
    def _guard(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise ReentrantCall("ledger entry point re-entered while another call is running")
        try:
            yield
        finally:
            self._lock.release()

    def _authorize(self, role: str, sender: bytes | None) -> None:
        if self.roles is not None:
            self.roles.check_role(role, sender)

    def _now(self) -> int:
        return int(self.clock())

    def _check_signature(self, operation_hash: bytes, signature: bytes, signers: list[bytes]) -> bool:
        """
        Decide whether a signature approves an operation.

        Multisig wallets check the aggregate signature against the sum of
        all member keys and ignore `signers`. Threshold wallets need at
        least `threshold` distinct members in `signers`.

        Raises:
            UnrecognizedSigner: If a signer is not a member (threshold mode).
            DuplicateSigner: If a signer is listed twice (threshold mode).
        """
        if self.threshold_scheme is None:
            return self.aggregator.verify(signature, self._aggregated_pk, operation_hash)
        records = self.threshold_scheme.resolve_signers(signers)
        if len(records) < self.config.threshold:
            logger.info(
                "%d signers for %s, threshold is %d",
                len(records),
                operation_hash.hex(),
                self.config.threshold,
            )
            return False
        return self.threshold_scheme.verify(signature, signers, operation_hash)

    def _validate_submission(
        self, operation: Operation, nonce: int, now: int, seen: list[Hash32]
    ) -> Hash32:
        target = bytes(operation.target)
        if len(target) != ADDRESS_SIZE:
            raise MalformedOperation(f"target must be {ADDRESS_SIZE} bytes, got {len(target)}")
        if target == ZERO_ADDRESS:
            raise ZeroAddress("target is the zero address")
        if operation.value < 0:
            raise MalformedOperation("value must not be negative")

        operation_hash = operation.hash()
        if operation_hash in self._operations:
            raise OperationExists(f"operation {operation_hash.hex()} already exists")
        if operation_hash in seen:
            raise OperationExists(f"operation {operation_hash.hex()} repeated in batch")

        if operation.expiration_time <= operation.effective_time:
            raise InvalidTimeWindow("expiration time must be after effective time")
        if operation.expiration_time <= now:
            raise OperationExpired("expiration time is in the past")
        if operation.gas_limit < self.config.min_gas_limit:
            raise GasLimitTooLow(
                f"gas limit {operation.gas_limit} is below {self.config.min_gas_limit}"
            )
        if operation.nonce != nonce:
            raise NonceMismatch(f"expected nonce {nonce}, got {operation.nonce}")
        code = bytes(operation.hash_check_code)
        if len(code) != HASH_CHECK_CODE_SIZE or not any(code):
            raise HashCheckCodeMismatch("hash check code must be 8 non-zero bytes")
        if code != hash_check_code(operation_hash):
            raise HashCheckCodeMismatch(
                f"hash check code {code.hex()} does not match {operation_hash.hex()}"
            )
        if len(operation.payload) > self.config.max_payload_length:
            raise PayloadTooLarge(
                f"payload is {len(operation.payload)} bytes, "
                f"limit is {self.config.max_payload_length}"
            )
        return operation_hash

    # entry points

    def submit(self, operations: list[Operation], sender: bytes | None = None) -> list[Hash32]:
        """
        Record a batch of operations.

        Every operation is validated before any is recorded. Nonces must
        continue the ledger's sequence in batch order. An operation that
        carries a signature which already approves it is recorded as
        APPROVED, every other one as PENDING.

        Args:
            operations: Operations to record.
            sender: Caller account, checked against PROPOSER_ROLE when the
                ledger has a role registry.

        Returns:
            list[Hash32]: The operation hashes, in batch order.

        Raises:
            MissingRole: If `sender` may not submit.
            OperationExists: If an operation's content was seen before.
            LedgerError: If an operation fails validation.
            UnrecognizedSigner: If an inline signer set names a non-member.
        """
        with self._guard():
            self._authorize(PROPOSER_ROLE, sender)
            now = self._now()

            hashes: list[Hash32] = []
            for position, operation in enumerate(operations):
                operation_hash = self._validate_submission(
                    operation, self._nonce + position, now, hashes
                )
                hashes.append(operation_hash)

            approvals = [
                bool(op.signature) and self._check_signature(h, op.signature, list(op.signer_set))
                for op, h in zip(operations, hashes)
            ]

            for operation, operation_hash, approved in zip(operations, hashes, approvals):
                status = OperationStatus.APPROVED if approved else OperationStatus.PENDING
                self._operations[operation_hash] = dataclasses.replace(
                    operation,
                    hash_check_code=bytes(operation.hash_check_code),
                    signature=bytes(operation.signature),
                    signer_set=tuple(bytes(pk) for pk in operation.signer_set),
                    status=status,
                    failure=None,
                )
                self._nonce += 1
                logger.info(
                    "submitted operation %s nonce=%d status=%s",
                    operation_hash.hex(),
                    operation.nonce,
                    status.value,
                )
            return hashes

    def verify(
        self,
        hashes: list[bytes],
        signatures: list[bytes],
        signer_sets: list[list[bytes]],
        sender: bytes | None = None,
    ) -> list[bool]:
        """
        Verify signatures for pending operations.

        Each pending operation gets exactly one verification attempt and
        moves to APPROVED or REJECTED. An operation that is not PENDING
        yields False and is left untouched.

        Args:
            hashes: Operation hashes.
            signatures: One aggregate signature per hash.
            signer_sets: One list of signer public keys per hash; ignored
                by multisig wallets.
            sender: Caller account, checked against VERIFIER_ROLE when the
                ledger has a role registry.

        Returns:
            list[bool]: One result per hash.

        Raises:
            MissingRole: If `sender` may not verify.
            LengthMismatch: If the three lists differ in length.
            UnrecognizedSigner: If any signer set names a non-member.
            DuplicateSigner: If any signer set repeats a member.
        """
        with self._guard():
            self._authorize(VERIFIER_ROLE, sender)
            if not len(hashes) == len(signatures) == len(signer_sets):
                raise LengthMismatch(
                    f"got {len(hashes)} hashes, {len(signatures)} signatures "
                    f"and {len(signer_sets)} signer sets"
                )

            results = []
            outcomes: dict[bytes, tuple[bool, bytes, tuple[bytes, ...]]] = {}
            for operation_hash, signature, signers in zip(hashes, signatures, signer_sets):
                operation_hash = bytes(operation_hash)
                status = self.status(operation_hash)
                if status is not OperationStatus.PENDING or operation_hash in outcomes:
                    logger.warning(
                        "status mismatch for %s: %s, expected %s",
                        operation_hash.hex(),
                        status.value,
                        OperationStatus.PENDING.value,
                    )
                    results.append(False)
                    continue
                signers = tuple(bytes(pk) for pk in signers)
                approved = self._check_signature(operation_hash, bytes(signature), list(signers))
                outcomes[operation_hash] = (approved, bytes(signature), signers)
                results.append(approved)

            for operation_hash, (approved, signature, signers) in outcomes.items():
                record = self._operations[operation_hash]
                record.signature = signature
                record.signer_set = signers
                if approved:
                    record.status = OperationStatus.APPROVED
                    logger.info("approved operation %s", operation_hash.hex())
                else:
                    record.status = OperationStatus.REJECTED
                    logger.info("rejected operation %s", operation_hash.hex())
            return results

    def execute(self, hashes: list[bytes]) -> None:
        """
        Execute approved operations in order.

        The whole batch must be APPROVED and effective before anything
        runs. Each operation is marked EXECUTING before its target is
        called, then EXECUTED or FAILED; a failing target does not stop
        the batch. Operations past their expiration time are marked
        EXPIRED without calling the target.

        Args:
            hashes: Operation hashes to execute.

        Raises:
            ExecuteUnapprovedOperation: If an operation is not APPROVED.
            ExecuteUneffectiveOperation: If an operation is not yet effective.
            ExecuteExpiredOperation: After the batch, if any operation expired.
        """
        with self._guard():
            now = self._now()

            batch: list[tuple[bytes, Operation]] = []
            for operation_hash in hashes:
                operation_hash = bytes(operation_hash)
                record = self._operations.get(operation_hash)
                if (
                    record is None
                    or record.status is not OperationStatus.APPROVED
                    or any(operation_hash == h for h, _ in batch)
                ):
                    status = record.status.value if record is not None else OperationStatus.NONE.value
                    raise ExecuteUnapprovedOperation(
                        f"operation {operation_hash.hex()} is {status}, not APPROVED"
                    )
                if now < record.effective_time:
                    raise ExecuteUneffectiveOperation(
                        f"operation {operation_hash.hex()} is effective from {record.effective_time}"
                    )
                batch.append((operation_hash, record))

            expired = []
            for operation_hash, record in batch:
                if now >= record.expiration_time:
                    record.status = OperationStatus.EXPIRED
                    expired.append(operation_hash)
                    logger.warning("operation %s expired", operation_hash.hex())
                    continue

                record.status = OperationStatus.EXECUTING
                try:
                    self.router.call(record.target, record.value, record.gas_limit, record.payload)
                except CallFailed as e:
                    record.status = OperationStatus.FAILED
                    record.failure = str(e)
                    logger.warning("operation %s failed: %s", operation_hash.hex(), e)
                else:
                    record.status = OperationStatus.EXECUTED
                    logger.info("executed operation %s", operation_hash.hex())

            if expired:
                raise ExecuteExpiredOperation(expired)

    # audit

    def to_dict(self) -> dict:
        return {
            "nonce": self._nonce,
            "operations": {h.hex(): op.to_dict() for h, op in self._operations.items()},
        }

    def to_file(self, path: str | Path) -> None:
        save_json(path, self.to_dict())

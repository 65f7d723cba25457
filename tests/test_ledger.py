# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
import dataclasses

import pytest

from bls_wallet.access import RoleRegistry
from bls_wallet.bls12381 import CurveMapper
from bls_wallet.calls import CallRouter
from bls_wallet.commands import sign_operation
from bls_wallet.config import Scheme, WalletConfig
from bls_wallet.constants import MIN_GAS_LIMIT, PROPOSER_ROLE, VERIFIER_ROLE
from bls_wallet.exceptions import (
    ExecuteExpiredOperation,
    ExecuteUnapprovedOperation,
    ExecuteUneffectiveOperation,
    GasLimitTooLow,
    HashCheckCodeMismatch,
    InvalidTimeWindow,
    LengthMismatch,
    MalformedOperation,
    MissingRole,
    NonceMismatch,
    OperationExists,
    OperationExpired,
    PayloadTooLarge,
    ReentrantCall,
    UnrecognizedSigner,
    ZeroAddress,
)
from bls_wallet.files import load_json
from bls_wallet.keys import KeyMode
from bls_wallet.ledger import OperationLedger
from bls_wallet.operation import Operation, OperationStatus
from bls_wallet.signatures import SignatureAggregator
from bls_wallet.threshold import setup_group

DST = b"BLS_WALLET_TEST_DST"
NOW = 1_700_000_000
TARGET = bytes.fromhex("00112233445566778899aabbccddeeff00112233")
REVERTING = bytes.fromhex("deadbeefdeadbeefdeadbeefdeadbeefdeadbeef")
UNKNOWN = bytes.fromhex("0101010101010101010101010101010101010101")
ALICE = bytes.fromhex("a11ce00000000000000000000000000000000000")

MULTISIG_KEYS = [1234567890, 987654321]
THRESHOLD_KEYS = [1234567890, 987654321, 192837465, 564738291, 111222333]


class Clock:
    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now


def make_operation(nonce: int = 0, target: bytes = TARGET, **overrides) -> Operation:
    fields = dict(
        target=target,
        value=1,
        effective_time=NOW + 1,
        expiration_time=NOW + 100,
        gas_limit=MIN_GAS_LIMIT,
        nonce=nonce,
        payload=b"call",
    )
    fields.update(overrides)
    return Operation(**fields).with_check_code()


@pytest.fixture(scope="module")
def multisig_config() -> WalletConfig:
    aggregator = SignatureAggregator(KeyMode.G1, CurveMapper(DST))
    return WalletConfig(
        key_mode=KeyMode.G1,
        scheme=Scheme.MULTISIG,
        public_keys=tuple(aggregator.public_key(sk) for sk in MULTISIG_KEYS),
        dst=DST,
    )


@pytest.fixture(scope="module")
def threshold_config() -> WalletConfig:
    aggregator = SignatureAggregator(KeyMode.G1, CurveMapper(DST))
    public_keys, member_ids = setup_group(aggregator, THRESHOLD_KEYS)
    return WalletConfig(
        key_mode=KeyMode.G1,
        scheme=Scheme.THRESHOLD,
        public_keys=tuple(public_keys),
        member_ids=tuple(member_ids),
        threshold=3,
        dst=DST,
    )


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
def router(calls) -> CallRouter:
    router = CallRouter()
    router.register(TARGET, lambda value, gas_limit, payload: calls.append((value, gas_limit, payload)))

    def revert(value, gas_limit, payload):
        raise RuntimeError("reverted")

    router.register(REVERTING, revert)
    return router


@pytest.fixture
def ledger(multisig_config, router, clock) -> OperationLedger:
    return OperationLedger(multisig_config, router, clock)


def multisig_signed(config: WalletConfig, operation: Operation) -> Operation:
    signers = {i: sk for i, sk in enumerate(MULTISIG_KEYS)}
    signature, _ = sign_operation(config, signers, operation.hash())
    return dataclasses.replace(operation, signature=signature)


# accessors


def test_read_accessors(ledger, multisig_config):
    aggregator = SignatureAggregator(KeyMode.G1, CurveMapper(DST))
    assert ledger.key_mode is KeyMode.G1
    assert ledger.scheme is Scheme.MULTISIG
    assert ledger.threshold == 2
    assert ledger.nonce == 0
    assert ledger.aggregated_public_key == aggregator.aggregate_pk(list(multisig_config.public_keys))


def test_unknown_operation(ledger):
    assert ledger.operation(bytes(32)) is None
    assert ledger.status(bytes(32)) is OperationStatus.NONE


# submit


def test_submit_records_pending(ledger):
    op = make_operation()
    (h,) = ledger.submit([op])
    assert h == op.hash()
    assert ledger.status(h) is OperationStatus.PENDING
    assert ledger.nonce == 1


def test_submit_batch_uses_sequential_nonces(ledger):
    hashes = ledger.submit([make_operation(0), make_operation(1), make_operation(2)])
    assert len(hashes) == 3
    assert ledger.nonce == 3


def test_submit_nonce_mismatch(ledger):
    with pytest.raises(NonceMismatch):
        ledger.submit([make_operation(1)])
    ledger.submit([make_operation(0)])
    with pytest.raises(NonceMismatch):
        ledger.submit([make_operation(0, value=2)])


def test_resubmit_identical_content(ledger):
    op = make_operation()
    ledger.submit([op])
    with pytest.raises(OperationExists):
        ledger.submit([op])
    assert ledger.nonce == 1


def test_submit_repeated_in_batch(ledger):
    op = make_operation()
    with pytest.raises(OperationExists, match="repeated in batch"):
        ledger.submit([op, op])
    assert ledger.nonce == 0
    assert ledger.status(op.hash()) is OperationStatus.NONE


def test_submit_is_atomic(ledger):
    good = make_operation(0)
    bad = make_operation(1, gas_limit=MIN_GAS_LIMIT - 1)
    with pytest.raises(GasLimitTooLow):
        ledger.submit([good, bad])
    assert ledger.nonce == 0
    assert ledger.status(good.hash()) is OperationStatus.NONE


@pytest.mark.parametrize(
    "overrides, error",
    [
        (dict(target=bytes(20)), ZeroAddress),
        (dict(target=b"\x01" * 19), MalformedOperation),
        (dict(value=-1), MalformedOperation),
        (dict(expiration_time=NOW + 1), InvalidTimeWindow),
        (dict(effective_time=NOW - 100, expiration_time=NOW), OperationExpired),
        (dict(gas_limit=0), GasLimitTooLow),
        (dict(payload=b"\x00" * 24577), PayloadTooLarge),
    ],
)
def test_submit_validation(ledger, overrides, error):
    with pytest.raises(error):
        ledger.submit([make_operation(**overrides)])
    assert ledger.nonce == 0


def test_submit_zero_hash_check_code(ledger):
    op = dataclasses.replace(make_operation(), hash_check_code=bytes(8))
    with pytest.raises(HashCheckCodeMismatch, match="non-zero"):
        ledger.submit([op])


def test_submit_wrong_hash_check_code(ledger):
    op = dataclasses.replace(make_operation(), hash_check_code=b"\x01" * 8)
    with pytest.raises(HashCheckCodeMismatch, match="does not match"):
        ledger.submit([op])


def test_submit_with_valid_inline_signature_is_approved(ledger, multisig_config):
    op = multisig_signed(multisig_config, make_operation())
    (h,) = ledger.submit([op])
    assert ledger.status(h) is OperationStatus.APPROVED
    assert ledger.nonce == 1


def test_submit_with_invalid_inline_signature_is_pending(ledger, multisig_config):
    op = make_operation()
    other = multisig_signed(multisig_config, make_operation(value=99))
    (h,) = ledger.submit([dataclasses.replace(op, signature=other.signature)])
    assert ledger.status(h) is OperationStatus.PENDING


def test_operation_returns_a_copy(ledger):
    (h,) = ledger.submit([make_operation()])
    record = ledger.operation(h)
    record.status = OperationStatus.EXECUTED
    assert ledger.status(h) is OperationStatus.PENDING


# verify


def test_verify_approves(ledger, multisig_config):
    (h,) = ledger.submit([make_operation()])
    signature, signers = sign_operation(multisig_config, dict(enumerate(MULTISIG_KEYS)), h)
    assert ledger.verify([h], [signature], [signers]) == [True]
    record = ledger.operation(h)
    assert record.status is OperationStatus.APPROVED
    assert record.signature == signature


def test_verify_rejects_partial_signature(ledger, multisig_config):
    (h,) = ledger.submit([make_operation()])
    signature, signers = sign_operation(multisig_config, {0: MULTISIG_KEYS[0]}, h)
    assert ledger.verify([h], [signature], [signers]) == [False]
    assert ledger.status(h) is OperationStatus.REJECTED


def test_verify_is_one_shot(ledger, multisig_config):
    (h,) = ledger.submit([make_operation()])
    signature, signers = sign_operation(multisig_config, {0: MULTISIG_KEYS[0]}, h)
    assert ledger.verify([h], [signature], [signers]) == [False]

    good, signers = sign_operation(multisig_config, dict(enumerate(MULTISIG_KEYS)), h)
    assert ledger.verify([h], [good], [signers]) == [False]
    assert ledger.status(h) is OperationStatus.REJECTED


def test_verify_unknown_hash(ledger, caplog):
    assert ledger.verify([bytes(32)], [bytes(256)], [[]]) == [False]
    assert "status mismatch" in caplog.text


def test_verify_malformed_signature(ledger):
    (h,) = ledger.submit([make_operation()])
    assert ledger.verify([h], [b"\x01" * 256], [[]]) == [False]
    assert ledger.status(h) is OperationStatus.REJECTED


def test_verify_length_mismatch(ledger):
    with pytest.raises(LengthMismatch):
        ledger.verify([bytes(32)], [], [[]])


# execute


def test_execute_before_effective_time(ledger, multisig_config):
    (h,) = ledger.submit([multisig_signed(multisig_config, make_operation())])
    with pytest.raises(ExecuteUneffectiveOperation):
        ledger.execute([h])
    assert ledger.status(h) is OperationStatus.APPROVED


def test_execute_unapproved(ledger, clock):
    (h,) = ledger.submit([make_operation()])
    clock.now = NOW + 10
    with pytest.raises(ExecuteUnapprovedOperation):
        ledger.execute([h])
    with pytest.raises(ExecuteUnapprovedOperation):
        ledger.execute([bytes(32)])


def test_execute_success(ledger, multisig_config, clock, calls):
    (h,) = ledger.submit([multisig_signed(multisig_config, make_operation())])
    clock.now = NOW + 1
    ledger.execute([h])
    assert ledger.status(h) is OperationStatus.EXECUTED
    assert calls == [(1, MIN_GAS_LIMIT, b"call")]

    with pytest.raises(ExecuteUnapprovedOperation):
        ledger.execute([h])
    assert len(calls) == 1


def test_execute_at_expiration(ledger, multisig_config, clock, calls):
    (h,) = ledger.submit([multisig_signed(multisig_config, make_operation())])
    clock.now = NOW + 100
    with pytest.raises(ExecuteExpiredOperation) as info:
        ledger.execute([h])
    assert info.value.hashes == [h]
    assert ledger.status(h) is OperationStatus.EXPIRED
    assert calls == []


def test_failed_target_does_not_stop_the_batch(ledger, multisig_config, clock, calls):
    ops = [
        multisig_signed(multisig_config, make_operation(0, target=REVERTING)),
        multisig_signed(multisig_config, make_operation(1, target=UNKNOWN)),
        multisig_signed(multisig_config, make_operation(2)),
    ]
    reverting, unknown, good = ledger.submit(ops)
    clock.now = NOW + 50
    ledger.execute([reverting, unknown, good])

    assert ledger.status(reverting) is OperationStatus.FAILED
    assert "reverted" in ledger.operation(reverting).failure
    assert ledger.status(unknown) is OperationStatus.FAILED
    assert ledger.status(good) is OperationStatus.EXECUTED
    assert calls == [(1, MIN_GAS_LIMIT, b"call")]


def test_execute_batch_checks_everything_first(ledger, multisig_config, clock, calls):
    approved = multisig_signed(multisig_config, make_operation(0))
    pending = make_operation(1)
    a, p = ledger.submit([approved, pending])
    clock.now = NOW + 50
    with pytest.raises(ExecuteUnapprovedOperation):
        ledger.execute([a, p])
    assert ledger.status(a) is OperationStatus.APPROVED
    assert calls == []


def test_reentrant_execute_is_rejected(multisig_config, clock):
    router = CallRouter()
    ledger = OperationLedger(multisig_config, router, clock)
    errors = []
    hashes = []

    def reenter(value, gas_limit, payload):
        try:
            ledger.execute(hashes)
        except ReentrantCall as e:
            errors.append(e)

    router.register(TARGET, reenter)
    hashes.extend(ledger.submit([multisig_signed(multisig_config, make_operation())]))
    clock.now = NOW + 1
    ledger.execute(hashes)

    assert len(errors) == 1
    assert ledger.status(hashes[0]) is OperationStatus.EXECUTED


# roles


def test_roles_gate_submit_and_verify(multisig_config, router, clock):
    roles = RoleRegistry()
    ledger = OperationLedger(multisig_config, router, clock, roles=roles)
    op = make_operation()
    with pytest.raises(MissingRole):
        ledger.submit([op], sender=ALICE)
    with pytest.raises(MissingRole):
        ledger.submit([op])

    roles.grant_role(PROPOSER_ROLE, ALICE)
    (h,) = ledger.submit([op], sender=ALICE)

    with pytest.raises(MissingRole):
        ledger.verify([h], [bytes(256)], [[]], sender=ALICE)
    roles.grant_role(VERIFIER_ROLE, ALICE)
    assert ledger.verify([h], [bytes(256)], [[]], sender=ALICE) == [False]


# audit


def test_to_file(ledger, tmp_path):
    hashes = ledger.submit([make_operation(0), make_operation(1)])
    path = tmp_path / "ledger.json"
    ledger.to_file(path)
    data = load_json(path)
    assert data["nonce"] == 2
    assert sorted(data["operations"]) == sorted(h.hex() for h in hashes)
    assert data["operations"][hashes[0].hex()]["status"] == "PENDING"


# threshold wallets


def test_threshold_end_to_end(threshold_config, router, clock, calls):
    ledger = OperationLedger(threshold_config, router, clock)
    op = make_operation(0, effective_time=NOW + 1, expiration_time=NOW + 100)
    (h,) = ledger.submit([op])
    assert ledger.status(h) is OperationStatus.PENDING

    signers = {i: THRESHOLD_KEYS[i] for i in (0, 2, 4)}
    signature, public_keys = sign_operation(threshold_config, signers, h)
    assert ledger.verify([h], [signature], [public_keys]) == [True]
    assert ledger.status(h) is OperationStatus.APPROVED

    clock.now = NOW + 1
    ledger.execute([h])
    assert ledger.status(h) is OperationStatus.EXECUTED
    assert calls == [(1, MIN_GAS_LIMIT, b"call")]


def test_threshold_below_threshold_is_rejected(threshold_config, router, clock):
    ledger = OperationLedger(threshold_config, router, clock)
    (h,) = ledger.submit([make_operation()])
    signers = {i: THRESHOLD_KEYS[i] for i in (0, 1)}
    signature, public_keys = sign_operation(threshold_config, signers, h)
    assert ledger.verify([h], [signature], [public_keys]) == [False]
    assert ledger.status(h) is OperationStatus.REJECTED


def test_threshold_unrecognized_signer_aborts(threshold_config, router, clock):
    ledger = OperationLedger(threshold_config, router, clock)
    first, second = ledger.submit([make_operation(0), make_operation(1)])
    signers = {i: THRESHOLD_KEYS[i] for i in (0, 1, 2)}
    signature, public_keys = sign_operation(threshold_config, signers, first)
    outsider = ledger.aggregator.public_key(42)

    with pytest.raises(UnrecognizedSigner):
        ledger.verify(
            [first, second],
            [signature, signature],
            [public_keys, public_keys[:2] + [outsider]],
        )
    assert ledger.status(first) is OperationStatus.PENDING
    assert ledger.status(second) is OperationStatus.PENDING


def test_threshold_inline_signature(threshold_config, router, clock):
    ledger = OperationLedger(threshold_config, router, clock)
    op = make_operation()
    signers = {i: THRESHOLD_KEYS[i] for i in (1, 2, 3)}
    signature, public_keys = sign_operation(threshold_config, signers, op.hash())
    (h,) = ledger.submit([dataclasses.replace(op, signature=signature, signer_set=tuple(public_keys))])
    assert ledger.status(h) is OperationStatus.APPROVED
    assert ledger.operation(h).signer_set == tuple(public_keys)


# public keys on G2, signatures on G1


def g2_config(scheme: Scheme) -> WalletConfig:
    aggregator = SignatureAggregator(KeyMode.G2, CurveMapper(DST))
    if scheme is Scheme.MULTISIG:
        public_keys = [aggregator.public_key(sk) for sk in MULTISIG_KEYS]
        return WalletConfig(
            key_mode=KeyMode.G2, scheme=scheme, public_keys=tuple(public_keys), dst=DST
        )
    public_keys, member_ids = setup_group(aggregator, THRESHOLD_KEYS[:3])
    return WalletConfig(
        key_mode=KeyMode.G2,
        scheme=scheme,
        public_keys=tuple(public_keys),
        member_ids=tuple(member_ids),
        threshold=2,
        dst=DST,
    )


@pytest.mark.parametrize("scheme", [Scheme.MULTISIG, Scheme.THRESHOLD])
def test_g2_wallet_end_to_end(scheme, router, clock, calls):
    config = g2_config(scheme)
    ledger = OperationLedger(config, router, clock)
    assert ledger.key_mode is KeyMode.G2
    assert len(ledger.aggregated_public_key) == 256

    first, second = ledger.submit([make_operation(0), make_operation(1)])
    if scheme is Scheme.MULTISIG:
        signers = dict(enumerate(MULTISIG_KEYS))
    else:
        signers = {0: THRESHOLD_KEYS[0], 2: THRESHOLD_KEYS[2]}
    signature, public_keys = sign_operation(config, signers, first)
    assert len(signature) == 128

    results = ledger.verify([first, second], [signature, signature], [public_keys, public_keys])
    assert results == [True, False]
    assert ledger.status(first) is OperationStatus.APPROVED
    assert ledger.status(second) is OperationStatus.REJECTED

    clock.now = NOW + 1
    ledger.execute([first])
    assert ledger.status(first) is OperationStatus.EXECUTED
    assert calls == [(1, MIN_GAS_LIMIT, b"call")]


if __name__ == "__main__":
    pytest.main()

# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
import pytest

from bls_wallet.bls12381 import CurveMapper, rng
from bls_wallet.keys import KeyMode
from bls_wallet.signatures import SignatureAggregator

DST = b"BLS_WALLET_TEST_DST"


@pytest.fixture(params=[KeyMode.G1, KeyMode.G2], ids=["pk-on-g1", "pk-on-g2"])
def aggregator(request) -> SignatureAggregator:
    return SignatureAggregator(request.param, CurveMapper(DST))


def flip_bit(data: bytes, index: int) -> bytes:
    flipped = bytearray(data)
    flipped[index] ^= 1
    return bytes(flipped)


def test_sizes(aggregator):
    sk = rng()
    pk = aggregator.public_key(sk)
    sig = aggregator.sign(sk, b"hello")
    assert len(pk) == aggregator.mode.public_key_group.size
    assert len(sig) == aggregator.mode.signature_group.size


def test_sign_then_verify(aggregator):
    sk = rng()
    sig = aggregator.sign(sk, b"hello")
    assert aggregator.verify(sig, aggregator.public_key(sk), b"hello")


def test_flipped_message_bit_fails(aggregator):
    sk = rng()
    sig = aggregator.sign(sk, b"hello")
    assert not aggregator.verify(sig, aggregator.public_key(sk), flip_bit(b"hello", 0))


def test_flipped_signature_bit_fails(aggregator):
    sk = rng()
    sig = aggregator.sign(sk, b"hello")
    assert not aggregator.verify(flip_bit(sig, len(sig) - 1), aggregator.public_key(sk), b"hello")


def test_wrong_key_fails(aggregator):
    sig = aggregator.sign(1234567890, b"hello")
    assert not aggregator.verify(sig, aggregator.public_key(987654321), b"hello")


def test_aggregate_verifies_against_aggregate_pk(aggregator):
    sks = [1234567890, 987654321, 555555555]
    sigs = [aggregator.sign(sk, b"operation") for sk in sks]
    pks = [aggregator.public_key(sk) for sk in sks]
    assert aggregator.verify(aggregator.aggregate(sigs), aggregator.aggregate_pk(pks), b"operation")


def test_aggregate_is_order_independent(aggregator):
    sigs = [aggregator.sign(sk, b"operation") for sk in (11, 22, 33)]
    assert aggregator.aggregate(sigs) == aggregator.aggregate(list(reversed(sigs)))


def test_aggregate_of_one_is_identity_operation(aggregator):
    sig = aggregator.sign(42, b"operation")
    assert aggregator.aggregate([sig]) == sig
    pk = aggregator.public_key(42)
    assert aggregator.aggregate_pk([pk]) == pk


def test_malformed_lengths_fail(aggregator):
    sk = 42
    sig = aggregator.sign(sk, b"hello")
    pk = aggregator.public_key(sk)
    assert not aggregator.verify(sig[:-1], pk, b"hello")
    assert not aggregator.verify(sig, pk + b"\x00", b"hello")


def test_identity_key_never_verifies(aggregator):
    identity_sig = bytes(aggregator.mode.signature_group.size)
    identity_pk = bytes(aggregator.mode.public_key_group.size)
    assert not aggregator.verify(identity_sig, identity_pk, b"hello")


if __name__ == "__main__":
    pytest.main()

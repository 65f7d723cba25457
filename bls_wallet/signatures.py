# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
from eth_typing import BLSPubkey, BLSSignature

from bls_wallet.bls12381 import CurveMapper, GroupOps
from bls_wallet.exceptions import CurveError
from bls_wallet.keys import KeyMode


class SignatureAggregator:
    """
    BLS signing, aggregation and two-party verification for one key mode.

    With `KeyMode.G1` public keys are G1 points and signatures G2 points;
    with `KeyMode.G2` it is the other way around. Messages are hashed to
    the signature curve with the mapper's domain separation tag.
    """

    def __init__(self, mode: KeyMode, mapper: CurveMapper, ops: GroupOps | None = None):
        self.mode = mode
        self.mapper = mapper
        self.ops = ops if ops is not None else GroupOps(mapper.backend)

    def hash_message(self, message: bytes) -> bytes:
        return self.mapper.hash_to_curve(message, self.mode.signature_group)

    def public_key(self, sk: int) -> BLSPubkey:
        return BLSPubkey(self.ops.scale(self.ops.generator(self.mode.public_key_group), sk))

    def sign(self, sk: int, message: bytes) -> BLSSignature:
        """
        Sign a message.

            sig = [sk] H(message)

        Args:
            sk (int): Secret scalar.
            message (bytes): Message to sign.

        Returns:
            BLSSignature: The encoded signature on the signature curve.
        """
        return BLSSignature(self.ops.scale(self.hash_message(message), sk))

    def aggregate(self, signatures: list[bytes]) -> BLSSignature:
        return BLSSignature(self.ops.sum(signatures))

    def aggregate_pk(self, public_keys: list[bytes]) -> BLSPubkey:
        return BLSPubkey(self.ops.sum(public_keys))

    def verification_pairs(
        self, pairs: list[tuple[bytes, bytes]]
    ) -> tuple[list[bytes], list[bytes]]:
        """
        Split (public-key-side, signature-side) pairs into G1 and G2 lists.

        Args:
            pairs: Each pair holds a point on the public key curve and a
                point on the signature curve.

        Returns:
            tuple[list[bytes], list[bytes]]: The G1 list and the G2 list.
        """
        pk_side = [p for p, _ in pairs]
        sig_side = [s for _, s in pairs]
        if self.mode is KeyMode.G1:
            return pk_side, sig_side
        return sig_side, pk_side

    def verify(self, signature: bytes, public_key: bytes, message: bytes) -> bool:
        """
        Verify a (possibly aggregate) signature against a public key.

        Checks e(-G, sig) * e(pk, H(m)) == 1 with G the generator of the
        public key curve, pairing arguments swapped for `KeyMode.G2`.
        Malformed encodings verify as False.

        Args:
            signature (bytes): Encoded signature.
            public_key (bytes): Encoded (aggregate) public key.
            message (bytes): Signed message.

        Returns:
            bool: True if the signature is valid.
        """
        if len(signature) != self.mode.signature_group.size:
            return False
        if len(public_key) != self.mode.public_key_group.size or not any(public_key):
            return False
        g1s, g2s = self.verification_pairs(
            [
                (self.ops.negated_generator(self.mode.public_key_group), signature),
                (public_key, self.hash_message(message)),
            ]
        )
        try:
            return self.ops.pairing_check(g1s, g2s)
        except CurveError:
            return False

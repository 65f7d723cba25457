# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
"""
Weighted m-of-n verification on top of BLS aggregation.

Group setup (done once, off-chain):

    w_i      = H(WEIGHT_TAG || pk_i || pk_1 || ... || pk_n) mod r
    h_i      = [w_i] H_curve(w_i)                  on the signature curve
    apk      = sum([w_i] pk_i)
    mid_i    = [sum(w_j * sk_j)] h_i               member id of signer i

Each signer j contributes `[w_j * sk_j] h_i` to every member id, so no
single party learns the aggregated secret. A signer i in S signs with

    s_i      = [sk_i] H(m) + mid_i

and the aggregate sigma = sum(s_i) verifies when

    e(-G, sigma) * e(sum(pk_S), H(m)) * e(apk, sum(h_S)) == 1

(arguments swapped when public keys live on G2). Only the signer set is
needed at verification time; the threshold itself is enforced by the
ledger.

The weighting construction is reproduced as designed; its resistance to
rogue-key or adaptive key-selection attacks has not been analysed.
"""

import logging
from dataclasses import dataclass

from bls_wallet.constants import MEMBER_DOMAIN_TAG, SCALAR_SIZE, WEIGHT_DOMAIN_TAG
from bls_wallet.exceptions import (
    CurveError,
    DuplicateSigner,
    InvalidPublicKey,
    InvalidSignature,
    LengthMismatch,
    UnrecognizedSigner,
)
from bls_wallet.hashing import generate, to_scalar
from bls_wallet.signatures import SignatureAggregator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemberRecord:
    index: int
    public_key: bytes
    weight: int
    helper_point: bytes
    member_id: bytes


def member_key(public_key: bytes) -> bytes:
    """Key a member record by the digest of its raw public key bytes."""
    return generate(MEMBER_DOMAIN_TAG + public_key)


def compute_weights(public_keys: list[bytes]) -> list[int]:
    """
    Derive one weight per member, bound to the whole membership set.

    Args:
        public_keys: Encoded member public keys, in group order.

    Returns:
        list[int]: `w_i = H(WEIGHT_TAG || pk_i || pk_1 || ... || pk_n) mod r`.
    """
    all_keys = b"".join(public_keys)
    return [to_scalar(generate(WEIGHT_DOMAIN_TAG + pk + all_keys)) for pk in public_keys]


def helper_point(aggregator: SignatureAggregator, weight: int) -> bytes:
    """`[w] H_curve(w)` on the signature curve, with w as 32 big-endian bytes."""
    hashed = aggregator.hash_message(weight.to_bytes(SCALAR_SIZE, "big"))
    return aggregator.ops.scale(hashed, weight)


def membership_share(
    aggregator: SignatureAggregator, sk: int, weight: int, helper: bytes
) -> bytes:
    """
    Signer j's contribution `[w_j * sk_j] h_i` to member i's id.

    Args:
        aggregator: Aggregator for the wallet key mode.
        sk: Secret key of the contributing signer j.
        weight: Weight of signer j.
        helper: Helper point of the receiving member i.

    Returns:
        bytes: The encoded share.
    """
    return aggregator.ops.scale(helper, weight * sk)


def setup_group(
    aggregator: SignatureAggregator, secret_keys: list[int]
) -> tuple[list[bytes], list[bytes]]:
    """
    Run the whole group setup for a set of secret keys.

    Args:
        aggregator: Aggregator for the wallet key mode.
        secret_keys: One secret scalar per member.

    Returns:
        tuple[list[bytes], list[bytes]]: Public keys and member ids, in order.
    """
    public_keys = [aggregator.public_key(sk) for sk in secret_keys]
    weights = compute_weights(public_keys)
    helpers = [helper_point(aggregator, w) for w in weights]
    member_ids = []
    for helper in helpers:
        shares = [
            membership_share(aggregator, sk, w, helper)
            for sk, w in zip(secret_keys, weights)
        ]
        member_ids.append(aggregator.ops.sum(shares))
    return public_keys, member_ids


def sign_share(
    aggregator: SignatureAggregator, sk: int, member_id: bytes, message: bytes
) -> bytes:
    """A member's signature share: `[sk_i] H(m) + mid_i`."""
    return aggregator.ops.sum([aggregator.sign(sk, message), member_id])


class ThresholdScheme:
    """Member records and the 3-pair verification for one threshold group."""

    def __init__(
        self,
        aggregator: SignatureAggregator,
        public_keys: list[bytes],
        member_ids: list[bytes],
    ):
        if len(public_keys) != len(member_ids):
            raise LengthMismatch(
                f"got {len(public_keys)} public keys and {len(member_ids)} member ids"
            )
        if not public_keys:
            raise InvalidPublicKey("a threshold group needs at least one member")

        self.aggregator = aggregator
        ops = aggregator.ops
        mode = aggregator.mode

        for pk in public_keys:
            try:
                ops.backend.decode(pk, mode.public_key_group)
            except CurveError as e:
                raise InvalidPublicKey(f"invalid member public key {pk.hex()}: {e}") from e
            if not any(pk):
                raise InvalidPublicKey("member public key is the identity")
        if len({member_key(pk) for pk in public_keys}) != len(public_keys):
            raise InvalidPublicKey("duplicate member public key")

        weights = compute_weights(public_keys)
        helpers = [helper_point(aggregator, w) for w in weights]
        self.aggregated_pk = ops.multi_scalar_mul(public_keys, weights)

        self._members: dict[bytes, MemberRecord] = {}
        for index, (pk, weight, helper, mid) in enumerate(
            zip(public_keys, weights, helpers, member_ids)
        ):
            if not self._member_id_is_bound(mid, helper):
                raise InvalidSignature(f"member id {index} does not match its helper point")
            self._members[member_key(pk)] = MemberRecord(
                index=index,
                public_key=pk,
                weight=weight,
                helper_point=helper,
                member_id=mid,
            )
        logger.info("threshold group set up with %d members", len(self._members))

    def _member_id_is_bound(self, member_id: bytes, helper: bytes) -> bool:
        # e(-G, mid_i) * e(apk, h_i) == 1
        aggregator = self.aggregator
        if len(member_id) != aggregator.mode.signature_group.size:
            return False
        g1s, g2s = aggregator.verification_pairs(
            [
                (aggregator.ops.negated_generator(aggregator.mode.public_key_group), member_id),
                (self.aggregated_pk, helper),
            ]
        )
        try:
            return aggregator.ops.pairing_check(g1s, g2s)
        except CurveError:
            return False

    def __len__(self) -> int:
        return len(self._members)

    def __contains__(self, public_key: bytes) -> bool:
        return member_key(public_key) in self._members

    def member(self, public_key: bytes) -> MemberRecord | None:
        return self._members.get(member_key(public_key))

    def members(self) -> list[MemberRecord]:
        return sorted(self._members.values(), key=lambda m: m.index)

    def resolve_signers(self, signers: list[bytes]) -> list[MemberRecord]:
        """
        Look up the member record of every signer.

        Raises:
            UnrecognizedSigner: If a public key belongs to no member.
            DuplicateSigner: If a public key appears twice.
        """
        seen = set()
        records = []
        for pk in signers:
            key = member_key(pk)
            if key in seen:
                raise DuplicateSigner(f"signer {pk.hex()} appears more than once")
            seen.add(key)
            record = self._members.get(key)
            if record is None:
                raise UnrecognizedSigner(f"signer {pk.hex()} is not a group member")
            records.append(record)
        return records

    def verify(self, signature: bytes, signers: list[bytes], message: bytes) -> bool:
        """
        Verify an aggregate signature from a claimed subset of members.

        Args:
            signature (bytes): Sum of the members' signature shares.
            signers (list[bytes]): Public keys of the members that signed.
            message (bytes): Signed message.

        Returns:
            bool: True if the pairing equation holds.

        Raises:
            UnrecognizedSigner: If a signer is not a group member.
            DuplicateSigner: If a signer is listed twice.
        """
        records = self.resolve_signers(signers)
        if not records:
            return False
        aggregator = self.aggregator
        if len(signature) != aggregator.mode.signature_group.size:
            return False

        ops = aggregator.ops
        signer_pk = ops.sum([r.public_key for r in records])
        signer_helpers = ops.sum([r.helper_point for r in records])
        g1s, g2s = aggregator.verification_pairs(
            [
                (ops.negated_generator(aggregator.mode.public_key_group), signature),
                (signer_pk, aggregator.hash_message(message)),
                (self.aggregated_pk, signer_helpers),
            ]
        )
        try:
            return ops.pairing_check(g1s, g2s)
        except CurveError:
            return False

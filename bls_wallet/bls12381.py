# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
import secrets

from bls_wallet.backend import CurveBackend, Group, PyEccBackend
from bls_wallet.constants import FIELD_ELEMENT_SIZE, R
from bls_wallet.exceptions import (
    EmptyPointsToSum,
    HashToFp2Failed,
    HashToFpFailed,
    InvalidPointEncoding,
    LengthMismatch,
    PairingFailed,
    SumPointsFailed,
)
from bls_wallet.hashing import hash_to_field, hash_to_field2


def rng() -> int:
    """
    Generates a random scalar using the secrets module.

    Returns:
        int: A random number below the curve order.
    """
    return secrets.randbelow(R - 1) + 1


class GroupOps:
    """
    Point arithmetic on encoded BLS12-381 points.

    Points go in and come out in their wire encoding (128 bytes for G1,
    256 bytes for G2); the group is inferred from the length. Every
    operand is decoded through the backend, which rejects anything not on
    the curve or outside the prime-order subgroup.
    """

    def __init__(self, backend: CurveBackend | None = None):
        self.backend = backend if backend is not None else PyEccBackend()

    def generator(self, group: Group) -> bytes:
        return self.backend.encode(self.backend.generator(group), group)

    def identity(self, group: Group) -> bytes:
        return self.backend.encode(self.backend.identity(group), group)

    def negated_generator(self, group: Group) -> bytes:
        """
        The negated generator, used in place of a division in pairing checks.

        Args:
            group (Group): The group of the generator.

        Returns:
            bytes: The encoded point -G.
        """
        return self.backend.encode(self.backend.negate(self.backend.generator(group)), group)

    def sum(self, points: list[bytes]) -> bytes:
        """
        Add a list of points of the same group.

        Args:
            points (list[bytes]): Encoded points, all G1 or all G2.

        Returns:
            bytes: The encoded sum.

        Raises:
            EmptyPointsToSum: If `points` is empty.
            SumPointsFailed: If any operand fails to decode or the groups differ.
        """
        if not points:
            raise EmptyPointsToSum("cannot sum an empty list of points")
        try:
            group = Group.from_encoding(points[0])
            total = self.backend.identity(group)
            for point in points:
                total = self.backend.add(total, self.backend.decode(point, group))
        except InvalidPointEncoding as e:
            raise SumPointsFailed(str(e)) from e
        return self.backend.encode(total, group)

    def scale(self, point: bytes, scalar: int) -> bytes:
        """
        Scales a point by a given scalar using scalar multiplication.

        Args:
            point (bytes): The encoded point to be scaled.
            scalar (int): The scalar value for multiplication.

        Returns:
            bytes: The resulting scaled point.
        """
        group = Group.from_encoding(point)
        decoded = self.backend.decode(point, group)
        return self.backend.encode(self.backend.multiply(decoded, scalar), group)

    def multi_scalar_mul(self, points: list[bytes], scalars: list[int]) -> bytes:
        """
        Compute sum(scalar_i * point_i).

        A zero scalar contributes the identity.

        Args:
            points (list[bytes]): Encoded points, all G1 or all G2.
            scalars (list[int]): One scalar per point, reduced mod the curve order.

        Returns:
            bytes: The encoded result.

        Raises:
            LengthMismatch: If the lists have different lengths.
            EmptyPointsToSum: If the lists are empty.
        """
        if len(points) != len(scalars):
            raise LengthMismatch(
                f"got {len(points)} points and {len(scalars)} scalars"
            )
        if not points:
            raise EmptyPointsToSum("cannot multiply an empty list of points")
        group = Group.from_encoding(points[0])
        total = self.backend.identity(group)
        for point, scalar in zip(points, scalars):
            decoded = self.backend.decode(point, group)
            total = self.backend.add(total, self.backend.multiply(decoded, scalar))
        return self.backend.encode(total, group)

    def pairing_check(self, g1_points: list[bytes], g2_points: list[bytes]) -> bool:
        """
        Check that the product of e(g1_i, g2_i) equals one in GT.

        Args:
            g1_points (list[bytes]): Encoded G1 points.
            g2_points (list[bytes]): Encoded G2 points, same length.

        Returns:
            bool: True iff the product of pairings is the GT identity.

        Raises:
            LengthMismatch: If the lists have different lengths.
            PairingFailed: If any operand does not decode.
        """
        if len(g1_points) != len(g2_points):
            raise LengthMismatch(
                f"got {len(g1_points)} G1 points and {len(g2_points)} G2 points"
            )
        try:
            ps = [self.backend.decode(p, Group.G1) for p in g1_points]
            qs = [self.backend.decode(q, Group.G2) for q in g2_points]
        except InvalidPointEncoding as e:
            raise PairingFailed(str(e)) from e
        return self.backend.pairing_check(ps, qs)


class CurveMapper:
    """Hash-to-curve for G1 and G2, bound to one domain separation tag."""

    def __init__(self, dst: bytes, backend: CurveBackend | None = None):
        self.dst = dst
        self.backend = backend if backend is not None else PyEccBackend()

    def _map(self, group: Group, element: tuple[bytes, ...]):
        return self.backend.map_to_curve(group, [int.from_bytes(c, "big") for c in element])

    def map_to_curve_g1(self, fp: bytes) -> bytes:
        return self.backend.encode(self._map(Group.G1, (fp,)), Group.G1)

    def map_to_curve_g2(self, fp2: tuple[bytes, bytes]) -> bytes:
        return self.backend.encode(self._map(Group.G2, fp2), Group.G2)

    def hash_to_curve_g1(self, message: bytes) -> bytes:
        """
        Hash a message to G1 as map(u0) + map(u1).

        Raises:
            HashToFpFailed: If the field hash does not give two 64-byte elements.
        """
        elements = hash_to_field(message, self.dst, 2)
        if len(elements) != 2 or any(len(e) != FIELD_ELEMENT_SIZE for e in elements):
            raise HashToFpFailed("hash_to_field did not return two field elements")
        q0 = self._map(Group.G1, (elements[0],))
        q1 = self._map(Group.G1, (elements[1],))
        return self.backend.encode(self.backend.add(q0, q1), Group.G1)

    def hash_to_curve_g2(self, message: bytes) -> bytes:
        """
        Hash a message to G2 as map(u0) + map(u1).

        Raises:
            HashToFp2Failed: If the field hash does not give two Fp2 elements.
        """
        elements = hash_to_field2(message, self.dst, 2)
        if len(elements) != 2 or any(
            len(e) != 2 or any(len(c) != FIELD_ELEMENT_SIZE for c in e) for e in elements
        ):
            raise HashToFp2Failed("hash_to_field2 did not return two Fp2 elements")
        q0 = self._map(Group.G2, elements[0])
        q1 = self._map(Group.G2, elements[1])
        return self.backend.encode(self.backend.add(q0, q1), Group.G2)

    def hash_to_curve(self, message: bytes, group: Group) -> bytes:
        if group is Group.G1:
            return self.hash_to_curve_g1(message)
        return self.hash_to_curve_g2(message)

# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
"""
Curve arithmetic backends.

Everything above this module talks to BLS12-381 through `CurveBackend`,
so a vetted or accelerated pairing library can be swapped in without
touching the signature or ledger code. `PyEccBackend` is the software
implementation on top of py_ecc.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Sequence

from py_ecc.bls.hash_to_curve import (
    clear_cofactor_G1,
    clear_cofactor_G2,
    map_to_curve_G1,
    map_to_curve_G2,
)
from py_ecc.fields import optimized_bls12_381_FQ as FQ
from py_ecc.fields import optimized_bls12_381_FQ2 as FQ2
from py_ecc.fields import optimized_bls12_381_FQ12 as FQ12
from py_ecc.optimized_bls12_381 import (
    G1,
    G2,
    Z1,
    Z2,
    add,
    b,
    b2,
    curve_order,
    eq,
    final_exponentiate,
    is_inf,
    is_on_curve,
    multiply,
    neg,
    normalize,
    pairing,
)

from bls_wallet.constants import (
    FIELD_ELEMENT_SIZE,
    FIELD_PADDING_SIZE,
    G1_POINT_SIZE,
    G2_POINT_SIZE,
    P,
)
from bls_wallet.exceptions import InvalidPointEncoding

Point = Any


class Group(Enum):
    G1 = 1
    G2 = 2

    @property
    def size(self) -> int:
        return G1_POINT_SIZE if self is Group.G1 else G2_POINT_SIZE

    @property
    def opposite(self) -> "Group":
        return Group.G2 if self is Group.G1 else Group.G1

    @classmethod
    def from_encoding(cls, data: bytes) -> "Group":
        """Infer the group of an encoded point from its length."""
        if len(data) == G1_POINT_SIZE:
            return cls.G1
        if len(data) == G2_POINT_SIZE:
            return cls.G2
        raise InvalidPointEncoding(
            f"point must be {G1_POINT_SIZE} or {G2_POINT_SIZE} bytes, got {len(data)}"
        )


class CurveBackend(ABC):
    """The curve arithmetic the signature engine needs, and nothing more."""

    @abstractmethod
    def generator(self, group: Group) -> Point: ...

    @abstractmethod
    def identity(self, group: Group) -> Point: ...

    @abstractmethod
    def add(self, left: Point, right: Point) -> Point: ...

    @abstractmethod
    def negate(self, point: Point) -> Point: ...

    @abstractmethod
    def multiply(self, point: Point, scalar: int) -> Point: ...

    @abstractmethod
    def is_identity(self, point: Point) -> bool: ...

    @abstractmethod
    def eq(self, left: Point, right: Point) -> bool: ...

    @abstractmethod
    def map_to_curve(self, group: Group, element: Sequence[int]) -> Point:
        """Map a field element to the group, cofactor cleared."""

    @abstractmethod
    def pairing_check(self, g1_points: Sequence[Point], g2_points: Sequence[Point]) -> bool:
        """Return True iff the product of e(g1_i, g2_i) is the GT identity."""

    @abstractmethod
    def encode(self, point: Point, group: Group) -> bytes: ...

    @abstractmethod
    def decode(self, data: bytes, group: Group) -> Point: ...


def _field_to_bytes(value: int) -> bytes:
    return int(value).to_bytes(FIELD_ELEMENT_SIZE, "big")


def _field_from_bytes(chunk: bytes) -> int:
    if any(chunk[:FIELD_PADDING_SIZE]):
        raise InvalidPointEncoding("field element padding must be zero")
    value = int.from_bytes(chunk, "big")
    if value >= P:
        raise InvalidPointEncoding("field element is not below the field modulus")
    return value


class PyEccBackend(CurveBackend):
    """Software BLS12-381 arithmetic using py_ecc's optimized curve."""

    def generator(self, group: Group) -> Point:
        return G1 if group is Group.G1 else G2

    def identity(self, group: Group) -> Point:
        return Z1 if group is Group.G1 else Z2

    def add(self, left: Point, right: Point) -> Point:
        return add(left, right)

    def negate(self, point: Point) -> Point:
        return neg(point)

    def multiply(self, point: Point, scalar: int) -> Point:
        return multiply(point, scalar % curve_order)

    def is_identity(self, point: Point) -> bool:
        return is_inf(point)

    def eq(self, left: Point, right: Point) -> bool:
        return eq(left, right)

    def map_to_curve(self, group: Group, element: Sequence[int]) -> Point:
        if group is Group.G1:
            (u,) = element
            return clear_cofactor_G1(map_to_curve_G1(FQ(u)))
        return clear_cofactor_G2(map_to_curve_G2(FQ2(list(element))))

    def pairing_check(self, g1_points: Sequence[Point], g2_points: Sequence[Point]) -> bool:
        # one final exponentiation over the product of miller loops
        product = FQ12.one()
        for p, q in zip(g1_points, g2_points):
            product = product * pairing(q, p, False)
        return final_exponentiate(product) == FQ12.one()

    def encode(self, point: Point, group: Group) -> bytes:
        if is_inf(point):
            return bytes(group.size)
        x, y = normalize(point)
        if group is Group.G1:
            return _field_to_bytes(x) + _field_to_bytes(y)
        return b"".join(_field_to_bytes(c) for c in (*x.coeffs, *y.coeffs))

    def decode(self, data: bytes, group: Group) -> Point:
        if len(data) != group.size:
            raise InvalidPointEncoding(
                f"{group.name} point must be {group.size} bytes, got {len(data)}"
            )
        if not any(data):
            return self.identity(group)

        size = FIELD_ELEMENT_SIZE
        coords = [_field_from_bytes(data[i : i + size]) for i in range(0, len(data), size)]
        if group is Group.G1:
            point = (FQ(coords[0]), FQ(coords[1]), FQ.one())
            on_curve = is_on_curve(point, b)
        else:
            point = (FQ2(coords[0:2]), FQ2(coords[2:4]), FQ2.one())
            on_curve = is_on_curve(point, b2)
        if not on_curve:
            raise InvalidPointEncoding(f"{group.name} point is not on the curve")
        if not is_inf(multiply(point, curve_order)):
            raise InvalidPointEncoding(f"{group.name} point is not in the prime-order subgroup")
        return point

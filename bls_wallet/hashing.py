# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only

import hashlib
from typing import Any, Callable

from bls_wallet.constants import (
    FIELD_ELEMENT_SIZE,
    MAX_DST_LENGTH,
    MAX_ELL,
    MAX_LEN_IN_BYTES,
    P,
    R,
)
from bls_wallet.exceptions import DSTTooLong, EllTooLarge, LengthTooLarge

HashFunction = Callable[..., Any]


def i2osp(value: int, length: int) -> bytes:
    """Integer-to-octet-string primitive from RFC 8017."""
    return value.to_bytes(length, "big")


def expand_message_xmd(
    message: bytes,
    dst: bytes,
    len_in_bytes: int,
    hash_function: HashFunction = hashlib.sha256,
) -> bytes:
    """
    Expand a message into `len_in_bytes` uniformly random bytes.

    This is `expand_message_xmd` from RFC 9380 section 5.3.1:

        DST'    = dst || I2OSP(len(dst), 1)
        b_0     = H(Z_pad || msg || I2OSP(len_in_bytes, 2) || 0x00 || DST')
        b_1     = H(b_0 || 0x01 || DST')
        b_i     = H((b_0 XOR b_(i-1)) || I2OSP(i, 1) || DST')
        output  = (b_1 || ... || b_ell)[:len_in_bytes]

    Args:
        message: The message to expand.
        dst: Domain separation tag, at most 255 bytes.
        len_in_bytes: Number of output bytes, at most 65535.
        hash_function: A hashlib constructor with a fixed output size.

    Returns:
        bytes: The expanded output.

    Raises:
        DSTTooLong: If `dst` is longer than 255 bytes.
        LengthTooLarge: If `len_in_bytes` exceeds 65535.
        EllTooLarge: If more than 255 hash blocks would be needed.
    """
    if len(dst) > MAX_DST_LENGTH:
        raise DSTTooLong(f"DST must be at most {MAX_DST_LENGTH} bytes, got {len(dst)}")
    if len_in_bytes > MAX_LEN_IN_BYTES:
        raise LengthTooLarge(
            f"len_in_bytes must be at most {MAX_LEN_IN_BYTES}, got {len_in_bytes}"
        )

    b_in_bytes = hash_function().digest_size
    r_in_bytes = hash_function().block_size
    ell = -(-len_in_bytes // b_in_bytes)
    if ell > MAX_ELL:
        raise EllTooLarge(f"ell must be at most {MAX_ELL}, got {ell}")

    dst_prime = dst + i2osp(len(dst), 1)
    z_pad = i2osp(0, r_in_bytes)
    l_i_b_str = i2osp(len_in_bytes, 2)

    b0 = hash_function(z_pad + message + l_i_b_str + i2osp(0, 1) + dst_prime).digest()
    b = [hash_function(b0 + i2osp(1, 1) + dst_prime).digest()]
    for i in range(2, ell + 1):
        mixed = bytes(x ^ y for x, y in zip(b0, b[-1]))
        b.append(hash_function(mixed + i2osp(i, 1) + dst_prime).digest())

    return b"".join(b)[:len_in_bytes]


def _reduce(chunk: bytes) -> bytes:
    # back to a 64-byte big-endian field element
    return i2osp(int.from_bytes(chunk, "big") % P, FIELD_ELEMENT_SIZE)


def hash_to_field(message: bytes, dst: bytes, count: int) -> list[bytes]:
    """
    Hash a message to `count` elements of the base field Fp.

    Each element is a 64-byte big-endian integer reduced modulo p.

    Args:
        message: The message to hash.
        dst: Domain separation tag.
        count: Number of field elements to produce.

    Returns:
        list[bytes]: `count` 64-byte field elements.
    """
    size = FIELD_ELEMENT_SIZE
    uniform = expand_message_xmd(message, dst, count * size)
    return [_reduce(uniform[i * size : (i + 1) * size]) for i in range(count)]


def hash_to_field2(message: bytes, dst: bytes, count: int) -> list[tuple[bytes, bytes]]:
    """
    Hash a message to `count` elements of the extension field Fp2.

    Each element is a pair `(c0, c1)` of 64-byte field elements standing
    for `c0 + c1 * u`.

    Args:
        message: The message to hash.
        dst: Domain separation tag.
        count: Number of Fp2 elements to produce.

    Returns:
        list[tuple[bytes, bytes]]: `count` coefficient pairs.
    """
    size = FIELD_ELEMENT_SIZE
    uniform = expand_message_xmd(message, dst, count * 2 * size)
    elements = []
    for i in range(count):
        offset = i * 2 * size
        c0 = _reduce(uniform[offset : offset + size])
        c1 = _reduce(uniform[offset + size : offset + 2 * size])
        elements.append((c0, c1))
    return elements


def generate(data: bytes, digest_size: int = 32) -> bytes:
    """
    Calculates the blake2b hash digest of the input bytes.

    Args:
        data (bytes): The bytes to be hashed.
        digest_size (int): Digest length in bytes.

    Returns:
        bytes: The blake2b digest.
    """
    return hashlib.blake2b(data, digest_size=digest_size).digest()


def to_scalar(digest: bytes) -> int:
    """
    Interpret a digest as a scalar reduced modulo the curve order.

        c = int(digest) mod curve_order

    Args:
        digest: Big-endian digest bytes.

    Returns:
        An integer scalar in the range [0, curve_order - 1].
    """
    return int.from_bytes(digest, "big") % R

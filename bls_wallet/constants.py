# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
from py_ecc.optimized_bls12_381 import curve_order, field_modulus

# domain tags
DEFAULT_DST = b"BLS_WALLET_BLS12381_XMD:SHA-256_SSWU_RO_"
WEIGHT_DOMAIN_TAG = "WEIGHT|BLS12381|Member|v1|".encode("utf-8")
MEMBER_DOMAIN_TAG = "MEMBER|BLS12381|Key|v1|".encode("utf-8")
OPERATION_DOMAIN_TAG = "OPERATION|Wallet|v1|".encode("utf-8")

# bls12-381
P = field_modulus
R = curve_order

# encodings
FIELD_ELEMENT_SIZE = 64
FIELD_PADDING_SIZE = 16
G1_POINT_SIZE = 2 * FIELD_ELEMENT_SIZE
G2_POINT_SIZE = 4 * FIELD_ELEMENT_SIZE
SCALAR_SIZE = 32
ADDRESS_SIZE = 20
HASH_CHECK_CODE_SIZE = 8
ZERO_ADDRESS = bytes(ADDRESS_SIZE)

# rfc 9380
MAX_DST_LENGTH = 255
MAX_ELL = 255
MAX_LEN_IN_BYTES = 65535

# ledger
MIN_GAS_LIMIT = 21000
MAX_PAYLOAD_LENGTH = 24576

# roles
ADMIN_ROLE = "ADMIN"
PROPOSER_ROLE = "PROPOSER"
VERIFIER_ROLE = "VERIFIER"

# logging
LOG_LEVEL_ENV = "BLS_WALLET_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"

# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
"""
Exceptions for the wallet.

Every error raised by the package derives from `WalletError` so callers
can catch the whole family at once.
"""


class WalletError(Exception):
    """Base exception for all wallet errors."""
    pass


class ConfigError(WalletError):
    """Raised when a wallet configuration is invalid."""
    pass


class CryptoError(WalletError):
    """Base exception for cryptographic failures."""
    pass


class HashToFieldError(CryptoError):
    """Raised when expand_message_xmd rejects its arguments."""
    pass


class DSTTooLong(HashToFieldError):
    pass


class LengthTooLarge(HashToFieldError):
    pass


class EllTooLarge(HashToFieldError):
    pass


class CurveError(CryptoError):
    """Raised when a curve operation is rejected."""
    pass


class InvalidPointEncoding(CurveError):
    """Raised when bytes do not decode to a valid subgroup point."""
    pass


class HashToFpFailed(CurveError):
    pass


class HashToFp2Failed(CurveError):
    pass


class EmptyPointsToSum(CurveError):
    pass


class SumPointsFailed(CurveError):
    pass


class LengthMismatch(CurveError):
    pass


class PairingFailed(CurveError):
    pass


class SignatureError(CryptoError):
    """Raised when keys, signatures or signer sets are rejected."""
    pass


class InvalidPublicKey(SignatureError):
    pass


class InvalidSignature(SignatureError):
    pass


class UnrecognizedSigner(SignatureError):
    pass


class DuplicateSigner(SignatureError):
    pass


class LedgerError(WalletError):
    """Base exception for operation ledger violations."""
    pass


class ZeroAddress(LedgerError):
    pass


class MalformedOperation(LedgerError):
    pass


class InvalidTimeWindow(LedgerError):
    pass


class OperationExpired(LedgerError):
    pass


class GasLimitTooLow(LedgerError):
    pass


class NonceMismatch(LedgerError):
    pass


class HashCheckCodeMismatch(LedgerError):
    pass


class PayloadTooLarge(LedgerError):
    pass


class OperationExists(LedgerError):
    pass


class ExecuteUnapprovedOperation(LedgerError):
    pass


class ExecuteUneffectiveOperation(LedgerError):
    pass


class ExecuteExpiredOperation(LedgerError):
    """Raised after a batch in which one or more operations expired."""

    def __init__(self, hashes: list[bytes]):
        self.hashes = hashes
        super().__init__(
            "expired operations: " + ", ".join(h.hex() for h in hashes)
        )


class ReentrantCall(LedgerError):
    pass


class AuthorizationError(WalletError):
    """Raised when a caller lacks the permission for an entry point."""
    pass


class MissingRole(AuthorizationError):
    pass


class CallFailed(WalletError):
    """Raised by the call router when a target call fails."""
    pass


class UnknownTarget(CallFailed):
    pass

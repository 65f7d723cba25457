# Copyright (C) 2025 Logical Mechanism LLC
# SPDX-License-Identifier: GPL-3.0-only
from pathlib import Path

from bls_wallet.bls12381 import CurveMapper
from bls_wallet.config import Scheme, WalletConfig, save_config
from bls_wallet.constants import DEFAULT_DST
from bls_wallet.files import save_json
from bls_wallet.keys import KeyMode, KeyPair
from bls_wallet.signatures import SignatureAggregator
from bls_wallet.threshold import setup_group, sign_share


def create_group(
    secret_keys: list[int],
    key_mode: KeyMode,
    threshold: int,
    path: str | Path = "../data/wallet-config.json",
    dst: bytes = DEFAULT_DST,
) -> WalletConfig:
    """
    Run threshold group setup and write the resulting wallet config.

    High-level steps:
    1. Derive every member's public key on the key mode's curve.
    2. Weight each member by the hash of its key and the full key set,
       and derive its helper point.
    3. Sum every member's share into each member id, so each id equals
       `[sum(w_j * sk_j)] h_i`.
    4. Write the config, which the ledger checks member by member with a
       pairing before accepting it.

    Side effects (writes files):
    - Wallet config via `save_config(...)`
    - One `public-key-<index>.json` per member via `KeyPair.to_file()`,
      next to the wallet config

    Args:
        secret_keys: One secret scalar per member, in member order.
        key_mode: Curve holding public keys.
        threshold: Number of members required to approve an operation.
        path: Destination of the wallet config JSON.
        dst: Domain separation tag for every hash-to-curve call.

    Returns:
        WalletConfig: The config that was written.

    Raises:
        ValueError: If a secret key is outside [1, curve_order - 1].
        ConfigError: If the threshold or DST is not valid for the group.

    Notes / assumptions:
        - In a real deployment each member computes and sends its own
          shares; this helper holds every secret key at once.
    """
    members = [KeyPair(key_mode, sk=sk) for sk in secret_keys]
    aggregator = SignatureAggregator(key_mode, CurveMapper(dst))
    public_keys, member_ids = setup_group(aggregator, [member.sk for member in members])
    config = WalletConfig(
        key_mode=key_mode,
        scheme=Scheme.THRESHOLD,
        public_keys=tuple(public_keys),
        member_ids=tuple(member_ids),
        threshold=threshold,
        dst=dst,
    )
    save_config(path, config)
    for index, member in enumerate(members):
        member.to_file(str(Path(path).parent / f"public-key-{index}.json"))
    return config


def generate_group(
    size: int,
    key_mode: KeyMode,
    threshold: int,
    path: str | Path = "../data/wallet-config.json",
    dst: bytes = DEFAULT_DST,
) -> tuple[WalletConfig, list[int]]:
    """
    Generate fresh member keys and set up a threshold group with them.

    Returns:
        tuple[WalletConfig, list[int]]: The written config and the member
        secret keys, in member order.
    """
    secret_keys = [KeyPair.generate(key_mode).sk for _ in range(size)]
    return create_group(secret_keys, key_mode, threshold, path, dst), secret_keys


def sign_operation(
    config: WalletConfig,
    signers: dict[int, int],
    operation_hash: bytes,
) -> tuple[bytes, list[bytes]]:
    """
    Produce the aggregate signature bundle for an operation.

    For a threshold wallet every signer contributes
    `[sk_i] H(hash) + mid_i`; for a multisig wallet a plain BLS signature.
    The shares are summed into one signature.

    Args:
        config: The wallet configuration.
        signers: Member index to secret key, for every member that signs.
        operation_hash: The operation hash to sign.

    Returns:
        A tuple `(signature, signer_public_keys)` ready for `verify`.
    """
    aggregator = SignatureAggregator(config.key_mode, CurveMapper(config.dst))
    shares = []
    public_keys = []
    for index, sk in sorted(signers.items()):
        if config.scheme is Scheme.THRESHOLD:
            shares.append(sign_share(aggregator, sk, config.member_ids[index], operation_hash))
        else:
            shares.append(aggregator.sign(sk, operation_hash))
        public_keys.append(config.public_keys[index])
    return aggregator.aggregate(shares), public_keys


def signature_to_file(
    operation_hash: bytes,
    signature: bytes,
    signers: list[bytes],
    path: str | Path = "../data/signature.json",
) -> None:
    """
    Serialize a signature bundle to a JSON file.

    The output schema is:
        {
          "hash": operation hash,
          "signature": aggregate signature,
          "signers": [signer public keys]
        }

    All values are lowercase hex.
    """
    data = {
        "hash": operation_hash.hex(),
        "signature": signature.hex(),
        "signers": [pk.hex() for pk in signers],
    }
    save_json(path, data)

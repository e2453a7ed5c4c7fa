# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Hushnet Contributors

"""Ed25519 signature checks and the exact message framing that is signed.

Registration signs ``canonicalize(payload) + nonce``; heartbeats sign
``host + nonce``. Both are raw UTF-8 concatenations with no separator.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from ..core.canon import canonicalize
from ..core.exceptions import MalformedInput

PUBLIC_KEY_LENGTH = 32
SIGNATURE_LENGTH = 64


# =============================================================================
# MESSAGE FRAMING
# =============================================================================


def registration_message(payload: Any, nonce: str) -> bytes:
    """Bytes a node signs to register: canonical payload then nonce."""
    return canonicalize(payload) + nonce.encode("utf-8")


def heartbeat_message(host: str, nonce: str) -> bytes:
    """Bytes a node signs to heartbeat: host then nonce."""
    return host.encode("utf-8") + nonce.encode("utf-8")


# =============================================================================
# DECODING
# =============================================================================


def _b64decode(value: Any, field: str) -> bytes:
    if not isinstance(value, str) or not value:
        raise MalformedInput(f"{field} is required", field=field)
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedInput(f"{field} is not valid base64", field=field) from e


def decode_public_key(pubkey_b64: Any) -> bytes:
    """Decode a standard-base64 Ed25519 public key (exactly 32 bytes)."""
    raw = _b64decode(pubkey_b64, "pubkey_b64")
    if len(raw) != PUBLIC_KEY_LENGTH:
        raise MalformedInput(
            f"pubkey_b64 must decode to {PUBLIC_KEY_LENGTH} bytes",
            field="pubkey_b64",
            value=len(raw),
        )
    return raw


def decode_signature(signature_b64: Any) -> bytes:
    """Decode a standard-base64 Ed25519 signature (exactly 64 bytes)."""
    raw = _b64decode(signature_b64, "signature_b64")
    if len(raw) != SIGNATURE_LENGTH:
        raise MalformedInput(
            f"signature_b64 must decode to {SIGNATURE_LENGTH} bytes",
            field="signature_b64",
            value=len(raw),
        )
    return raw


def normalize_pubkey_b64(pubkey_b64: Any) -> str:
    """Canonical base64 text for a key, so equal keys compare equal as strings."""
    return base64.b64encode(decode_public_key(pubkey_b64)).decode("ascii")


# =============================================================================
# SIGNING AND VERIFICATION
# =============================================================================


def verify(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """Verify an Ed25519 signature.

    Never raises: a malformed key or signature is simply not valid.

    Args:
        public_key: Raw 32-byte public key
        message: The exact signed bytes
        signature: Raw 64-byte signature

    Returns:
        True if the signature is valid for message under public_key
    """
    if len(public_key) != PUBLIC_KEY_LENGTH or len(signature) != SIGNATURE_LENGTH:
        return False
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
        return True
    except (InvalidSignature, ValueError):
        return False


def sign_message(message: bytes, private_key: Ed25519PrivateKey) -> str:
    """Sign a message and return the base64-encoded signature."""
    return base64.b64encode(private_key.sign(message)).decode("ascii")


def sign_registration(private_key: Ed25519PrivateKey, payload: Any, nonce: str) -> str:
    """Client-side helper: signature_b64 for a registration request."""
    return sign_message(registration_message(payload, nonce), private_key)


def sign_heartbeat(private_key: Ed25519PrivateKey, host: str, nonce: str) -> str:
    """Client-side helper: signature_b64 for a heartbeat request."""
    return sign_message(heartbeat_message(host, nonce), private_key)


def public_key_b64(private_key: Ed25519PrivateKey) -> str:
    """Base64 of the raw public key belonging to private_key."""
    from cryptography.hazmat.primitives import serialization

    raw = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return base64.b64encode(raw).decode("ascii")

"""
Secure codec -- authenticated encryption of sync payloads.

Payloads are sealed with AES-256-GCM. The pre-shared secret is the
only key input; it is stretched to a 256-bit key with HKDF-SHA256
so secrets of any length work, and both peers arrive at the same
key without exchanging anything.

Sealed layout:
    [nonce: 12 bytes][ciphertext + 16-byte GCM tag]

A fresh random nonce is drawn for every message. There is no
sequence number: one exchange per connection needs no replay guard.
"""

from __future__ import annotations

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.hashes import SHA256
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..errors import AuthenticationFailure

logger = logging.getLogger("mtd.sync.crypt")

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32
KEY_INFO = b"mtd-sync-v1"


def derive_key(secret: bytes) -> bytes:
    """Stretch a shared secret into an AES-256 key with HKDF-SHA256.

    Args:
        secret: Pre-shared secret bytes, identical on both peers.

    Returns:
        32 bytes of key material.
    """
    hkdf = HKDF(
        algorithm=SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=KEY_INFO,
    )
    return hkdf.derive(secret)


class SecureCodec:
    """Seals and opens byte payloads with a key bound to one secret.

    Args:
        secret: Pre-shared secret. Must not be empty.

    Raises:
        ValueError: If the secret is empty.
    """

    def __init__(self, secret: bytes) -> None:
        if not secret:
            raise ValueError("Shared secret must not be empty")
        self._aead = AESGCM(derive_key(secret))

    def encrypt(self, plaintext: bytes) -> bytes:
        """Seal ``plaintext`` under a fresh nonce."""
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, plaintext, None)

    def decrypt(self, sealed: bytes) -> bytes:
        """Open a sealed payload.

        Raises:
            AuthenticationFailure: If the tag does not verify or the
                payload is too short to be sealed at all.
        """
        if len(sealed) < NONCE_SIZE + TAG_SIZE:
            raise AuthenticationFailure(
                f"Sealed payload too short: {len(sealed)} bytes"
            )
        nonce, ciphertext = sealed[:NONCE_SIZE], sealed[NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            logger.debug("Rejected payload of %d bytes", len(sealed))
            raise AuthenticationFailure(
                "Decrypting data failed: wrong secret or tampered payload"
            ) from exc


def encrypt(plaintext: bytes, secret: bytes) -> bytes:
    """Encrypt ``plaintext`` with ``secret``. See :class:`SecureCodec`."""
    return SecureCodec(secret).encrypt(plaintext)


def decrypt(sealed: bytes, secret: bytes) -> bytes:
    """Decrypt a payload produced by :func:`encrypt`.

    Raises:
        AuthenticationFailure: On any verification failure.
    """
    return SecureCodec(secret).decrypt(sealed)

"""AES-256-GCM helpers for encrypting the token file at rest.

GCM gives confidentiality and integrity in one pass: a wrong key, a
truncated file or a flipped bit all fail authentication on decrypt.

Keys are 32 bytes. They come from ``TOKEN_ENCRYPTION_KEY``, either as a
64-character hex string used verbatim or as an arbitrary passphrase that is
stretched with HKDF-SHA256. IVs are 12 random bytes per encryption and must
never repeat under one key.
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from google_mcp.utils.errors import ConfigurationError, TokenStoreError

KEY_SIZE_BITS = 256
KEY_SIZE_BYTES = KEY_SIZE_BITS // 8  # 32 bytes
IV_SIZE_BYTES = 12  # 96 bits, recommended for GCM
HEX_KEY_LENGTH = KEY_SIZE_BYTES * 2  # 64 hex characters

# Fixed HKDF parameters; changing either invalidates every stored token file.
_HKDF_SALT = b"google-mcp-token-store"
_HKDF_INFO = b"google-mcp/aes-256-gcm/v1"


def generate_key() -> bytes:
    """Generate a random 256-bit key.

    Returns:
        A 32-byte key suitable for AES-256-GCM.

    Example:
        >>> key = generate_key()
        >>> len(key)
        32
    """
    return AESGCM.generate_key(bit_length=KEY_SIZE_BITS)


def encrypt_data(
    plaintext: bytes, key: bytes, associated_data: bytes | None = None
) -> dict[str, bytes]:
    """Encrypt data using AES-256-GCM.

    Args:
        plaintext: The data to encrypt.
        key: A 32-byte key.
        associated_data: Optional bytes authenticated but not encrypted.
            The same value must be passed to ``decrypt_data``.

    Returns:
        A dictionary with the 12-byte ``"iv"`` and the ``"ciphertext"``
        (which includes the 16-byte authentication tag).

    Raises:
        ConfigurationError: If the key is not exactly 32 bytes.
        TokenStoreError: If encryption fails.
    """
    _validate_key(key)

    try:
        iv = os.urandom(IV_SIZE_BYTES)
        ciphertext = AESGCM(key).encrypt(iv, plaintext, associated_data)
        return {"iv": iv, "ciphertext": ciphertext}
    except Exception as e:
        raise TokenStoreError(
            "Failed to encrypt data",
            details={"error_type": type(e).__name__},
        ) from e


def decrypt_data(
    iv: bytes,
    ciphertext: bytes,
    key: bytes,
    associated_data: bytes | None = None,
) -> bytes:
    """Decrypt and authenticate AES-256-GCM data.

    Args:
        iv: The 12-byte IV used during encryption.
        ciphertext: The encrypted data with authentication tag.
        key: The 32-byte key used during encryption.
        associated_data: The associated data given to ``encrypt_data``.

    Returns:
        The decrypted plaintext.

    Raises:
        ConfigurationError: If the key has the wrong length.
        TokenStoreError: If the IV is malformed, the key is wrong, or the
            ciphertext was tampered with.
    """
    _validate_key(key)
    if len(iv) != IV_SIZE_BYTES:
        raise TokenStoreError(
            f"Invalid IV length: expected {IV_SIZE_BYTES} bytes, got {len(iv)}",
            details={"expected_length": IV_SIZE_BYTES, "actual_length": len(iv)},
        )

    try:
        return AESGCM(key).decrypt(iv, ciphertext, associated_data)
    except Exception as e:
        raise TokenStoreError(
            "Failed to decrypt data - invalid key or corrupted ciphertext",
            details={"error_type": type(e).__name__},
        ) from e


def key_from_hex(hex_key: str) -> bytes:
    """Convert a 64-character hexadecimal string to a key.

    Raises:
        ConfigurationError: If the string has the wrong length or is not hex.
    """
    hex_key = hex_key.strip()

    if len(hex_key) != HEX_KEY_LENGTH:
        raise ConfigurationError(
            f"Invalid hex key length: expected {HEX_KEY_LENGTH} characters, "
            f"got {len(hex_key)}",
            details={"expected_length": HEX_KEY_LENGTH, "actual_length": len(hex_key)},
        )

    try:
        return bytes.fromhex(hex_key)
    except ValueError as e:
        raise ConfigurationError(
            "Invalid hex key: contains non-hexadecimal characters",
        ) from e


def derive_key(secret: str) -> bytes:
    """Derive a key from a configuration secret.

    A 64-character hex secret is decoded as-is, matching keys produced by
    ``generate_key().hex()``. Any other non-empty string is run through
    HKDF-SHA256.

    Raises:
        ConfigurationError: If the secret is empty.
    """
    secret = secret.strip()
    if not secret:
        raise ConfigurationError("Token encryption secret is empty")

    if len(secret) == HEX_KEY_LENGTH:
        try:
            return bytes.fromhex(secret)
        except ValueError:
            pass  # a 64-char passphrase that merely looks like hex

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE_BYTES,
        salt=_HKDF_SALT,
        info=_HKDF_INFO,
    )
    return hkdf.derive(secret.encode("utf-8"))


def _validate_key(key: bytes) -> None:
    if len(key) != KEY_SIZE_BYTES:
        raise ConfigurationError(
            f"Invalid key length: expected {KEY_SIZE_BYTES} bytes, got {len(key)}",
            details={"expected_length": KEY_SIZE_BYTES, "actual_length": len(key)},
        )


__all__ = [
    "generate_key",
    "encrypt_data",
    "decrypt_data",
    "key_from_hex",
    "derive_key",
]

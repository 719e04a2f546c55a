"""Encrypted, file-based persistence for the current token set.

One file per installation (default ``~/.google-mcp/tokens/token.enc``)
holding JSON of the form::

    {"version": 1, "iv": "<hex>", "ciphertext": "<hex>"}

The ciphertext is AES-256-GCM over the TokenSet JSON, with the format
version bound in as associated data. Plaintext tokens never touch disk.

Security considerations:
- Writes go to a temp file in the same directory which is then renamed
  over the target, so a crash mid-write leaves the old file intact
- File permissions are 0600 (owner read/write only)
- Any file that cannot be decrypted or parsed reads as "no token", which
  forces interactive re-authorization instead of crashing
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from google_mcp.auth.tokens import TokenSet
from google_mcp.utils.encryption import decrypt_data, encrypt_data
from google_mcp.utils.errors import TokenStoreError

logger = logging.getLogger(__name__)

STORE_FORMAT_VERSION = 1
_ASSOCIATED_DATA = f"google-mcp-token-store:v{STORE_FORMAT_VERSION}".encode()


class TokenStore:
    """Encrypted single-file token store.

    Stateless apart from its path and key; only the auth manager calls it.

    Attributes:
        path: Location of the encrypted token file.

    Example:
        >>> store = TokenStore(Path("/tmp/token.enc"), generate_key())
        >>> store.save(tokens)
        >>> store.load() == tokens
        True
    """

    def __init__(self, path: Path, key: bytes) -> None:
        """Initialize the store.

        Args:
            path: Token file location. Parent directories are created on
                first save.
            key: 32-byte AES-256-GCM key.
        """
        self.path = path
        self._key = key
        logger.info("TokenStore initialized at %s", self.path)

    def save(self, tokens: TokenSet) -> None:
        """Encrypt and atomically write the token set.

        Raises:
            TokenStoreError: If encryption or any file operation fails. The
                previous file, if any, is left untouched.
        """
        plaintext = tokens.model_dump_json().encode("utf-8")
        encrypted = encrypt_data(plaintext, self._key, _ASSOCIATED_DATA)
        document = json.dumps(
            {
                "version": STORE_FORMAT_VERSION,
                "iv": encrypted["iv"].hex(),
                "ciphertext": encrypted["ciphertext"].hex(),
            },
            indent=2,
        )

        tmp_path: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            # mkstemp already creates the file 0600
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(document)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
            logger.info("Saved encrypted token to %s", self.path)

        except PermissionError as e:
            logger.error("Permission denied writing token file: %s", e)
            raise TokenStoreError(
                "Permission denied writing token file",
                details={"path": str(self.path)},
            ) from e
        except OSError as e:
            logger.error("Failed to save token: %s", e)
            raise TokenStoreError(
                f"Failed to save token: {e}",
                details={"path": str(self.path), "error_type": type(e).__name__},
            ) from e
        finally:
            if tmp_path is not None:
                Path(tmp_path).unlink(missing_ok=True)

    def load(self) -> TokenSet | None:
        """Load and decrypt the token set.

        Returns:
            The stored TokenSet, or None if there is no file or it cannot be
            read, decrypted, or validated (wrong or rotated key, corruption,
            older format). Never raises for bad file contents.
        """
        if not self.path.exists():
            logger.debug("No token file at %s", self.path)
            return None

        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
            if document.get("version") != STORE_FORMAT_VERSION:
                raise ValueError(f"unsupported token file version {document.get('version')!r}")
            iv = bytes.fromhex(document["iv"])
            ciphertext = bytes.fromhex(document["ciphertext"])
            plaintext = decrypt_data(iv, ciphertext, self._key, _ASSOCIATED_DATA)
            tokens = TokenSet.model_validate_json(plaintext)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            # json.JSONDecodeError and pydantic.ValidationError are ValueErrors
            logger.warning(
                "Ignoring unreadable token file %s (%s)", self.path, type(e).__name__
            )
            return None
        except TokenStoreError as e:
            logger.warning("Ignoring token file that failed to decrypt: %s", e.message)
            return None

        logger.debug("Loaded token from %s", self.path)
        return tokens

    def clear(self) -> bool:
        """Delete the token file.

        Returns:
            True if a file was deleted, False if none existed.

        Raises:
            TokenStoreError: If the file exists but cannot be deleted.
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.debug("No token file to delete at %s", self.path)
            return False
        except OSError as e:
            logger.error("Failed to delete token file: %s", e)
            raise TokenStoreError(
                f"Failed to delete token file: {e}",
                details={"path": str(self.path), "error_type": type(e).__name__},
            ) from e

        logger.info("Deleted token file %s", self.path)
        return True

    def exists(self) -> bool:
        """Check whether a token file is present (without decrypting it)."""
        return self.path.exists()


__all__ = ["TokenStore", "STORE_FORMAT_VERSION"]

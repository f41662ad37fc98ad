# -*- coding: utf-8 -*-
"""Location: ./wpgateway/services/encryption_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Credential Vault.

Two independent primitives:

* :class:`EncryptionService` - AES-256-GCM authenticated encryption of tenant
  secrets under one static root key. The AES key is derived once from the
  root key with Argon2id. Ciphertext is stored as
  ``base64(nonce || ciphertext || tag)``. Decryption fails closed with
  :class:`DecryptionError`; it never returns a plausible-but-wrong plaintext.
* :class:`PasswordHasher` - salted PBKDF2-HMAC-SHA256 with an explicit work
  factor, stored as ``salt:hash`` (hex).

The root key cannot be rotated in place: every stored secret depends on it.
Rotation is an explicit migration that decrypts with the old service and
re-encrypts with the new one (see :meth:`EncryptionService.reencrypt` and the
``rotate-root-key`` admin command).
"""

# Standard
import base64
import binascii
import hmac
import logging
import os
from typing import Optional, Union

# Third-Party
from argon2.low_level import hash_secret_raw, Type
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import SecretStr

# First-Party
from wpgateway.config import settings

logger = logging.getLogger(__name__)

NONCE_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32
MIN_PASSWORD_HASH_ITERATIONS = 100_000


class DecryptionError(Exception):
    """Raised when a stored secret cannot be authenticated and decrypted."""


class EncryptionService:
    """Encrypts and decrypts connection secrets under the gateway root key.

    Examples:
        Basic roundtrip:
        >>> enc = EncryptionService(SecretStr("very-secret-root-key"), time_cost=1, memory_cost=1024)
        >>> cipher = enc.encrypt_secret("hunter2")
        >>> enc.is_encrypted(cipher)
        True
        >>> enc.decrypt_secret(cipher)
        'hunter2'

        A different root key never yields plaintext:
        >>> other = EncryptionService("another-root-key-value", time_cost=1, memory_cost=1024)
        >>> other.decrypt_secret(cipher)
        Traceback (most recent call last):
        ...
        wpgateway.services.encryption_service.DecryptionError: Ciphertext failed authentication
    """

    def __init__(
        self,
        encryption_secret: Union[SecretStr, str],
        salt: Optional[str] = None,
        time_cost: Optional[int] = None,
        memory_cost: Optional[int] = None,
        parallelism: Optional[int] = None,
    ):
        """Derive the AES key from the root secret.

        Args:
            encryption_secret: Root key (SecretStr or plain string).
            salt: Fixed KDF salt. Defaults to ``settings.encryption_salt``.
            time_cost: Argon2id time cost parameter.
            memory_cost: Argon2id memory cost parameter (in KiB).
            parallelism: Argon2id parallelism parameter.
        """
        if isinstance(encryption_secret, SecretStr):
            secret = encryption_secret.get_secret_value().encode()
        else:
            secret = str(encryption_secret).encode()
        self.salt = (salt or settings.encryption_salt).encode()
        self.time_cost = time_cost or settings.argon2id_time_cost
        self.memory_cost = memory_cost or settings.argon2id_memory_cost
        self.parallelism = parallelism or settings.argon2id_parallelism
        self._aesgcm = AESGCM(self.derive_key_argon2id(secret, self.salt, self.time_cost, self.memory_cost, self.parallelism))

    @staticmethod
    def derive_key_argon2id(passphrase: bytes, salt: bytes, time_cost: int, memory_cost: int, parallelism: int) -> bytes:
        """Derive a raw 256-bit key from a passphrase using Argon2id.

        Args:
            passphrase: The root key bytes.
            salt: The KDF salt (at least 8 bytes).
            time_cost: Argon2id time cost parameter.
            memory_cost: Argon2id memory cost parameter (in KiB).
            parallelism: Argon2id parallelism parameter.

        Returns:
            bytes: The derived key.
        """
        return hash_secret_raw(
            secret=passphrase,
            salt=salt,
            time_cost=time_cost,
            memory_cost=memory_cost,  # KiB
            parallelism=parallelism,
            hash_len=KEY_LENGTH,
            type=Type.ID,
        )

    def encrypt_secret(self, plaintext: str) -> str:
        """Encrypt a plaintext secret with a fresh random nonce.

        Args:
            plaintext: The secret to encrypt. May be empty.

        Returns:
            str: ``base64(nonce || ciphertext || tag)``.
        """
        nonce = os.urandom(NONCE_LENGTH)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt_secret(self, token: str) -> str:
        """Authenticate and decrypt a stored secret.

        Args:
            token: Value produced by :meth:`encrypt_secret`.

        Returns:
            str: The original plaintext.

        Raises:
            DecryptionError: On malformed input, a failed integrity check or
                a wrong root key.
        """
        try:
            raw = base64.b64decode(token.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError, AttributeError) as e:
            raise DecryptionError("Ciphertext is not valid base64") from e
        if len(raw) < NONCE_LENGTH + TAG_LENGTH:
            raise DecryptionError("Ciphertext is truncated")
        try:
            plaintext = self._aesgcm.decrypt(raw[:NONCE_LENGTH], raw[NONCE_LENGTH:], None)
        except InvalidTag as e:
            raise DecryptionError("Ciphertext failed authentication") from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted secret is not valid UTF-8") from e

    def encrypt_optional(self, plaintext: Optional[str]) -> Optional[str]:
        """Encrypt a secret that may be absent.

        Args:
            plaintext: The secret or None.

        Returns:
            Optional[str]: Ciphertext, or None when no secret was given.
        """
        return None if plaintext is None else self.encrypt_secret(plaintext)

    def decrypt_optional(self, token: Optional[str]) -> Optional[str]:
        """Decrypt a secret that may be absent.

        Args:
            token: Ciphertext or None.

        Returns:
            Optional[str]: Plaintext, or None when nothing was stored.
        """
        return None if token is None else self.decrypt_secret(token)

    def reencrypt(self, token: str, target: "EncryptionService") -> str:
        """Move a secret from this root key to another one.

        Args:
            token: Ciphertext under this service's key.
            target: Service holding the new root key.

        Returns:
            str: Ciphertext under the target key.
        """
        return target.encrypt_secret(self.decrypt_secret(token))

    @staticmethod
    def is_encrypted(text: Optional[str]) -> bool:
        """Check if a string has the shape of a vault ciphertext.

        This is a shape check only; it does not prove the value decrypts.

        Args:
            text: String to check.

        Returns:
            bool: True if the string looks like vault output.

        Examples:
            >>> EncryptionService.is_encrypted("plain-text")
            False
            >>> EncryptionService.is_encrypted("")
            False
        """
        if not text:
            return False
        try:
            raw = base64.b64decode(text.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError):
            return False
        return len(raw) >= NONCE_LENGTH + TAG_LENGTH


class PasswordHasher:
    """Salted PBKDF2-HMAC-SHA256 password hashing.

    Examples:
        >>> hasher = PasswordHasher(iterations=100_000)
        >>> stored = hasher.hash_password("correct horse")
        >>> salt, digest = stored.split(":")
        >>> len(salt), len(digest)
        (32, 64)
        >>> hasher.verify_password("correct horse", stored)
        True
        >>> hasher.verify_password("wrong", stored)
        False
        >>> hasher.verify_password("x", "not-a-hash")
        False
    """

    def __init__(self, iterations: Optional[int] = None, salt_length: int = 16):
        """Configure the work factor.

        Args:
            iterations: PBKDF2 iterations. Defaults to ``settings.password_hash_iterations``.
            salt_length: Random salt length in bytes.

        Raises:
            ValueError: If ``iterations`` is below the minimum work factor.
        """
        self.iterations = iterations or settings.password_hash_iterations
        if self.iterations < MIN_PASSWORD_HASH_ITERATIONS:
            raise ValueError(f"password hashing needs at least {MIN_PASSWORD_HASH_ITERATIONS} iterations")
        self.salt_length = salt_length

    def _derive(self, password: str, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=KEY_LENGTH, salt=salt, iterations=self.iterations)
        return kdf.derive(password.encode("utf-8"))

    def hash_password(self, password: str) -> str:
        """Hash a password under a fresh random salt.

        Args:
            password: The plaintext password.

        Returns:
            str: ``salt:hash`` in hex.
        """
        salt = os.urandom(self.salt_length)
        return f"{salt.hex()}:{self._derive(password, salt).hex()}"

    def verify_password(self, password: str, stored: str) -> bool:
        """Re-derive under the stored salt and compare in constant time.

        Args:
            password: Candidate plaintext.
            stored: Value produced by :meth:`hash_password`.

        Returns:
            bool: True when the password matches.
        """
        try:
            salt_hex, digest_hex = stored.split(":", 1)
            salt = bytes.fromhex(salt_hex)
            expected = bytes.fromhex(digest_hex)
        except (ValueError, AttributeError):
            logger.warning("Stored password hash has an unexpected format")
            return False
        return hmac.compare_digest(self._derive(password, salt), expected)


def get_encryption_service(encryption_secret: Optional[Union[SecretStr, str]] = None) -> EncryptionService:
    """Build an EncryptionService for the given (or configured) root key.

    Args:
        encryption_secret: Root key. Defaults to ``settings.encryption_key``.

    Returns:
        EncryptionService: A ready vault.
    """
    return EncryptionService(encryption_secret if encryption_secret is not None else settings.encryption_key)

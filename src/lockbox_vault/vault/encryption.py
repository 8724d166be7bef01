# Vault - Encryption Envelope
#
# Password → Encryption key (PBKDF2-HMAC-SHA256, fresh salt per call)
# Content encryption (AES-256-GCM, fresh nonce per call)
# Envelope: base64(salt(16) || nonce(12) || ciphertext+tag)

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..exceptions import DecryptionFailed, EncryptionFailed, InvalidEnvelopeFormat


class EncryptionService:
    """
    Encrypts/decrypts lockbox content into self-contained envelopes.

    Flow:
    1. Fresh 16-byte salt and 12-byte nonce from os.urandom
    2. PBKDF2 derives a 256-bit key from password + salt
    3. AES-256-GCM encrypts content (16-byte tag appended)
    4. salt, nonce and ciphertext are concatenated and base64-encoded

    Because every envelope has its own salt, every envelope has its own
    key, so a random nonce never repeats under one key.
    """

    PBKDF2_ITERATIONS = 100_000
    KEY_LENGTH = 32  # 256 bits for AES-256
    SALT_LENGTH = 16
    NONCE_LENGTH = 12  # 96-bit nonce for GCM
    TAG_LENGTH = 16

    # Minimum decoded envelope size: salt + nonce
    _HEADER_SIZE = SALT_LENGTH + NONCE_LENGTH

    @staticmethod
    def derive_key(password: str, salt: bytes) -> bytes:
        """
        Derive an AES-256 key from a password using PBKDF2-HMAC-SHA256.

        Args:
            password: Password (for lockboxes: the session key material)
            salt: Random salt taken from the envelope

        Returns:
            256-bit encryption key
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=EncryptionService.KEY_LENGTH,
            salt=salt,
            iterations=EncryptionService.PBKDF2_ITERATIONS,
        )
        return kdf.derive(password.encode("utf-8"))

    @staticmethod
    def encrypt(plaintext: str, password: str) -> str:
        """
        Encrypt plaintext into a base64 envelope.

        Args:
            plaintext: Content to protect
            password: Password the key is derived from

        Returns:
            base64(salt || nonce || ciphertext_with_tag)

        Raises:
            EncryptionFailed: If the content or password cannot be encoded
                or the cipher rejects the input
        """
        salt = os.urandom(EncryptionService.SALT_LENGTH)
        nonce = os.urandom(EncryptionService.NONCE_LENGTH)

        try:
            key = EncryptionService.derive_key(password, salt)
            ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
        except (UnicodeEncodeError, AttributeError, TypeError, ValueError, OverflowError) as e:
            raise EncryptionFailed("Encryption failed") from e

        return base64.b64encode(salt + nonce + ciphertext).decode("ascii")

    @staticmethod
    def decrypt(envelope: str, password: str) -> str:
        """
        Decrypt a base64 envelope produced by encrypt().

        Raises:
            InvalidEnvelopeFormat: Not base64, or shorter than salt + nonce
            DecryptionFailed: Wrong password, tampered data, or non-UTF-8 plaintext.
                The three cases raise the same error.
        """
        blob = EncryptionService.decode_envelope(envelope)

        salt = blob[: EncryptionService.SALT_LENGTH]
        nonce = blob[EncryptionService.SALT_LENGTH : EncryptionService._HEADER_SIZE]
        ciphertext = blob[EncryptionService._HEADER_SIZE :]

        try:
            key = EncryptionService.derive_key(password, salt)
            plaintext_bytes = AESGCM(key).decrypt(nonce, ciphertext, None)
            return plaintext_bytes.decode("utf-8")
        except (InvalidTag, UnicodeError, AttributeError, TypeError) as e:
            raise DecryptionFailed() from e

    @staticmethod
    def decode_envelope(envelope: str) -> bytes:
        """Base64-decode an envelope and check it can hold salt + nonce."""
        try:
            blob = base64.b64decode(envelope, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise InvalidEnvelopeFormat("Envelope is not valid base64") from e

        if len(blob) < EncryptionService._HEADER_SIZE:
            raise InvalidEnvelopeFormat(
                f"Envelope too short: {len(blob)} bytes "
                f"(minimum {EncryptionService._HEADER_SIZE})"
            )
        return blob


def encrypt(plaintext: str, password: str) -> str:
    """Module-level shortcut for EncryptionService.encrypt."""
    return EncryptionService.encrypt(plaintext, password)


def decrypt(envelope: str, password: str) -> str:
    """Module-level shortcut for EncryptionService.decrypt."""
    return EncryptionService.decrypt(envelope, password)

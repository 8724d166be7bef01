# Vault Module - Encryption Envelope & Master Password
#
# AES-256-GCM envelopes with per-envelope PBKDF2 key derivation
# Master password verification hash doubles as session key material

from .credentials import (
    MASTER_PASSWORD_SETTING,
    MasterKeySession,
    hash_password,
    verify_password,
)
from .encryption import EncryptionService, decrypt, encrypt

__all__ = [
    "EncryptionService",
    "encrypt",
    "decrypt",
    "MASTER_PASSWORD_SETTING",
    "MasterKeySession",
    "hash_password",
    "verify_password",
]

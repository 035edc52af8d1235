# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Credential Protection

Single responsibility: Reversibly encrypt stored source passwords

Passwords are encrypted with Fernet using the key in
PKGRESTORE_CREDENTIAL_KEY and stored base64 encoded in the config file.
"""

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from pkgrestore.core.config import get_credential_key
from pkgrestore.core.errors import CredentialProtectionError


def _fernet(key: Optional[str]) -> Fernet:
    key = key or get_credential_key()
    if not key:
        raise CredentialProtectionError(
            "PKGRESTORE_CREDENTIAL_KEY is not set; cannot protect source passwords"
        )
    try:
        return Fernet(key.encode("ascii") if isinstance(key, str) else key)
    except ValueError as e:
        raise CredentialProtectionError(f"Invalid credential key: {e}") from e


def encrypt_string(value: str, key: Optional[str] = None) -> str:
    """
    Encrypt a password for storage.

    Args:
        value: Clear text password
        key: Fernet key, defaults to PKGRESTORE_CREDENTIAL_KEY

    Returns:
        URL-safe base64 token
    """
    if not value:
        return value
    return _fernet(key).encrypt(value.encode("utf-8")).decode("ascii")


def decrypt_string(token: str, key: Optional[str] = None) -> str:
    """
    Decrypt a stored password.

    Raises:
        CredentialProtectionError: If the key is missing or does not match
    """
    if not token:
        return token
    try:
        return _fernet(key).decrypt(token.encode("ascii")).decode("utf-8")
    except (InvalidToken, UnicodeEncodeError) as e:
        raise CredentialProtectionError("Stored password cannot be decrypted with the current key") from e

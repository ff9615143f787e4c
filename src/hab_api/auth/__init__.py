"""Authentication module."""

from hab_api.auth.security import (
    MAX_PASSWORD_BYTES,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

__all__ = [
    "MAX_PASSWORD_BYTES",
    "create_access_token",
    "decode_access_token",
    "hash_password",
    "verify_password",
]

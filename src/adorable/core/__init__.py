"""Core utilities and configuration for Adorable.

This module contains:
- Configuration and settings management
- Security utilities (password hashing, JWT tokens, webhook signatures)
"""
from .config import Settings, get_settings, settings
from .security import (
    create_access_token,
    decode_access_token,
    generate_invite_code,
    generate_webhook_secret,
    hash_password,
    sign_webhook_payload,
    verify_password,
    verify_webhook_signature,
)

__all__ = [
    # Config
    "settings",
    "Settings",
    "get_settings",
    # Security - Password
    "hash_password",
    "verify_password",
    # Security - JWT
    "create_access_token",
    "decode_access_token",
    # Security - Tokens and signatures
    "generate_invite_code",
    "generate_webhook_secret",
    "sign_webhook_payload",
    "verify_webhook_signature",
]

"""
Authentication primitives for domofon.

Password hashing, phone normalization, one-time code generation,
JWT signing/parsing and the in-memory reset-mark map.
"""

from .codes import CodeGenerator
from .jwt_handler import JWTHandler, TokenClaims
from .marks import ExpiringMarks
from .password import PasswordHandler, normalize_phone, mask_phone

__all__ = [
    "CodeGenerator",
    "JWTHandler",
    "TokenClaims",
    "ExpiringMarks",
    "PasswordHandler",
    "normalize_phone",
    "mask_phone",
]

import secrets
import string
from typing import Any

from securepass.core.crypto import is_encrypted_string

AUTO_SECRET_LENGTH = 32
AUTO_SECRET_ALPHABET = string.ascii_letters + string.digits + "!@#$%&*-_=+?"


def is_ciphertext(value: Any) -> bool:
    return isinstance(value, str) and is_encrypted_string(value)


def generate_secret(length: int = AUTO_SECRET_LENGTH) -> str:
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(AUTO_SECRET_ALPHABET) for _ in range(length))

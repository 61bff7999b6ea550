"""
Password generation and strength checks.
"""

import secrets
import string
from typing import Tuple

from . import config
from .exceptions import InvalidParameters


def check_strength(password: str) -> Tuple[bool, str]:
    """
    Check if password meets minimum requirements.

    Returns:
        Tuple of (is_strong, message)
    """
    if len(password) < config.PASSWORD_MIN_LENGTH:
        return False, f"Password must be at least {config.PASSWORD_MIN_LENGTH} characters long"

    if not any(c.isupper() for c in password):
        return False, "Password must contain uppercase letters"
    if not any(c.islower() for c in password):
        return False, "Password must contain lowercase letters"
    if not any(c.isdigit() for c in password):
        return False, "Password must contain digits"
    if not any(c in string.punctuation for c in password):
        return False, "Password must contain special characters"

    return True, "Password is strong"


def generate_password(length: int = config.PASSWORD_GENERATOR_DEFAULT_LENGTH,
                      uppercase: bool = True, lowercase: bool = True, digits: bool = True,
                      symbols: bool = True, exclude_ambiguous: bool = False) -> str:
    """
    Generate a random password from the selected character classes.

    At least one character of every selected class is included.
    """
    if not config.PASSWORD_GENERATOR_MIN_LENGTH <= length <= config.PASSWORD_GENERATOR_MAX_LENGTH:
        raise InvalidParameters(
            f"Password length must be between {config.PASSWORD_GENERATOR_MIN_LENGTH} "
            f"and {config.PASSWORD_GENERATOR_MAX_LENGTH}"
        )

    classes = []
    if uppercase:
        classes.append(string.ascii_uppercase)
    if lowercase:
        classes.append(string.ascii_lowercase)
    if digits:
        classes.append(string.digits)
    if symbols:
        classes.append(string.punctuation)

    # Exclude ambiguous characters if requested
    if exclude_ambiguous:
        ambiguous = config.PASSWORD_GENERATOR_AMBIGUOUS_CHARS
        classes = [''.join(c for c in chars if c not in ambiguous) for chars in classes]

    if not classes:
        raise InvalidParameters("Select at least one character type")

    chars = ''.join(classes)
    password = [secrets.choice(group) for group in classes]
    password += [secrets.choice(chars) for _ in range(length - len(password))]
    # Shuffle so the guaranteed characters are not always first.
    for i in range(len(password) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        password[i], password[j] = password[j], password[i]
    return ''.join(password)

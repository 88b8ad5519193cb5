"""Form validation helpers.

Shape checks for user-entered data before it is stored:
- validate_email / validate_password / validate_name: account fields
- validate_url: links attached to certifications and profiles
- validate_reflection: free-text reflection answers
- validate_number / validate_burnout_score / validate_intensity: numeric inputs
- sanitize_text: HTML-escape text for display

Every validator returns a ValidationResult; `require()` converts a failed
result into a ValidationError for callers that prefer exceptions.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse


@dataclass
class ValidationResult:
    """Outcome of a single validation."""

    valid: bool
    error: str | None = None
    value: Any = None
    strength: str | None = None


class ValidationError(Exception):
    """Raised when a field fails validation."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
SPECIAL_CHAR_PATTERN = re.compile(r"""[!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]""")

XSS_PATTERN = re.compile(r"<script|javascript:|onerror=|onclick=", re.IGNORECASE)
REFLECTION_XSS_PATTERN = re.compile(
    r"<script|<iframe|<object|<embed|javascript:|onerror=|onclick=", re.IGNORECASE
)
URL_SCHEME_PATTERN = re.compile(r"javascript:|data:|vbscript:", re.IGNORECASE)

COMMON_PASSWORDS = (
    "password",
    "password123",
    "12345678",
    "qwerty",
    "abc123",
    "password1",
    "123456789",
    "welcome",
)

MAX_EMAIL_LENGTH = 254
MAX_REFLECTION_LENGTH = 10_000


def _invalid(error: str) -> ValidationResult:
    return ValidationResult(valid=False, error=error)


def validate_email(email: Any) -> ValidationResult:
    """Validate an email address (RFC 5322, simplified)."""
    if not email or not isinstance(email, str):
        return _invalid("Email is required")

    trimmed = email.strip()
    if not trimmed:
        return _invalid("Email cannot be empty")
    if len(trimmed) > MAX_EMAIL_LENGTH:
        return _invalid("Email is too long (max 254 characters)")
    if not EMAIL_PATTERN.match(trimmed):
        return _invalid("Invalid email format")
    if XSS_PATTERN.search(trimmed):
        return _invalid("Email contains invalid characters")

    domain = trimmed.split("@", 1)[1]
    if "." not in domain:
        return _invalid("Invalid email domain")

    return ValidationResult(valid=True, value=trimmed)


def validate_password(password: Any) -> ValidationResult:
    """Validate password strength.

    Requires 8-128 characters with upper, lower, digit and special
    characters, and rejects passwords built around common weak ones.
    """
    if not password or not isinstance(password, str):
        return _invalid("Password is required")
    if len(password) < 8:
        return _invalid("Password must be at least 8 characters long")
    if len(password) > 128:
        return _invalid("Password is too long (max 128 characters)")
    if not re.search(r"[A-Z]", password):
        return _invalid("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        return _invalid("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        return _invalid("Password must contain at least one number")
    if not SPECIAL_CHAR_PATTERN.search(password):
        return _invalid(
            "Password must contain at least one special character (!@#$%^&*...)"
        )

    lowered = password.lower()
    if any(weak in lowered for weak in COMMON_PASSWORDS):
        return _invalid("Password is too common. Please choose a stronger password.")

    if len(password) >= 12:
        strength = "strong"
    elif len(password) < 10:
        strength = "weak"
    else:
        strength = "medium"

    return ValidationResult(valid=True, strength=strength)


def validate_name(name: Any) -> ValidationResult:
    """Validate a person's name."""
    if not name or not isinstance(name, str):
        return _invalid("Name is required")

    trimmed = name.strip()
    if not trimmed:
        return _invalid("Name cannot be empty")
    if len(trimmed) < 2:
        return _invalid("Name must be at least 2 characters long")
    if len(trimmed) > 100:
        return _invalid("Name is too long (max 100 characters)")
    if XSS_PATTERN.search(trimmed):
        return _invalid("Name contains invalid characters")
    if not NAME_PATTERN.match(trimmed):
        return _invalid("Name can only contain letters, spaces, hyphens, and apostrophes")

    return ValidationResult(valid=True, value=trimmed)


def validate_url(url: Any) -> ValidationResult:
    """Validate an http(s) URL."""
    if not url or not isinstance(url, str):
        return _invalid("URL is required")

    if URL_SCHEME_PATTERN.search(url):
        return _invalid("URL contains invalid protocol")

    try:
        parsed = urlparse(url)
    except ValueError:
        return _invalid("Invalid URL format")

    if not parsed.scheme or not parsed.netloc:
        return _invalid("Invalid URL format")
    if parsed.scheme not in ("http", "https"):
        return _invalid("URL must use HTTP or HTTPS protocol")

    return ValidationResult(valid=True, value=url)


def validate_reflection(text: Any) -> ValidationResult:
    """Validate free-text reflection content; value is the trimmed text."""
    if not text or not isinstance(text, str):
        return _invalid("Reflection text is required")

    trimmed = text.strip()
    if not trimmed:
        return _invalid("Reflection cannot be empty")
    if len(trimmed) > MAX_REFLECTION_LENGTH:
        return _invalid("Reflection is too long (max 10,000 characters)")
    if REFLECTION_XSS_PATTERN.search(trimmed):
        return _invalid("Reflection contains invalid content")

    return ValidationResult(valid=True, value=trimmed)


def validate_number(
    value: Any,
    min: float | None = None,
    max: float | None = None,
    integer: bool = False,
) -> ValidationResult:
    """Validate a numeric input with optional inclusive bounds."""
    if isinstance(value, bool) or value is None:
        return _invalid("Must be a valid number")

    try:
        num = float(value)
    except (TypeError, ValueError):
        return _invalid("Must be a valid number")

    if math.isnan(num):
        return _invalid("Must be a valid number")
    if integer and not num.is_integer():
        return _invalid("Must be a whole number")
    if min is not None and num < min:
        return _invalid(f"Must be at least {min}")
    if max is not None and num > max:
        return _invalid(f"Must be at most {max}")

    return ValidationResult(valid=True, value=int(num) if integer else num)


def validate_burnout_score(score: Any) -> ValidationResult:
    """Burnout self-assessment score: whole number 1-10."""
    return validate_number(score, min=1, max=10, integer=True)


def validate_intensity(value: Any) -> ValidationResult:
    """Emotion intensity / effectiveness rating: whole number 1-5."""
    return validate_number(value, min=1, max=5, integer=True)


def sanitize_text(text: Any) -> str:
    """HTML-escape text for safe display."""
    if not text or not isinstance(text, str):
        return ""

    return (
        text.replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
        .replace("/", "&#x2F;")
    )


def require(result: ValidationResult, field: str) -> Any:
    """Return the validated value or raise ValidationError.

    Args:
        result: Result from one of the validators
        field: Field name used in the error

    Raises:
        ValidationError: If the result is invalid
    """
    if not result.valid:
        raise ValidationError(field, result.error or "Invalid value")
    return result.value


VALIDATORS = {
    "email": validate_email,
    "password": validate_password,
    "name": validate_name,
    "url": validate_url,
    "reflection": validate_reflection,
    "burnout_score": validate_burnout_score,
    "intensity": validate_intensity,
}

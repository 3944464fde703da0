"""Pre-flight checks on raw email content."""

from __future__ import annotations

from dataclasses import dataclass
import re

from phish_email_analyzer.core.errors import AnalysisError, ErrorKind
from phish_email_analyzer.domain.models import DEFAULT_MAX_EMAIL_CHARS

_ENCRYPTION_PATTERNS: tuple[tuple[re.Pattern[str], str, str], ...] = (
    (
        re.compile(r"-----BEGIN PGP MESSAGE-----", re.IGNORECASE),
        "PGP",
        "The email contains PGP-encrypted content that cannot be fully analyzed.",
    ),
    (
        re.compile(r"-----BEGIN ENCRYPTED MESSAGE-----", re.IGNORECASE),
        "Generic",
        "The email contains an encrypted block that cannot be fully analyzed.",
    ),
    (
        re.compile(r"Content-Type:\s*application/(?:x-)?pkcs7-mime", re.IGNORECASE),
        "S/MIME",
        "The email uses S/MIME encryption and may not be fully analyzable.",
    ),
    (
        re.compile(r"Content-Transfer-Encoding:\s*base64", re.IGNORECASE),
        "Base64",
        "The email carries base64-encoded parts; encoded content may be hidden from analysis.",
    ),
)


@dataclass(frozen=True)
class EncryptionNotice:
    is_encrypted: bool
    encryption_type: str | None = None
    warning: str | None = None


def detect_encrypted_content(content: str) -> EncryptionNotice:
    for pattern, kind, warning in _ENCRYPTION_PATTERNS:
        if pattern.search(content or ""):
            return EncryptionNotice(is_encrypted=True, encryption_type=kind, warning=warning)
    return EncryptionNotice(is_encrypted=False)


def check_email_content(content: str, *, max_chars: int = DEFAULT_MAX_EMAIL_CHARS) -> AnalysisError | None:
    """Return a validation error for empty or oversized content, else None."""

    stripped = (content or "").strip()
    if not stripped:
        return AnalysisError(
            kind=ErrorKind.VALIDATION,
            code="empty_content",
            message="Email content must not be empty.",
        )
    if len(stripped) > max_chars:
        return AnalysisError(
            kind=ErrorKind.VALIDATION,
            code="content_too_long",
            message=f"Email content is too long; limit it to {max_chars:,} characters.",
            detail=f"length={len(stripped)}",
        )
    return None

"""Attachment metadata heuristics; file bytes are never opened."""

from __future__ import annotations

from pathlib import PurePath
import re
from typing import Any

from phish_email_analyzer.tools.common import max_risk, risk_from_flags, tool_report

DANGEROUS_EXTENSIONS = frozenset(
    {
        "exe", "scr", "bat", "cmd", "com", "pif", "vbs", "vbe", "js", "jse", "wsf", "wsh",
        "msi", "ps1", "jar", "hta", "lnk", "iso", "img", "reg", "cpl", "dll",
    }
)
MACRO_EXTENSIONS = frozenset({"docm", "xlsm", "pptm", "dotm", "xltm", "xlam", "ppam"})
COMPOUND_EXTENSIONS = frozenset({"tar.gz", "tar.bz2", "tar.xz"})
ENTICEMENT_KEYWORDS = (
    "invoice",
    "receipt",
    "urgent",
    "confidential",
    "payment",
    "statement",
    "order",
    "shipping",
    "password",
    "salary",
    "refund",
)
EXPECTED_MIME_TYPES: dict[str, tuple[str, ...]] = {
    "pdf": ("application/pdf",),
    "doc": ("application/msword",),
    "docx": ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",),
    "xls": ("application/vnd.ms-excel",),
    "xlsx": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",),
    "ppt": ("application/vnd.ms-powerpoint",),
    "pptx": ("application/vnd.openxmlformats-officedocument.presentationml.presentation",),
    "txt": ("text/plain",),
    "csv": ("text/csv", "text/plain"),
    "html": ("text/html",),
    "htm": ("text/html",),
    "zip": ("application/zip", "application/x-zip-compressed"),
    "jpg": ("image/jpeg",),
    "jpeg": ("image/jpeg",),
    "png": ("image/png",),
    "gif": ("image/gif",),
    "exe": ("application/x-msdownload", "application/x-dosexec", "application/vnd.microsoft.portable-executable"),
}
MAX_SIZE_BYTES = 10 * 1024 * 1024

_EXTENSION_PATTERN = re.compile(r"[a-z0-9]{1,5}")
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


def _extensions(filename: str) -> list[str]:
    suffixes = [suffix.lstrip(".").lower() for suffix in PurePath(filename).suffixes]
    return [suffix for suffix in suffixes if _EXTENSION_PATTERN.fullmatch(suffix)]


def scan_single_attachment(filename: str, mime_type: str = "", size: int | None = None) -> dict[str, Any]:
    name = (filename or "").strip()
    features: list[str] = []
    extensions = _extensions(name)
    extension = extensions[-1] if extensions else ""

    if extension in DANGEROUS_EXTENSIONS:
        features.append(f"dangerous_extension:{extension}")
    elif extension in MACRO_EXTENSIONS:
        features.append(f"macro_enabled_extension:{extension}")

    if len(extensions) > 1 and ".".join(extensions[-2:]) not in COMPOUND_EXTENSIONS:
        features.append("double_extension")

    tokens = [token for token in _TOKEN_SPLIT.split(name.lower()) if token]
    # Keywords must open a token: "invoices" matches, "border" does not.
    keywords = [keyword for keyword in ENTICEMENT_KEYWORDS if any(token.startswith(keyword) for token in tokens)]
    if keywords:
        features.append(f"enticing_filename:{','.join(keywords)}")

    declared = (mime_type or "").split(";", 1)[0].strip().lower()
    expected = EXPECTED_MIME_TYPES.get(extension)
    if declared and expected and declared not in expected and declared != "application/octet-stream":
        features.append("mime_type_mismatch")

    if size is not None:
        if size == 0:
            features.append("empty_file")
        elif size > MAX_SIZE_BYTES:
            features.append("oversized_file")

    return {
        "filename": name,
        "mimeType": declared,
        "size": size,
        "riskLevel": risk_from_flags(len(features), high_above=1),
        "features": features,
    }


def scan_attachments(attachments: list[dict[str, Any]]) -> dict[str, Any]:
    reports: list[dict[str, Any]] = []
    for item in attachments:
        raw_size = item.get("size")
        try:
            size = int(raw_size) if raw_size is not None else None
        except (TypeError, ValueError):
            size = None
        reports.append(
            scan_single_attachment(
                str(item.get("filename") or ""),
                str(item.get("mimeType") or item.get("mime_type") or ""),
                size,
            )
        )
    if not reports:
        return tool_report("low", [], "No attachments were supplied.", attachments=[])

    features = [f"{feature} ({item['filename']})" for item in reports for feature in item["features"]]
    levels = [item["riskLevel"] for item in reports]
    risky = sum(1 for level in levels if level != "low")
    analysis = f"Scanned {len(reports)} attachment(s); {risky} raised concerns."
    return tool_report(max_risk(levels), features, analysis, attachments=reports)

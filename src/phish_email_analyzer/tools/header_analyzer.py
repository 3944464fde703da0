"""Header-level phishing signals (sender identity, relay path, metadata)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import parseaddr, parsedate_to_datetime
import ipaddress
import re
from typing import Any

from phish_email_analyzer.tools.common import risk_from_flags, tool_report

FREE_MAIL_DOMAINS = frozenset(
    {
        "gmail.com",
        "googlemail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "live.com",
        "aol.com",
        "icloud.com",
        "mail.com",
        "gmx.com",
        "protonmail.com",
        "qq.com",
        "163.com",
        "126.com",
    }
)
INSTITUTION_TERMS = (
    "bank",
    "paypal",
    "apple",
    "microsoft",
    "amazon",
    "support",
    "security",
    "service",
    "team",
    "admin",
    "billing",
    "account",
    "irs",
    "government",
    "银行",
    "客服",
)
MAX_RECEIVED_HOPS = 10
MAX_DATE_AGE = timedelta(days=365)

_MESSAGE_ID_PATTERN = re.compile(r"^<[^<>@\s]+@[^<>@\s]+>$")
_RECEIVED_FROM_PATTERN = re.compile(r"\bfrom\s+\[?([^\s\]\[()]+)\]?", re.IGNORECASE)


def _address_domain(raw: str) -> str:
    _, address = parseaddr(raw or "")
    if "@" not in address:
        return ""
    return address.rsplit("@", 1)[-1].strip().lower().strip(">")


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value.strip("[]"))
    except ValueError:
        return False
    return True


def _suspicious_hop(line: str) -> bool:
    lowered = line.lower()
    if "localhost" in lowered or "unknown" in lowered:
        return True
    match = _RECEIVED_FROM_PATTERN.search(line)
    return bool(match and _is_ip(match.group(1)))


def _parse_date(raw: str) -> datetime | None:
    value = (raw or "").strip()
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def analyze_headers(
    *,
    sender: str = "",
    reply_to: str = "",
    return_path: str = "",
    received: list[str] | None = None,
    message_id: str = "",
    date: str = "",
    now: datetime | None = None,
) -> dict[str, Any]:
    features: list[str] = []
    current = now or datetime.now(timezone.utc)

    display_name, _ = parseaddr(sender or "")
    from_domain = _address_domain(sender)
    if not from_domain:
        features.append("missing_or_malformed_from")
    elif from_domain in FREE_MAIL_DOMAINS:
        lowered_name = display_name.lower()
        if any(term in lowered_name for term in INSTITUTION_TERMS):
            features.append("institutional_name_on_free_mail")

    reply_domain = _address_domain(reply_to)
    if from_domain and reply_domain and reply_domain != from_domain:
        features.append("reply_to_domain_mismatch")

    return_domain = _address_domain(return_path)
    if from_domain and return_domain and return_domain != from_domain:
        features.append("return_path_domain_mismatch")

    hops = [str(line) for line in (received or []) if str(line).strip()]
    if len(hops) > MAX_RECEIVED_HOPS:
        features.append("excessive_received_hops")
    if any(_suspicious_hop(line) for line in hops):
        features.append("suspicious_received_hop")

    if not _MESSAGE_ID_PATTERN.match((message_id or "").strip()):
        features.append("malformed_message_id")

    parsed_date = _parse_date(date)
    if parsed_date is None:
        features.append("unparsable_date")
    elif parsed_date > current:
        features.append("future_date")
    elif current - parsed_date > MAX_DATE_AGE:
        features.append("stale_date")

    risk = risk_from_flags(len(features), high_above=2)
    if features:
        analysis = f"Header review found {len(features)} anomaly(ies): {', '.join(features)}."
    else:
        analysis = "Headers look consistent."
    return tool_report(
        risk,
        features,
        analysis,
        fromDomain=from_domain,
        replyToDomain=reply_domain,
        returnPathDomain=return_domain,
        receivedHops=len(hops),
    )

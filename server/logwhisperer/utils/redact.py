import re
from typing import Dict, List, Pattern, Tuple

# Applied in order: IPs first so a dotted quad never reaches the token pattern,
# usernames last because the replacement keeps the "user=" prefix.
REDACTION_RULES: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"), "IP_REDACTED"),
    # lowercase only: the uppercase "ED" closing each sentinel must never join a hex run
    (re.compile(r"[a-f0-9]{32,64}"), "TOKEN_REDACTED"),
    (re.compile(r"\buser=\w+\b", re.IGNORECASE), "user=USER_REDACTED"),
]

def redact(text: str) -> str:
    """Replace IPv4 addresses, lowercase hex tokens and ``user=<name>`` pairs with sentinels.

    Idempotent: none of the sentinels match a source pattern except the
    username one, which maps onto itself. Hex runs longer than 64 chars are
    replaced in 64-char steps; the leftover tail is under 32 chars and stays.
    """
    out = text or ""
    for pattern, sentinel in REDACTION_RULES:
        out = pattern.sub(sentinel, out)
    return out

def redact_message(message: Dict[str, str]) -> Dict[str, str]:
    return {**message, "content": redact(message.get("content", ""))}

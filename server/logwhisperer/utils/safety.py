import logging
import re
from typing import Iterable, List, Optional

from logwhisperer.schemas.models import CommandSuggestion, RawSuggestion

log = logging.getLogger("safety")

PRIVILEGE_PREFIX = re.compile(r"^(?:sudo|doas)\s+", re.IGNORECASE)

# Service, firewall, deletion and power verbs. Any hit forces risk to "high".
DESTRUCTIVE_PATTERNS = [
    r"\bflush\b",
    r"--force\b",
    r"\brm\s+",
    r"\bshutdown\b",
    r"\breboot\b",
    r"\bpoweroff\b",
    r"\bhalt\b",
    r"\berase\b",
    r"\bwipe",
    r"\bstop\b",
    r"\bdisable\b",
    r"\bdelete\b",
    r"\bmkfs\.",
    r"\bdd\s+if=",
    r":\(\)\s*\{\s*:\s*\|\s*:\s*;\s*\}\s*;\s*:",  # fork bomb
]

RISK_ALIASES = {"low": "low", "med": "med", "medium": "med", "high": "high"}

def parse_allowlist(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]

def strip_privilege(cmd: str) -> str:
    return PRIVILEGE_PREFIX.sub("", (cmd or "").strip())

def is_command_dangerous(cmd: str) -> bool:
    c = strip_privilege(cmd).lower()
    for p in DESTRUCTIVE_PATTERNS:
        if re.search(p, c):
            return True
    return False

def is_allowlisted(cmd: str, allowlist: Iterable[str]) -> bool:
    parts = strip_privilege(cmd).split()
    if not parts:
        return False
    binary = parts[0].lower()
    return any(binary.startswith(entry.lower()) for entry in allowlist if entry)

def normalize_risk(risk: Optional[str]) -> str:
    return RISK_ALIASES.get((risk or "").strip().lower(), "med")

def classify(cmd: str, allowlist: Iterable[str], declared_risk: Optional[str] = None) -> str:
    """
    Label a command low/med/high. Destructive terms always win; otherwise the
    declared risk stands, except that "low" is raised to "med" for commands
    outside the allowlist. Never lowers a risk.
    """
    if is_command_dangerous(cmd):
        return "high"
    risk = normalize_risk(declared_risk)
    if risk == "low" and not is_allowlisted(cmd, allowlist):
        return "med"
    return risk

def filter_suggestions(
    suggestions: Iterable[RawSuggestion],
    allowlist: List[str],
    limit: int = 3,
) -> List[CommandSuggestion]:
    accepted: List[CommandSuggestion] = []
    for s in suggestions:
        if len(accepted) >= limit:
            break
        cmd = s.cmd.strip()
        if not is_allowlisted(cmd, allowlist):
            log.info("Dropping non-allowlisted command: %s", cmd.split()[0] if cmd else "")
            continue
        accepted.append(CommandSuggestion(cmd=cmd, why=s.why.strip(), risk=classify(cmd, allowlist, s.risk)))
    return accepted

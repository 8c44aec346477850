import json
from typing import List, Optional

from logwhisperer.schemas.models import AnalysisResult, RetrievedPattern

ANALYSIS_SYSTEM = """You are LogWhisperer, a network and systems operations analyst.
Read the redacted logs and reason privately. Be decisive. If uncertain, state what single observation would resolve it.
Avoid vendor-specific commands here.
Return ONLY valid JSON (no markdown, no extra text)."""


def analysis_prompt(
    chunks: List[str],
    patterns: List[RetrievedPattern],
    hints: Optional[str] = None,
    vendor: Optional[str] = None,
) -> str:
    chunk_section = "\n---\n".join(chunks)

    pattern_lines = []
    for p in patterns:
        parts = [
            f"Title: {p.title}" if p.title else "",
            f"Vendor: {p.vendor}" if p.vendor else "",
            f"Signature: {p.signature}" if p.signature else "",
            f"Guidance: {p.guidance}" if p.guidance else "",
        ]
        line = " | ".join(x for x in parts if x)
        if line:
            pattern_lines.append(f"- {line}")
    pattern_section = "\n".join(pattern_lines) or "(none)"

    extra = []
    if vendor:
        extra.append(f"VENDOR: {vendor}")
    if hints:
        extra.append(f"OPERATOR HINTS: {hints}")
    extra_section = ("\n".join(extra) + "\n\n") if extra else ""

    return f"""
OUTPUT JSON SCHEMA (STRICT):
{{
  "summary": "1-2 sentences",
  "anomalies": ["at most 5 short phrases"],
  "evidence": {{"<anomaly>": ["log line", "..."]}},
  "assumptions": ["at most 3"]
}}

{extra_section}LOGS:
<<<
{chunk_section}
>>>

KNOWN PATTERNS:
<<<
{pattern_section}
>>>

Return ONLY JSON.
""".strip()


def command_system(allowlist: List[str], limit: int = 3) -> str:
    return f"""You generate up to {limit} SAFE shell commands using only these programs: {", ".join(allowlist) or "(none)"}.
Each item: {{"cmd": "...", "why": "...", "risk": "low|med|high"}}.
Classify as "high" if it stops services, modifies firewall broadly, or deletes configs.
Never include destructive commands without "high" and a clear rollback line.
Return ONLY valid JSON of the form {{"suggested_commands": [...]}} (no markdown, no extra text)."""


def command_prompt(analysis: AnalysisResult) -> str:
    return f"""
ANALYSIS:
{json.dumps(analysis.model_dump(), indent=2)}

Propose read-only diagnostics first. Return ONLY JSON.
""".strip()

"""Parsing of security audit reports.

The audit prompt asks for one finding per line:

    ./path/to/file.ts:42, Hardcoded API Key, CRITICAL, key exposed in source, move it to the environment

Lines that do not have that shape are kept as free text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

SEVERITIES = ("CRITICAL", "HIGH", "MEDIUM", "LOW")

_FINDING = re.compile(
    r"^\s*(?:[-*]\s+|\d+\.\s+)?`?(?P<file>[^\s,:`]+):(?P<line>\d+)`?\s*,"
    r"\s*(?P<issue>[^,]+?)\s*,\s*(?P<severity>[^,]+?)\s*,\s*(?P<rest>.+)$"
)


@dataclass
class Finding:
    file: str
    line: int
    issue: str
    severity: str
    description: str
    remediation: str = ""

    @property
    def location(self) -> str:
        return f"{self.file}:{self.line}"


def normalize_severity(text: str) -> str:
    upper = text.strip("[] ").upper()
    for severity in SEVERITIES:
        if severity in upper:
            return severity
    return upper or "UNKNOWN"


def parse_findings(report: str) -> tuple[list[Finding], list[str]]:
    """Split a report into structured findings and the remaining text lines."""
    findings: list[Finding] = []
    other: list[str] = []
    for raw in report.splitlines():
        match = _FINDING.match(raw)
        if match is None:
            if raw.strip() and not raw.strip().startswith("```"):
                other.append(raw.rstrip())
            continue
        description, _, remediation = match["rest"].partition(",")
        findings.append(
            Finding(
                file=match["file"],
                line=int(match["line"]),
                issue=match["issue"].strip("[] "),
                severity=normalize_severity(match["severity"]),
                description=description.strip("[] "),
                remediation=remediation.strip().strip("[]"),
            )
        )
    return findings, other


def severity_rank(finding: Finding) -> int:
    try:
        return SEVERITIES.index(finding.severity)
    except ValueError:
        return len(SEVERITIES)

"""Tests for parsing security audit reports."""

from __future__ import annotations

import pytest

from plnr.agent.security import Finding, normalize_severity, parse_findings, severity_rank


class TestParseFindings:
    def test_structured_lines(self) -> None:
        report = (
            "```\n"
            "./src/auth/login.ts:42, Hardcoded API Key, CRITICAL, API key exposed in source, "
            "Store it in environment variables, not in code\n"
            "./src/api/users.ts:156, [Missing Authorization], [HIGH], delete lacks a role check, Add middleware\n"
            "```"
        )
        findings, notes = parse_findings(report)

        assert notes == []
        assert findings[0] == Finding(
            file="./src/auth/login.ts",
            line=42,
            issue="Hardcoded API Key",
            severity="CRITICAL",
            description="API key exposed in source",
            remediation="Store it in environment variables, not in code",
        )
        assert findings[1].issue == "Missing Authorization"
        assert findings[1].severity == "HIGH"
        assert findings[1].location == "./src/api/users.ts:156"

    def test_list_markers_and_backticks(self) -> None:
        findings, _ = parse_findings("1. `app/db.py:7`, SQL Injection, high, f-string query, Use parameters")
        assert findings[0].file == "app/db.py"
        assert findings[0].severity == "HIGH"

    def test_free_text_is_kept(self) -> None:
        findings, notes = parse_findings("NO CRITICAL VULNERABILITIES DETECTED\n\n- Update dependencies regularly")
        assert findings == []
        assert notes == ["NO CRITICAL VULNERABILITIES DETECTED", "- Update dependencies regularly"]

    @pytest.mark.parametrize(
        ("text", "expected"),
        [("CRITICAL", "CRITICAL"), ("[medium]", "MEDIUM"), ("Low risk", "LOW"), ("odd", "ODD"), ("", "UNKNOWN")],
    )
    def test_normalize_severity(self, text: str, expected: str) -> None:
        assert normalize_severity(text) == expected

    def test_rank_orders_by_severity(self) -> None:
        findings, _ = parse_findings(
            "a.py:1, X, LOW, d, f\nb.py:2, Y, weird, d, f\nc.py:3, Z, CRITICAL, d, f"
        )
        assert [f.file for f in sorted(findings, key=severity_rank)] == ["c.py", "a.py", "b.py"]

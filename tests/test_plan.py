"""Tests for plan parsing."""

from __future__ import annotations

import json

import pytest

from plnr.agent.plan import Plan, PlanParseError, Step, extract_json, parse_plan, plan_to_markdown

PLAN = {
    "summary": "Add a cache layer",
    "steps": [
        {
            "title": "Create cache module",
            "description": "LRU cache keyed by URL",
            "files_to_create": ["src/cache.ts"],
            "code_changes": "export class Cache {}",
        },
        {"title": "Wire it in", "files_to_modify": ["src/api.ts"]},
    ],
    "dependencies_to_add": ["lru-cache"],
    "risks": ["Stale reads"],
}


class TestExtractJson:
    def test_json_fence(self) -> None:
        assert extract_json('Here:\n```json\n{"a": 1}\n```\nDone') == '{"a": 1}'

    def test_bare_fence(self) -> None:
        assert extract_json('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self) -> None:
        assert extract_json('  {"a": 1}  ') == '{"a": 1}'


class TestParsePlan:
    def test_full_plan(self) -> None:
        plan = parse_plan(json.dumps(PLAN), tokens_used=1234)

        assert plan.summary == "Add a cache layer"
        assert plan.tokens_used == 1234
        assert plan.dependencies_to_add == ["lru-cache"]
        assert plan.risks == ["Stale reads"]
        assert plan.steps[0] == Step(
            title="Create cache module",
            description="LRU cache keyed by URL",
            files_to_create=["src/cache.ts"],
            code_changes="export class Cache {}",
        )
        assert plan.steps[1].files_to_modify == ["src/api.ts"]
        assert plan.steps[1].code_changes == ""

    def test_fenced_plan(self) -> None:
        plan = parse_plan(f"```json\n{json.dumps(PLAN, indent=2)}\n```")
        assert len(plan.steps) == 2

    def test_missing_fields_default(self) -> None:
        assert parse_plan('{"summary": "tiny"}') == Plan(summary="tiny")

    def test_invalid_json(self) -> None:
        with pytest.raises(PlanParseError, match="Invalid JSON response from model"):
            parse_plan("I think you should add a cache.")

    def test_non_object(self) -> None:
        with pytest.raises(PlanParseError, match="must be a JSON object"):
            parse_plan("[1, 2]")

    def test_bad_steps(self) -> None:
        with pytest.raises(PlanParseError, match="steps must be a list"):
            parse_plan('{"summary": "x", "steps": "do it"}')
        with pytest.raises(PlanParseError, match="not an object"):
            parse_plan('{"summary": "x", "steps": ["do it"]}')


class TestPlanToMarkdown:
    def test_full_plan(self) -> None:
        text = plan_to_markdown(parse_plan(json.dumps(PLAN)), "add caching")
        assert text.startswith("# add caching\n\n## Summary\n\nAdd a cache layer\n")
        assert "### 1. Create cache module\n\nLRU cache keyed by URL\n" in text
        assert "**Files to create:**\n- `src/cache.ts`" in text
        assert "export class Cache {}" in text
        assert "### 2. Wire it in\n\n**Files to modify:**\n- `src/api.ts`" in text
        assert "## Dependencies to Add\n\n- lru-cache" in text
        assert "## Risks\n\n- Stale reads" in text

    def test_summary_only(self) -> None:
        text = plan_to_markdown(Plan(summary=""), "x")
        assert "_No summary_" in text
        assert "## Implementation Steps" not in text
        assert "## Risks" not in text

"""Transcript compaction that preserves tool-call/result pairing.

A transcript looks like:

    [system, user, (assistant[tool_calls], tool, tool, ...)*, ..., assistant]

Once it grows past the budget's prune threshold, prune_transcript keeps:

- the pinned system and initial user messages,
- the trailing `recent_to_keep` messages, with the cut moved back so the
  window never opens on a tool result whose assistant message was cut,
- middle assistant groups only when whole and useful: every tool call has
  its result in the middle and not every result is a failure.

Groups are kept or dropped as units, so every retained tool message still
has its assistant message in front of it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from plnr.core.llm.provider import Message, Role

_log = logging.getLogger("plnr.agent.pruner")

FAILURE_MARKERS: tuple[str, ...] = ("not found", "no matches", "failed", "not allowed")

PINNED_COUNT = 2

MEDIUM_WINDOW = 500_000
LARGE_WINDOW = 2_000_000


class ContextBudgetClass(Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


@dataclass(frozen=True)
class ContextBudget:
    budget_class: ContextBudgetClass
    recent_to_keep: int
    prune_threshold: int


_BUDGETS = {
    ContextBudgetClass.SMALL: ContextBudget(ContextBudgetClass.SMALL, 8, 15),
    ContextBudgetClass.MEDIUM: ContextBudget(ContextBudgetClass.MEDIUM, 10, 20),
    ContextBudgetClass.LARGE: ContextBudget(ContextBudgetClass.LARGE, 15, 30),
}


def budget_for_window(context_window: int) -> ContextBudget:
    """Map a declared context window (tokens) to its retention budget."""
    if context_window >= LARGE_WINDOW:
        return _BUDGETS[ContextBudgetClass.LARGE]
    if context_window >= MEDIUM_WINDOW:
        return _BUDGETS[ContextBudgetClass.MEDIUM]
    return _BUDGETS[ContextBudgetClass.SMALL]


def is_failure(content: str | None) -> bool:
    text = (content or "").lower()
    return any(marker in text for marker in FAILURE_MARKERS)


def _owner_index(messages: Sequence[Message]) -> dict[str, int]:
    owners: dict[str, int] = {}
    for i, msg in enumerate(messages):
        if msg.has_tool_calls:
            for call in msg.tool_calls:
                owners[call.id] = i
    return owners


def _adjust_cut(messages: Sequence[Message], cut: int) -> int:
    """Move the recent-window start back onto the assistant owning a tool result."""
    owners = _owner_index(messages)
    while PINNED_COUNT < cut < len(messages) and messages[cut].role == Role.TOOL:
        owner = owners.get(messages[cut].tool_call_id or "")
        if owner is None or owner >= cut or owner < PINNED_COUNT:
            break
        cut = owner
    return cut


def _filter_middle(middle: Sequence[Message]) -> list[Message]:
    results = {m.tool_call_id: m for m in middle if m.role == Role.TOOL}
    kept_ids: set[str] = set()
    kept: list[Message] = []
    incomplete = failed = 0

    for msg in middle:
        if msg.has_tool_calls:
            group = [results.get(call.id) for call in msg.tool_calls]
            if any(r is None for r in group):
                incomplete += 1
                continue
            if all(is_failure(r.content) for r in group):
                failed += 1
                continue
            kept_ids.update(call.id for call in msg.tool_calls)
            kept.append(msg)
        elif msg.role == Role.TOOL:
            if msg.tool_call_id in kept_ids:
                kept.append(msg)
        else:
            kept.append(msg)

    if incomplete or failed:
        _log.debug("Dropped %d incomplete and %d failed tool groups", incomplete, failed)
    return kept


def _drop_orphans(messages: Sequence[Message]) -> list[Message]:
    """Remove tool messages whose assistant message is not in front of them."""
    seen: set[str] = set()
    out: list[Message] = []
    for msg in messages:
        if msg.role == Role.TOOL:
            if msg.tool_call_id not in seen:
                continue
            seen.discard(msg.tool_call_id)
        elif msg.has_tool_calls:
            seen.update(call.id for call in msg.tool_calls)
        out.append(msg)
    return out


def prune_transcript(messages: Sequence[Message], budget: ContextBudget) -> list[Message]:
    """Return a compacted copy of the transcript.

    Transcripts at or below the prune threshold are returned unchanged.
    """
    if len(messages) <= budget.prune_threshold:
        return list(messages)

    pinned = list(messages[:PINNED_COUNT])
    cut = _adjust_cut(messages, max(PINNED_COUNT, len(messages) - budget.recent_to_keep))
    middle = messages[PINNED_COUNT:cut]
    recent = _drop_orphans(messages[cut:])

    pruned = pinned + _filter_middle(middle) + recent
    _log.debug("Pruned transcript %d -> %d messages (%s budget)", len(messages), len(pruned), budget.budget_class.value)
    return pruned


def find_pairing_violations(messages: Sequence[Message]) -> list[str]:
    """Describe every place the transcript breaks call/result pairing.

    A trailing assistant message still waiting for its results is not a
    violation.
    """
    problems: list[str] = []
    open_calls: dict[str, int] = {}
    answered: set[str] = set()

    for i, msg in enumerate(messages):
        if msg.role == Role.TOOL:
            call_id = msg.tool_call_id or ""
            if call_id in answered:
                problems.append(f"message {i}: duplicate result for {call_id}")
            elif call_id not in open_calls:
                problems.append(f"message {i}: result for unknown call {call_id}")
            else:
                open_calls.pop(call_id)
                answered.add(call_id)
            continue

        # A non-tool message closes every group opened before it
        for call_id, owner in open_calls.items():
            problems.append(f"message {owner}: call {call_id} has no result")
        open_calls.clear()

        if msg.has_tool_calls:
            for call in msg.tool_calls:
                open_calls[call.id] = i

    return problems

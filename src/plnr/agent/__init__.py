"""Agent loop, transcript pruning and planning."""

from plnr.agent.loop import AgentCallbacks, AgentLoop, AgentOutcome, AgentResult
from plnr.agent.plan import Plan, PlanParseError, Step, parse_plan, plan_to_markdown
from plnr.agent.planner import Planner, PlanningCancelled, PlanningFailed
from plnr.agent.pruner import (
    FAILURE_MARKERS,
    ContextBudget,
    ContextBudgetClass,
    budget_for_window,
    find_pairing_violations,
    prune_transcript,
)
from plnr.agent.security import Finding, parse_findings

__all__ = [
    "AgentLoop",
    "AgentCallbacks",
    "AgentOutcome",
    "AgentResult",
    "Plan",
    "Step",
    "PlanParseError",
    "parse_plan",
    "plan_to_markdown",
    "Finding",
    "parse_findings",
    "Planner",
    "PlanningCancelled",
    "PlanningFailed",
    "ContextBudget",
    "ContextBudgetClass",
    "FAILURE_MARKERS",
    "budget_for_window",
    "prune_transcript",
    "find_pairing_violations",
]

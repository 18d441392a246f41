"""
Reasoning trace generation and export.

This module documents the rule checks a goal validation evaluated. Traces
are exported to JSON and Markdown for human review and auditability.
Nothing here reads the clock: callers that want a timestamped file name
pass the stamp in.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from src.schemas import (
    GoalType,
    ReasoningTrace,
    RuleCheck,
    ValidationResult,
    ValidationTier,
)

logger = logging.getLogger(__name__)


class ReasoningTraceBuilder:
    """
    Builds and exports reasoning traces for goal validations.

    The reasoning trace is the complete audit trail showing:
    - Which rules were evaluated
    - What values were found and the thresholds they met
    - Which tier each rule contributed
    - What the final decision was
    """

    def __init__(self, goal_types: Optional[List[GoalType]] = None):
        self.trace = ReasoningTrace(goal_types=list(goal_types or []))
        self.result: Optional[ValidationResult] = None

    def add_check(
        self,
        rule: str,
        passed: bool,
        reasoning: str,
        value: Optional[Any] = None,
        threshold: Optional[Any] = None,
        tier: ValidationTier = ValidationTier.NONE,
    ) -> None:
        """
        Add a rule check to the trace.

        Args:
            rule: Name of the rule evaluated
            passed: Whether the rule passed
            reasoning: Explanation of the check result
            value: Value the rule looked at
            threshold: Threshold it was compared against
            tier: Tier the rule contributed
        """
        self.trace.checks.append(
            RuleCheck(
                rule=rule,
                passed=passed,
                value=value,
                threshold=threshold,
                tier=tier,
                reasoning=reasoning,
            )
        )

    def set_result(self, result: str, final_tier: Optional[ValidationTier] = None) -> None:
        """
        Set the final validation result.

        Args:
            result: One of "approved", "refused", "warning"
            final_tier: Final tier, when known
        """
        self.trace.result = result
        if final_tier is not None:
            self.trace.final_tier = final_tier

    def export_to_json(self) -> dict:
        return self.trace.model_dump(mode="json")

    def export_to_markdown(self) -> str:
        """
        Export trace to human-readable Markdown format.

        Returns:
            Markdown-formatted trace report
        """
        lines = []

        lines.append("# Reasoning Trace")
        lines.append("")
        goals = ", ".join(g.value for g in self.trace.goal_types) or "none"
        lines.append(f"**Goals:** `{goals}`")
        lines.append(f"**Result:** **{self.trace.result.upper()}**")
        lines.append(f"**Tier:** `{self.trace.final_tier.value}`")
        if self.result is not None:
            lines.append(
                f"**Rate:** {self.result.weekly_rate_kg:.2f} kg/week "
                f"({self.result.weekly_rate_pct:.2f}% body weight)"
            )
            lines.append(f"**Calculations Version:** `{self.result.calculations_version}`")
        lines.append("")
        lines.append("---")
        lines.append("")

        lines.append("## Rule Checks")
        lines.append("")

        if not self.trace.checks:
            lines.append("*No rule checks performed*")
            lines.append("")
        else:
            passed_checks = [c for c in self.trace.checks if c.passed]
            failed_checks = [c for c in self.trace.checks if not c.passed]

            lines.append(f"**Summary:** {len(passed_checks)}/{len(self.trace.checks)} rules passed")
            lines.append("")

            if failed_checks:
                lines.append("### ❌ Failed Checks")
                lines.append("")
                for check in failed_checks:
                    lines.extend(self._check_lines(check))

            if passed_checks:
                lines.append("### ✅ Passed Checks")
                lines.append("")
                for check in passed_checks:
                    lines.extend(self._check_lines(check))

        lines.append("---")
        lines.append("")

        if self.result is not None and self.result.alternatives:
            lines.append("## Alternatives")
            lines.append("")
            lines.append("| Option | kg/week | Weeks |")
            lines.append("|--------|---------|-------|")
            for alt in self.result.alternatives:
                lines.append(f"| {alt.label} | {alt.weekly_rate_kg:.2f} | {alt.timeline_weeks} |")
            lines.append("")
            lines.append("---")
            lines.append("")

        lines.append("## Final Decision")
        lines.append("")

        if self.trace.result == "approved":
            lines.append("✅ **APPROVED**")
            lines.append("")
            lines.append("Every rule passed. The goal is within sustainable limits.")
        elif self.trace.result == "warning":
            lines.append("⚠️ **APPROVED WITH WARNINGS**")
            lines.append("")
            lines.append("The goal can proceed, but review the failed checks and alternatives above.")
        else:
            lines.append("⛔ **REFUSED**")
            lines.append("")
            lines.append("The goal was blocked. Address the blocking rule before proceeding.")

        if self.result is not None and self.result.messages:
            lines.append("")
            lines.append("**Messages:**")
            for i, message in enumerate(self.result.messages, 1):
                lines.append(f"{i}. {message}")

        lines.append("")
        return "\n".join(lines)

    @staticmethod
    def _check_lines(check: RuleCheck) -> List[str]:
        lines = [f"#### `{check.rule}`"]
        if check.value is not None:
            lines.append(f"- **Value:** `{check.value}`")
        if check.threshold is not None:
            lines.append(f"- **Threshold:** `{check.threshold}`")
        if check.tier != ValidationTier.NONE:
            lines.append(f"- **Tier:** `{check.tier.value}`")
        lines.append(f"- **Reasoning:** {check.reasoning}")
        lines.append("")
        return lines

    def save_to_file(
        self,
        output_dir: Path,
        format: str = "json",
        stamp: Optional[str] = None,
    ) -> Path:
        """
        Save trace to file in specified format.

        Args:
            output_dir: Directory to save trace file
            format: Output format ("json" or "markdown")
            stamp: Optional suffix for the file name, e.g. a timestamp

        Returns:
            Path to saved file

        Raises:
            ValueError: If format is not supported
        """
        if format not in ("json", "markdown"):
            raise ValueError(f"Unsupported format: {format}. Use 'json' or 'markdown'")

        output_dir.mkdir(parents=True, exist_ok=True)

        goals = "_".join(g.value for g in self.trace.goal_types) or "goal"
        name = f"trace_{goals}_{stamp}" if stamp else f"trace_{goals}"

        if format == "json":
            filepath = output_dir / f"{name}.json"
            with open(filepath, "w") as f:
                json.dump(self.export_to_json(), f, indent=2, default=str)
        else:
            filepath = output_dir / f"{name}.md"
            with open(filepath, "w") as f:
                f.write(self.export_to_markdown())

        logger.info("Saved reasoning trace to %s", filepath)
        return filepath

    @classmethod
    def from_validation_result(cls, result: ValidationResult) -> "ReasoningTraceBuilder":
        """Create a builder around the trace of an existing ValidationResult."""
        builder = cls()
        builder.trace = result.reasoning_trace
        builder.result = result
        return builder


def save_trace_from_result(
    result: ValidationResult,
    output_dir: Path,
    format: str = "json",
    stamp: Optional[str] = None,
) -> Path:
    """
    Convenience function to save the trace of a ValidationResult.

    Args:
        result: ValidationResult containing the trace
        output_dir: Directory to save trace
        format: Output format ("json" or "markdown")
        stamp: Optional file name suffix

    Returns:
        Path to saved file
    """
    return ReasoningTraceBuilder.from_validation_result(result).save_to_file(
        output_dir, format, stamp
    )


def load_trace_from_file(filepath: Path) -> ReasoningTrace:
    """
    Load a reasoning trace from JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If JSON is invalid
    """
    if not filepath.exists():
        raise FileNotFoundError(f"Trace file not found: {filepath}")

    with open(filepath, "r") as f:
        data = json.load(f)

    try:
        return ReasoningTrace.model_validate(data)
    except ValueError as e:
        raise ValueError(f"Invalid trace file: {e}")

"""Code problems: editor diagnostics fed to the problems tab and panel.

Severity is an open 0-10 scale. Classified at render time only:
> 5 is an error, 3..5 a warning, anything lower is ignored.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

logger = logging.getLogger(__name__)

ERROR_SEVERITY = 5
WARNING_SEVERITY = 2


def _as_int(value: Any, name: str) -> int:
    """Integral number or numeric string. Fractions are rejected, not truncated."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{name} must be an integer, got {value!r}")
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f"{name} must be an integer, got {type(value).__name__}")


@dataclass(frozen=True)
class CodeProblem:
    """Single diagnostic reported by the bot code editor."""
    start_line_number: int
    start_column: int
    message: str
    severity: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CodeProblem":
        """Accept the editor's camelCase shape or snake_case keys."""
        return cls(
            start_line_number=_as_int(
                data.get("startLineNumber", data.get("start_line_number", 0)), "startLineNumber"),
            start_column=_as_int(
                data.get("startColumn", data.get("start_column", 0)), "startColumn"),
            message=str(data.get("message", "")),
            severity=_as_int(data.get("severity", 0), "severity"),
        )

    @property
    def is_error(self) -> bool:
        return self.severity > ERROR_SEVERITY

    @property
    def is_warning(self) -> bool:
        return WARNING_SEVERITY < self.severity <= ERROR_SEVERITY


@dataclass
class ProblemSummary:
    errors: List[CodeProblem] = field(default_factory=list)
    warnings: List[CodeProblem] = field(default_factory=list)


def partition_problems(problems: Iterable[CodeProblem]) -> ProblemSummary:
    """Split problems into errors and warnings. Low-severity ones are dropped."""
    summary = ProblemSummary()
    for problem in problems:
        if problem.is_error:
            summary.errors.append(problem)
        elif problem.is_warning:
            summary.warnings.append(problem)
    return summary


def problems_by_severity(summary: ProblemSummary) -> List[CodeProblem]:
    """Errors then warnings, each group most severe first (ties keep input order)."""
    def by_severity(p: CodeProblem) -> int:
        return -p.severity
    return sorted(summary.errors, key=by_severity) + sorted(summary.warnings, key=by_severity)


def format_problem_counts(summary: ProblemSummary) -> str:
    """Badge text for the problems tab. Empty buckets render nothing."""
    parts = []
    if summary.errors:
        parts.append(f"[red]▲ {len(summary.errors)}[/red]")
    if summary.warnings:
        parts.append(f"[yellow]▲ {len(summary.warnings)}[/yellow]")
    return " ".join(parts)


def load_problems(path: str) -> List[CodeProblem]:
    """Read a JSON list of problems written by the editor.

    A missing or unreadable file yields an empty list; the bar then just
    shows no problems.
    """
    if not path:
        return []
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not read problems file %s: %s", path, e)
        return []

    if isinstance(data, dict):
        data = data.get("problems", [])
    if not isinstance(data, list):
        logger.warning("Problems file %s does not hold a list", path)
        return []

    problems = []
    for item in data:
        if not isinstance(item, dict):
            continue
        try:
            problems.append(CodeProblem.from_dict(item))
        except (ValueError, TypeError) as e:
            logger.warning("Skipping malformed problem %r: %s", item, e)
    return problems


def problems_to_dicts(problems: Iterable[CodeProblem]) -> List[Dict[str, Any]]:
    return [
        {
            "startLineNumber": p.start_line_number,
            "startColumn": p.start_column,
            "message": p.message,
            "severity": p.severity,
        }
        for p in problems
    ]

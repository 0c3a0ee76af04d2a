"""
Tolerant parsers for model output.

Models wrap answers in prose and code fences, and sometimes stop mid-way.
These helpers salvage whatever structure is there and never raise.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

import structlog

from devswarm.agents.models import Complexity, SolutionOption, TaskAnalysis

logger = structlog.get_logger(__name__)

_SECTION = re.compile(
    r"\b(PROBLEM|CONTEXT|CONSTRAINTS)\s*:\s*(.*?)(?=\b(?:PROBLEM|CONTEXT|CONSTRAINTS)\s*:|\Z)",
    re.DOTALL,
)
_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")
_NUMBERED_STEP = re.compile(r"^\s*\d+[.)]\s+(.+?)\s*$", re.MULTILINE)
_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


def parse_analysis(text: str) -> TaskAnalysis:
    """
    Parse ``PROBLEM:`` / ``CONTEXT:`` / ``CONSTRAINTS:`` sections.

    Missing sections come back empty; constraints are split one per line
    with bullets removed.
    """
    sections: dict[str, str] = {}
    for match in _SECTION.finditer(text or ""):
        sections.setdefault(match.group(1).upper(), match.group(2).strip())

    constraints = []
    # Constraints end at the first blank line; anything after is prose
    block = sections.get("CONSTRAINTS", "").split("\n\n")[0]
    for line in block.splitlines():
        line = _BULLET.sub("", line).strip()
        if line:
            constraints.append(line)

    return TaskAnalysis(
        problem=sections.get("PROBLEM", ""),
        context=sections.get("CONTEXT", ""),
        constraints=constraints,
    )


def extract_json_array(text: str) -> list[dict[str, Any]]:
    """
    Extract a list of objects from model output.

    Handles leading/trailing prose, code fences, an ``{"options": [...]}``
    wrapper and arrays truncated after some complete objects.

    Returns:
        The objects found (empty list when nothing could be salvaged)
    """
    if not text:
        return []

    fenced = _FENCE.search(text)
    candidates = [fenced.group(1), text] if fenced else [text]

    for candidate in candidates:
        items = _parse_candidate(candidate)
        if items:
            return items
    return []


def _parse_candidate(text: str) -> list[dict[str, Any]]:
    if "[" not in text:
        brace = text.find("{")
        if brace == -1:
            return []
        try:
            data, _ = json.JSONDecoder().raw_decode(text, brace)
        except json.JSONDecodeError:
            return []
        if isinstance(data, dict) and isinstance(data.get("options"), list):
            return [o for o in data["options"] if isinstance(o, dict)]
        return [data] if isinstance(data, dict) else []

    end = text.rfind("]")
    start = text.find("[")
    # Prose may contain brackets too; try each opening bracket in turn
    while start != -1:
        if end > start:
            try:
                data = json.loads(text[start : end + 1])
            except json.JSONDecodeError:
                pass
            else:
                if isinstance(data, list):
                    return [o for o in data if isinstance(o, dict)]
        items = _salvage_objects(text, start + 1)
        if items:
            return items
        start = text.find("[", start + 1)
    return []


def _salvage_objects(text: str, index: int) -> list[dict[str, Any]]:
    """Decode complete objects one by one until the array breaks off."""
    decoder = json.JSONDecoder()
    items: list[dict[str, Any]] = []
    while index < len(text):
        while index < len(text) and text[index] in " \t\r\n,":
            index += 1
        if index >= len(text) or text[index] != "{":
            break
        try:
            obj, index = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            logger.debug("json_array_truncated", salvaged=len(items))
            break
        if isinstance(obj, dict):
            items.append(obj)
    return items


def parse_numbered_steps(text: str) -> list[str]:
    """Lines of the form ``1. step`` or ``2) step``, numbering stripped."""
    return [m.group(1) for m in _NUMBERED_STEP.finditer(text or "")]


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if str(v).strip()]
    return [str(value)]


def _float(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(number) else number


def option_from_dict(raw: dict[str, Any], option_id: str) -> SolutionOption:
    """
    Build a ``SolutionOption`` from loosely structured model output.

    Missing fields get defaults; confidence is clamped to [0, 1].
    """
    if "estimated_duration_seconds" in raw:
        duration = _float(raw["estimated_duration_seconds"], 3600.0)
    elif "estimatedTime" in raw:
        duration = _float(raw["estimatedTime"], 3_600_000.0) / 1000
    else:
        duration = 3600.0

    title = str(raw.get("title") or "").strip() or "Untitled option"
    return SolutionOption(
        option_id=option_id,
        title=title,
        description=str(raw.get("description") or ""),
        approach=str(raw.get("approach") or ""),
        pros=_string_list(raw.get("pros")),
        cons=_string_list(raw.get("cons")),
        estimated_duration_seconds=max(0.0, duration),
        complexity=Complexity.parse(raw.get("complexity")),
        confidence=_float(raw.get("confidence"), 0.5),
        files_to_modify=_string_list(raw.get("files_to_modify", raw.get("filesToModify"))),
        risks=_string_list(raw.get("risks")),
    )

"""
Offline, deterministic inference provider.

Recognizes the prompt formats used by the cognitive pipeline and answers
them with plausible structured text derived from the prompt itself. Used
by the CLI demo and by tests.
"""

from __future__ import annotations

import hashlib
import json
import re

from devswarm.providers.base import InferenceProvider

_TASK_LINE = re.compile(r"^Task:\s*(.+)$", re.MULTILINE)
_FILE_HINT = re.compile(r"\b[\w./-]+\.(?:py|ts|tsx|js|go|rs|java|md|json|toml)\b")


class EchoInferenceProvider(InferenceProvider):
    """Answers pipeline prompts without any model."""

    name = "echo"

    def __init__(self, option_count: int = 3) -> None:
        self.option_count = option_count
        self.calls = 0

    async def complete(self, prompt: str, model_hint: str | None = None) -> str:
        self.calls += 1
        subject = self._subject(prompt)

        if "JSON array" in prompt:
            return self._options(prompt, subject)
        if "PROBLEM:" in prompt and "CONSTRAINTS:" in prompt:
            return (
                f"PROBLEM: {subject}\n"
                "CONTEXT: Existing project structure and conventions apply.\n"
                "CONSTRAINTS:\n- Keep public interfaces stable\n- Cover the change with tests"
            )
        if "numbered steps" in prompt:
            return (
                f"1. Review the code related to: {subject}\n"
                "2. Implement the change\n"
                "3. Add or update tests\n"
                "4. Update documentation"
            )
        return f"The selected approach addresses '{subject}' with the least risk."

    @staticmethod
    def _subject(prompt: str) -> str:
        match = _TASK_LINE.search(prompt)
        if match:
            return match.group(1).strip()[:200]
        lines = prompt.strip().splitlines()
        return lines[0].strip()[:200] if lines else ""

    def _options(self, prompt: str, subject: str) -> str:
        digest = hashlib.sha256(prompt.encode("utf-8")).digest()
        files = list(dict.fromkeys(_FILE_HINT.findall(prompt)))[:3]
        options = []
        for n in range(self.option_count):
            options.append(
                {
                    "title": f"Approach {n + 1}",
                    "description": f"Option {n + 1} for {subject}",
                    "approach": "Incremental change with tests" if n == 0 else "Broader rework",
                    "pros": ["simple", "maintainable"] if n == 0 else ["flexible"],
                    "cons": [] if n == 0 else ["more effort"],
                    "complexity": ("low", "medium", "high")[n % 3],
                    "confidence": round(0.5 + digest[n % len(digest)] / 255 * 0.4, 2),
                    "estimated_duration_seconds": 1800 * (n + 1),
                    "files_to_modify": files,
                    "risks": [] if n == 0 else ["regressions"],
                }
            )
        return json.dumps(options, indent=2)

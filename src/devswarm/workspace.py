"""
Workspace and project context capabilities.

The swarm never edits files itself. It reads the workspace to give agents
a picture of the project and to let the quality gate inspect files that a
solution touches.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

IGNORED_DIRECTORIES = frozenset(
    {
        ".git",
        ".hg",
        ".venv",
        "venv",
        "node_modules",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        "dist",
        "build",
        "out",
    }
)

ENTRY_POINT_NAMES = frozenset(
    {
        "main.py",
        "__main__.py",
        "app.py",
        "manage.py",
        "index.js",
        "index.ts",
        "main.ts",
        "main.go",
        "main.rs",
        "server.js",
    }
)

# Marker file -> pattern reported to agents
PATTERN_MARKERS: dict[str, str] = {
    "pyproject.toml": "python-packaging",
    "setup.py": "python-packaging",
    "requirements.txt": "python-requirements",
    "package.json": "node",
    "tsconfig.json": "typescript",
    "Dockerfile": "docker",
    "docker-compose.yml": "docker-compose",
    "go.mod": "go-modules",
    "Cargo.toml": "cargo",
    "Makefile": "make",
}

STYLE_MARKERS: dict[str, str] = {
    ".editorconfig": "editorconfig",
    ".prettierrc": "prettier",
    ".eslintrc": "eslint",
    ".eslintrc.json": "eslint",
    "ruff.toml": "ruff",
    ".flake8": "flake8",
}


@dataclass
class ProjectContext:
    """Snapshot of the project an agent is working on."""

    files: list[str] = field(default_factory=list)
    directories: list[str] = field(default_factory=list)
    entry_points: list[str] = field(default_factory=list)
    patterns: list[str] = field(default_factory=list)
    standards: dict[str, str] = field(default_factory=dict)
    dependencies: dict[str, list[str]] = field(default_factory=dict)

    def summary(self, max_items: int = 10) -> str:
        """Short multi-line description for prompts."""
        lines = [
            f"Files: {len(self.files)}, directories: {len(self.directories)}",
            f"Entry points: {', '.join(self.entry_points[:max_items]) or 'unknown'}",
            f"Patterns: {', '.join(self.patterns[:max_items]) or 'unknown'}",
            f"Architecture: {self.standards.get('architecture', 'unknown')}",
            f"Code style: {self.standards.get('code_style', 'unknown')}",
        ]
        return "\n".join(lines)


class WorkspaceReader(ABC):
    """Read-only access to workspace files, by workspace-relative path."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether a file exists."""

    @abstractmethod
    async def read_text(self, path: str) -> str:
        """Read a file as text."""


class ProjectContextProvider(ABC):
    """Source of project snapshots for the cognitive pipeline."""

    @abstractmethod
    async def snapshot(self) -> ProjectContext:
        """Take a snapshot of the project."""


class KnowledgeSearcher(ABC):
    """Looks up background knowledge relevant to a task."""

    @abstractmethod
    async def search(self, query: str, limit: int = 3) -> list[str]:
        """Return up to ``limit`` snippets relevant to the query."""


class NullKnowledgeSearcher(KnowledgeSearcher):
    """Knowledge searcher that never finds anything."""

    async def search(self, query: str, limit: int = 3) -> list[str]:
        return []


class FileSystemWorkspace(WorkspaceReader):
    """
    Workspace reader rooted at a directory.

    Paths are resolved against the root; anything that resolves outside it
    (``..`` segments, absolute paths, symlinks) is treated as missing.
    """

    def __init__(self, root: Path | str, max_file_bytes: int = 1_000_000) -> None:
        self.root = Path(root).resolve()
        self.max_file_bytes = max_file_bytes

    def resolve(self, path: str) -> Path | None:
        """
        Resolve a workspace-relative path.

        Args:
            path: Path relative to the workspace root

        Returns:
            Absolute path, or None when the path escapes the root
        """
        candidate = (self.root / path).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            logger.warning("workspace_path_rejected", path=path, root=str(self.root))
            return None
        return candidate

    async def exists(self, path: str) -> bool:
        resolved = self.resolve(path)
        if resolved is None:
            return False
        return await asyncio.to_thread(resolved.is_file)

    async def read_text(self, path: str) -> str:
        """
        Read a workspace file as UTF-8 text.

        Raises:
            FileNotFoundError: If the path is missing or escapes the root
            ValueError: If the file exceeds ``max_file_bytes``
        """
        resolved = self.resolve(path)
        if resolved is None:
            raise FileNotFoundError(path)
        size = (await asyncio.to_thread(resolved.stat)).st_size
        if size > self.max_file_bytes:
            raise ValueError(f"{path} is {size} bytes, limit is {self.max_file_bytes}")
        return await asyncio.to_thread(resolved.read_text, encoding="utf-8", errors="replace")


class StaticProjectContext(ProjectContextProvider):
    """Context provider returning a fixed snapshot."""

    def __init__(self, context: ProjectContext | None = None) -> None:
        self.context = context or ProjectContext()

    async def snapshot(self) -> ProjectContext:
        return self.context


class FileSystemProjectContext(ProjectContextProvider):
    """Context provider that scans a directory tree."""

    def __init__(self, root: Path | str, max_files: int = 2000) -> None:
        self.root = Path(root).resolve()
        self.max_files = max_files

    async def snapshot(self) -> ProjectContext:
        return await asyncio.to_thread(self._scan)

    def _scan(self) -> ProjectContext:
        context = ProjectContext()
        patterns: set[str] = set()
        styles: set[str] = set()

        stack = [self.root]
        while stack and len(context.files) < self.max_files:
            directory = stack.pop()
            try:
                entries = sorted(directory.iterdir(), key=lambda p: p.name)
            except OSError as e:
                logger.debug("project_scan_skipped", directory=str(directory), error=str(e))
                continue

            for entry in entries:
                if entry.name in IGNORED_DIRECTORIES or entry.name.startswith("."):
                    if entry.name in STYLE_MARKERS:
                        styles.add(STYLE_MARKERS[entry.name])
                    continue
                relative = entry.relative_to(self.root).as_posix()
                if entry.is_dir():
                    context.directories.append(relative)
                    stack.append(entry)
                    if entry.name in ("tests", "test", "__tests__"):
                        patterns.add("tests")
                    continue

                context.files.append(relative)
                if entry.name in ENTRY_POINT_NAMES:
                    context.entry_points.append(relative)
                if entry.name in PATTERN_MARKERS:
                    patterns.add(PATTERN_MARKERS[entry.name])
                if entry.name in STYLE_MARKERS:
                    styles.add(STYLE_MARKERS[entry.name])
                if len(context.files) >= self.max_files:
                    break

        context.files.sort()
        context.directories.sort()
        context.entry_points.sort()
        context.patterns = sorted(patterns)
        if styles:
            context.standards["code_style"] = ", ".join(sorted(styles))
        if "src" in context.directories:
            context.standards["architecture"] = "src layout"

        logger.debug(
            "project_scanned",
            root=str(self.root),
            files=len(context.files),
            directories=len(context.directories),
        )
        return context

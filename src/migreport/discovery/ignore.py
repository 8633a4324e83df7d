"""Layered gitignore-style exclusion rules for project discovery.

Rules come from exactly one file source plus the built-in defaults:

1. an explicit override file (``--gitignore``), if given;
2. otherwise the project's own ``.gitignore``, if present;
3. always, :data:`DEFAULT_IGNORE_PATTERNS`.

A missing override is not fatal: a warning is logged and only the
defaults apply.  Matching follows git's semantics (directory patterns
exclude everything beneath them, ``!pattern`` re-includes) via
:class:`pathspec.GitIgnoreSpec`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import pathspec

from migreport.exceptions import IgnoreFileNotFound

logger = logging.getLogger(__name__)

PROJECT_IGNORE_FILE = ".gitignore"

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    # Dependencies and build output
    "node_modules",
    ".next",
    "dist",
    "build",
    # Generated or starter-kit boilerplate
    "local-containers",
    "spa-starters",
    "byoc",
    "feaas",
    "temp",
    "api",
    "next-env.d.ts",
    "generate-component-builder",
    "scaffold-component",
    "sitemap-fetcher",
    "site-resolver",
    "extract-path",
    # Test fixtures and stories
    "__tests__",
    "__mocks__",
    "test-data",
    "*.stories.ts",
    "*.stories.tsx",
)


def normalize_relative_path(path: str) -> str:
    """Convert *path* to the canonical POSIX form used for matching."""
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/")


def _read_patterns(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        raise IgnoreFileNotFound(str(path)) from exc


class IgnoreRuleSet:
    """Ordered ignore patterns evaluated against project-relative paths.

    Usage::

        rules = IgnoreRuleSet.load(Path("/work/my-jss-app"))
        rules.should_ignore("node_modules/react/package.json")  # True
    """

    def __init__(self, patterns: Iterable[str], source: str = "defaults") -> None:
        self.patterns: tuple[str, ...] = tuple(patterns)
        self.source = source
        self._spec = pathspec.GitIgnoreSpec.from_lines(self.patterns)

    @classmethod
    def load(
        cls,
        project_root: Path,
        override_path: str | Path | None = None,
    ) -> IgnoreRuleSet:
        """Build the rule set for *project_root*.

        Args:
            project_root: Root directory of the project being analysed.
            override_path: Optional ignore file used instead of the
                project's ``.gitignore``.  Relative paths resolve against
                *project_root*.

        Returns:
            An :class:`IgnoreRuleSet` whose ``source`` is ``"override"``,
            ``"project"`` or ``"defaults"``.
        """
        file_patterns: list[str] = []
        source = "defaults"

        if override_path is not None:
            resolved = Path(override_path)
            if not resolved.is_absolute():
                resolved = project_root / resolved
            try:
                file_patterns = _read_patterns(resolved)
                source = "override"
                logger.info("Loaded %d ignore rules from %s", len(file_patterns), resolved)
            except IgnoreFileNotFound as exc:
                logger.warning("%s; falling back to built-in ignore rules", exc)
        else:
            project_ignore = project_root / PROJECT_IGNORE_FILE
            if project_ignore.is_file():
                try:
                    file_patterns = _read_patterns(project_ignore)
                    source = "project"
                    logger.info(
                        "Loaded %d ignore rules from %s", len(file_patterns), project_ignore
                    )
                except IgnoreFileNotFound as exc:
                    logger.warning("%s; using built-in ignore rules only", exc)

        return cls([*file_patterns, *DEFAULT_IGNORE_PATTERNS], source=source)

    def should_ignore(self, relative_path: str) -> bool:
        """Return True if *relative_path* is excluded by any active rule."""
        normalized = normalize_relative_path(relative_path)
        if not normalized:
            return False
        return self._spec.match_file(normalized)

    def __len__(self) -> int:
        return len(self.patterns)

    def __repr__(self) -> str:
        return f"IgnoreRuleSet(source={self.source!r}, patterns={len(self.patterns)})"

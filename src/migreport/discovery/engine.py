"""Project file discovery: enumerate, ignore, classify, select.

Walks the project with ``os.walk()``, keeping TypeScript sources and
``package.json`` manifests at any depth (dot-directories included), drops
anything the :class:`IgnoreRuleSet` excludes, classifies the rest and
keeps only the roles of interest.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from migreport.discovery.classifier import classify_file_type, is_selectable
from migreport.discovery.ignore import IgnoreRuleSet
from migreport.events import PipelineEvents
from migreport.exceptions import PathNotFoundError
from migreport.models import DEFAULT_ROLES_OF_INTEREST, FileRecord, FileRole

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS: tuple[str, ...] = (".ts", ".tsx")
PACKAGE_MANIFEST = "package.json"


@dataclass
class DiscoveryResult:
    """Selected files plus the counts reported to the user.

    Attributes:
        records: Files selected for analysis, sorted by relative path.
        relevant: Every candidate that survived the ignore rules, Module
            files included, sorted by relative path.
        by_role: Count of relevant files per role, including ``Module``.
    """

    records: list[FileRecord] = field(default_factory=list)
    relevant: list[FileRecord] = field(default_factory=list)
    by_role: dict[FileRole, int] = field(default_factory=dict)

    @property
    def relevant_count(self) -> int:
        return len(self.relevant)

    @property
    def selected_count(self) -> int:
        return len(self.records)


class FileDiscoveryEngine:
    """Finds the files of a project that should be sent for analysis.

    Usage::

        root = Path("/work/my-jss-app")
        engine = FileDiscoveryEngine(root, IgnoreRuleSet.load(root))
        for record in engine.discover():
            print(record.relative_path, record.role.value)
    """

    def __init__(
        self,
        project_root: str | Path,
        ignore_rules: IgnoreRuleSet,
        roles_of_interest: frozenset[FileRole] = DEFAULT_ROLES_OF_INTEREST,
        events: PipelineEvents | None = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.ignore_rules = ignore_rules
        self.roles_of_interest = frozenset(roles_of_interest)
        self.events = events or PipelineEvents()

    def discover(self) -> list[FileRecord]:
        """Return the selected files.

        Raises:
            PathNotFoundError: If the project root does not exist.
        """
        return self.discover_with_stats().records

    def discover_with_stats(self) -> DiscoveryResult:
        """Run discovery and also return relevant-file counts."""
        self._check_root()

        result = DiscoveryResult()
        for relative_path in self.iter_candidates():
            if self.ignore_rules.should_ignore(relative_path):
                logger.debug("Ignored %s", relative_path)
                continue

            self.events.file_discovered(relative_path)

            role = classify_file_type(relative_path)
            result.by_role[role] = result.by_role.get(role, 0) + 1
            self.events.file_classified(relative_path, role)

            record = FileRecord(
                absolute_path=str(self.project_root / relative_path),
                relative_path=relative_path,
                role=role,
            )
            result.relevant.append(record)
            if is_selectable(role, self.roles_of_interest):
                result.records.append(record)

        logger.info(
            "Discovered %d relevant files, %d selected for analysis",
            result.relevant_count,
            result.selected_count,
        )
        return result

    def iter_candidates(self) -> list[str]:
        """List candidate files as sorted POSIX paths relative to the root.

        Directories that the ignore rules exclude are pruned in place; git
        likewise never re-includes files beneath an excluded directory.
        """
        root = self.project_root
        candidates: list[str] = []

        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            rel_dir = current.relative_to(root).as_posix()
            prefix = "" if rel_dir == "." else rel_dir + "/"

            dirnames[:] = sorted(
                d for d in dirnames if not self.ignore_rules.should_ignore(f"{prefix}{d}/")
            )

            for filename in filenames:
                if filename == PACKAGE_MANIFEST or filename.endswith(SOURCE_EXTENSIONS):
                    candidates.append(f"{prefix}{filename}")

        candidates.sort()
        return candidates

    def _check_root(self) -> None:
        if not self.project_root.is_dir():
            raise PathNotFoundError(str(self.project_root))

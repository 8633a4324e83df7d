"""Tests for FileDiscoveryEngine against real temporary project trees."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, call

import pytest

from conftest import JSS_PROJECT_FILES
from migreport.discovery.engine import FileDiscoveryEngine
from migreport.discovery.ignore import IgnoreRuleSet
from migreport.events import PipelineEvents
from migreport.exceptions import PathNotFoundError
from migreport.models import FileRecord, FileRole


def _engine(root, roles=None, events=None, override=None):
    rules = IgnoreRuleSet.load(Path(root), override)
    if roles is None:
        return FileDiscoveryEngine(root, rules, events=events)
    return FileDiscoveryEngine(root, rules, frozenset(roles), events)


class TestScenario:
    """Component, middleware plugin, and manifests inside and outside node_modules."""

    def test_selects_three_files(self, spec_scenario_project):
        """node_modules is excluded; the remaining three files are selected."""
        records = _engine(spec_scenario_project).discover()

        assert [(r.relative_path, r.role) for r in records] == [
            ("package.json", FileRole.PACKAGE),
            ("src/components/Foo.tsx", FileRole.COMPONENT),
            ("src/middleware/plugins/bar.ts", FileRole.MIDDLEWARE),
        ]

    def test_absolute_paths(self, spec_scenario_project):
        """Absolute paths point at the real files."""
        records = _engine(spec_scenario_project).discover()

        for record in records:
            assert Path(record.absolute_path) == spec_scenario_project / record.relative_path
            assert Path(record.absolute_path).is_file()


class TestDiscoveryResult:
    """Counts and role selection on a fuller JSS tree."""

    def test_relevant_and_selected_counts(self, jss_project):
        """Relevant counts every non-ignored candidate; selected drops Module."""
        result = _engine(jss_project).discover_with_stats()

        expected_relevant = [p for p, role in JSS_PROJECT_FILES.items() if role]
        expected_selected = sorted(
            p for p, role in JSS_PROJECT_FILES.items() if role and role != "Module"
        )
        assert result.relevant_count == len(expected_relevant)
        assert [r.relative_path for r in result.records] == expected_selected
        assert result.selected_count == len(expected_selected)

    def test_roles_match_classifier(self, jss_project):
        """Each record carries the role its path classifies as."""
        records = _engine(jss_project).discover()

        for record in records:
            assert record.role.value == JSS_PROJECT_FILES[record.relative_path]

    def test_by_role_counts_include_module(self, jss_project):
        """by_role tallies every relevant file, Module included."""
        result = _engine(jss_project).discover_with_stats()

        assert result.by_role[FileRole.MODULE] == 1
        assert result.by_role[FileRole.PAGE] == 2
        assert sum(result.by_role.values()) == result.relevant_count

    def test_relevant_includes_unselected(self, jss_project):
        """Module files are relevant but never selected."""
        result = _engine(jss_project).discover_with_stats()

        relevant = {r.relative_path: r.role for r in result.relevant}
        assert relevant["src/components/helpers.ts"] is FileRole.MODULE
        assert "src/components/helpers.ts" not in [r.relative_path for r in result.records]

    def test_narrowed_roles(self, jss_project):
        """Only the requested roles are selected."""
        records = _engine(
            jss_project, roles={FileRole.PLUGIN, FileRole.MIDDLEWARE, FileRole.PACKAGE}
        ).discover()

        assert {r.role for r in records} == {
            FileRole.PLUGIN,
            FileRole.MIDDLEWARE,
            FileRole.PACKAGE,
        }
        assert len(records) == 3

    def test_module_never_selected(self, jss_project):
        """Listing Module explicitly still selects no Module files."""
        records = _engine(jss_project, roles=set(FileRole)).discover()

        assert all(r.role is not FileRole.MODULE for r in records)

    def test_sorted_and_deterministic(self, jss_project):
        """Two runs return identical, path-sorted records."""
        first = _engine(jss_project).discover()
        second = _engine(jss_project).discover()

        assert first == second
        paths = [r.relative_path for r in first]
        assert paths == sorted(paths)

    def test_records_are_file_records(self, jss_project):
        """Discovery yields immutable FileRecord values."""
        records = _engine(jss_project).discover()

        assert all(isinstance(r, FileRecord) for r in records)


class TestCandidates:
    """Which files are considered at all."""

    def test_dot_directories_included(self, tmp_path):
        """Files under dot-directories are candidates unless ignored."""
        path = tmp_path / ".storybook" / "components" / "Decorator.tsx"
        path.parent.mkdir(parents=True)
        path.write_text("export {};", encoding="utf-8")

        records = _engine(tmp_path).discover()

        assert [r.relative_path for r in records] == [".storybook/components/Decorator.tsx"]

    def test_non_typescript_files_skipped(self, tmp_path):
        """Only .ts, .tsx and package.json files are candidates."""
        for rel in ("src/components/A.jsx", "src/components/B.js", "tsconfig.json"):
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("", encoding="utf-8")

        assert _engine(tmp_path).iter_candidates() == []

    def test_ignored_directories_pruned(self, jss_project):
        """Nothing under node_modules or .next is even listed."""
        candidates = _engine(jss_project).iter_candidates()

        assert not any(c.startswith(("node_modules/", ".next/")) for c in candidates)

    def test_project_gitignore_applied(self, jss_project):
        """Patterns in the project's .gitignore remove files."""
        (jss_project / ".gitignore").write_text("src/components/\n", encoding="utf-8")

        records = _engine(jss_project).discover()

        assert not any(r.relative_path.startswith("src/components/") for r in records)
        assert any(r.role is FileRole.PACKAGE for r in records)

    def test_override_ignore_file(self, jss_project, tmp_path):
        """An override file replaces the project's .gitignore."""
        (jss_project / ".gitignore").write_text("src/components/\n", encoding="utf-8")
        override = tmp_path / "custom.ignore"
        override.write_text("src/lib/\n", encoding="utf-8")

        records = _engine(jss_project, override=override).discover()
        paths = [r.relative_path for r in records]

        assert "src/components/Foo.tsx" in paths
        assert not any(p.startswith("src/lib/") for p in paths)

    def test_empty_project(self, tmp_path):
        """A project with no candidates yields nothing."""
        result = _engine(tmp_path).discover_with_stats()

        assert result.records == []
        assert result.relevant_count == 0


class TestEvents:
    """Discovery reports progress through the event sink."""

    def test_discovered_and_classified_events(self, spec_scenario_project):
        """Each relevant file emits discovered then classified."""
        events = MagicMock(spec=PipelineEvents)

        _engine(spec_scenario_project, events=events).discover()

        assert events.file_discovered.call_args_list == [
            call("package.json"),
            call("src/components/Foo.tsx"),
            call("src/middleware/plugins/bar.ts"),
        ]
        events.file_classified.assert_any_call(
            "src/components/Foo.tsx", FileRole.COMPONENT
        )
        assert events.file_classified.call_count == 3


class TestPreflight:
    """Missing project roots."""

    def test_missing_root_raises(self, tmp_path):
        """A nonexistent root raises PathNotFoundError naming the path."""
        missing = tmp_path / "nope"

        with pytest.raises(PathNotFoundError, match="Project path does not exist"):
            FileDiscoveryEngine(missing, IgnoreRuleSet([])).discover()

    def test_file_as_root_raises(self, tmp_path):
        """A regular file is not a valid project root."""
        target = tmp_path / "package.json"
        target.write_text("{}", encoding="utf-8")

        with pytest.raises(PathNotFoundError):
            FileDiscoveryEngine(target, IgnoreRuleSet([])).discover()

"""Path-based role classification for JSS / Next.js project files.

Classification is an ordered decision list: the first rule whose predicate
matches decides the role.  Several rules can match the same path (a
``pages/Layout.tsx`` is both a page-entry suffix and a pages-directory
file), so the order of :data:`CLASSIFICATION_RULES` is part of the
contract and is tested directly.
"""

from __future__ import annotations

from collections.abc import Callable

from migreport.models import FileRole

COMPONENT_EXTENSION = ".tsx"

PAGE_ENTRY_SUFFIXES: tuple[str, ...] = (
    "/bootstrap.tsx",
    "/layout.tsx",
    "/notfound.tsx",
    "/not-found.tsx",
    "/scripts.tsx",
)

CONFIG_SUFFIXES: tuple[str, ...] = (
    "/lib/component-props/index.ts",
    "/next.config.js",
    "/next.config.ts",
    "/sitecore.config.ts",
)


def _normalize(path: str) -> str:
    # Leading slash lets root-level names match the segment rules below.
    normalized = path.replace("\\", "/").lower()
    if not normalized.startswith("/"):
        normalized = "/" + normalized
    return normalized


def _is_page_entry(path: str) -> bool:
    return path.endswith(PAGE_ENTRY_SUFFIXES)


def _is_config(path: str) -> bool:
    return path.endswith(CONFIG_SUFFIXES)


def _is_component(path: str) -> bool:
    return "/components/" in path and path.endswith(COMPONENT_EXTENSION)


def _is_middleware_plugin(path: str) -> bool:
    return "/middleware/plugins/" in path


def _is_api_route(path: str) -> bool:
    return "/pages/api/" in path


def _is_page(path: str) -> bool:
    return "/pages/" in path and path.endswith(COMPONENT_EXTENSION)


def _is_page_props_plugin(path: str) -> bool:
    return "/page-props-factory/plugins/" in path


def _is_package_manifest(path: str) -> bool:
    return path.endswith("/package.json")


CLASSIFICATION_RULES: tuple[tuple[Callable[[str], bool], FileRole], ...] = (
    (_is_page_entry, FileRole.PAGE),
    (_is_config, FileRole.CONFIG),
    (_is_component, FileRole.COMPONENT),
    (_is_middleware_plugin, FileRole.MIDDLEWARE),
    (_is_api_route, FileRole.API_ROUTE),
    (_is_page, FileRole.PAGE),
    (_is_page_props_plugin, FileRole.PLUGIN),
    (_is_package_manifest, FileRole.PACKAGE),
)


def classify_file_type(relative_path: str) -> FileRole:
    """Map a project-relative path to its :class:`FileRole`.

    Case-insensitive and separator-agnostic.  Paths matching no rule are
    ``FileRole.MODULE``.
    """
    normalized = _normalize(relative_path)
    for predicate, role in CLASSIFICATION_RULES:
        if predicate(normalized):
            return role
    return FileRole.MODULE


def is_selectable(role: FileRole, roles_of_interest: frozenset[FileRole]) -> bool:
    """True if *role* should be uploaded.  ``Module`` never is."""
    return role is not FileRole.MODULE and role in roles_of_interest

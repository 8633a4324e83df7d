"""Shared pytest fixtures for migreport tests.

Provides a temporary JSS-style project tree, service configurations for
debug and production modes, and keyring/environment isolation so no test
reads real credentials.
"""

from __future__ import annotations

import logging
from pathlib import Path

import keyring
import pytest

from migreport.config import ServiceConfig
from migreport.models import RetrySettings, ThrottleConfig

# Relative paths written by the ``jss_project`` fixture, with the role each
# one should be classified as (None = never a candidate or always ignored).
JSS_PROJECT_FILES: dict[str, str | None] = {
    "package.json": "Package",
    "README.md": None,
    "next.config.js": None,
    "node_modules/react/package.json": None,
    "node_modules/react/index.ts": None,
    ".next/server/pages/index.tsx": None,
    "src/Layout.tsx": "Page",
    "src/components/Foo.tsx": "Component",
    "src/components/Foo.stories.tsx": None,
    "src/components/helpers.ts": "Module",
    "src/lib/component-props/index.ts": "Config",
    "src/lib/middleware/plugins/redirects.ts": "Middleware",
    "src/lib/page-props-factory/plugins/preview-mode.ts": "Plugin",
    "src/pages/[[...path]].tsx": "Page",
    "src/pages/api/robots.ts": None,
    "src/temp/config.ts": None,
}


@pytest.fixture(autouse=True)
def isolate_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the real system keyring and environment."""
    monkeypatch.setattr(keyring, "get_password", lambda service, name: None)
    monkeypatch.delenv("MIGREPORT_API_KEY", raising=False)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo handlers and levels the CLI installs on the package logger."""
    pkg_logger = logging.getLogger("migreport")
    level = pkg_logger.level
    handlers = list(pkg_logger.handlers)
    yield
    pkg_logger.setLevel(level)
    pkg_logger.handlers[:] = handlers


@pytest.fixture
def jss_project(tmp_path: Path) -> Path:
    """Create a small JSS Next.js project tree.

    Relevant (non-ignored) candidates: 8 files, of which 7 are selectable
    (``src/components/helpers.ts`` classifies as Module).
    """
    root = tmp_path / "jss-app"
    for rel in JSS_PROJECT_FILES:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"// {rel}\nexport default {{}};\n", encoding="utf-8")
    return root


@pytest.fixture
def spec_scenario_project(tmp_path: Path) -> Path:
    """The four-file project: component, middleware plugin, two manifests."""
    root = tmp_path / "scenario"
    for rel in (
        "src/components/Foo.tsx",
        "src/middleware/plugins/bar.ts",
        "node_modules/x/package.json",
        "package.json",
    ):
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{}", encoding="utf-8")
    return root


@pytest.fixture
def fast_throttle() -> ThrottleConfig:
    """Throttle loose enough that tests never wait on the rate window."""
    return ThrottleConfig(max_concurrent=4, interval_cap=1000, interval_ms=1000, timeout_ms=5000)


@pytest.fixture
def debug_config(fast_throttle: ThrottleConfig) -> ServiceConfig:
    """Debug-mode configuration against the local functions host."""
    return ServiceConfig(
        service_host="http://localhost:7071",
        debug=True,
        throttle=fast_throttle,
        retry=RetrySettings(retries=3, min_delay_ms=0, max_delay_ms=0, jitter_ms=0),
    )


@pytest.fixture
def production_config(fast_throttle: ThrottleConfig) -> ServiceConfig:
    """Production-mode configuration with a service key."""
    return ServiceConfig(
        service_host="https://svc.example.net/content-sdk/v1/",
        service_key="secret-key",
        throttle=fast_throttle,
    )

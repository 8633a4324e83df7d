"""Service configuration, credential lookup and URL construction."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

import keyring
from keyring.errors import KeyringError

from migreport.exceptions import ConfigError
from migreport.models import (
    DEFAULT_ROLES_OF_INTEREST,
    DEFAULT_THROTTLE,
    FileRole,
    RetrySettings,
    ThrottleConfig,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "migreport"
KEY_NAME = "api_key"
API_KEY_ENV_VAR = "MIGREPORT_API_KEY"

LOCAL_SERVICE_HOST = "http://localhost:7071"
PRODUCTION_SERVICE_HOST = "https://api-think-fresh-digital.azure-api.net/content-sdk/{version}"
DEFAULT_SERVICE_VERSION = "v1"

SUBSCRIPTION_KEY_HEADER = "Ocp-Apim-Subscription-Key"

# Finalise generates the report server-side and routinely runs for minutes.
DEFAULT_FINALIZE_TIMEOUT_MS = 600_000


def get_api_key(explicit: str | None = None) -> str | None:
    """Resolve the service key: explicit value, then keyring, then env var.

    Returns:
        The key, or ``None`` if no source provides one.  Callers decide
        whether a missing key is fatal (it is not in debug mode).
    """
    if explicit:
        return explicit

    try:
        api_key = keyring.get_password(SERVICE_NAME, KEY_NAME)
    except KeyringError as exc:
        logger.debug("Keyring unavailable, skipping: %s", exc)
        api_key = None
    if api_key:
        return api_key

    return os.environ.get(API_KEY_ENV_VAR) or None


@dataclass(frozen=True)
class ServiceConfig:
    """Everything the pipeline needs, built once at process start."""

    service_host: str
    service_key: str = ""
    debug: bool = False
    verbose: bool = False
    what_if: bool = False
    service_version: str = DEFAULT_SERVICE_VERSION
    throttle: ThrottleConfig = DEFAULT_THROTTLE
    retry: RetrySettings = field(default_factory=RetrySettings)
    finalize_timeout_ms: int = DEFAULT_FINALIZE_TIMEOUT_MS
    roles_of_interest: frozenset[FileRole] = DEFAULT_ROLES_OF_INTEREST

    @property
    def finalize_timeout_seconds(self) -> float:
        return self.finalize_timeout_ms / 1000.0

    def auth_headers(self) -> dict[str, str]:
        if not self.service_key:
            return {}
        return {SUBSCRIPTION_KEY_HEADER: self.service_key}


def build_service_config(
    api_key: str | None = None,
    *,
    debug: bool = False,
    verbose: bool = False,
    what_if: bool = False,
    service_version: str = DEFAULT_SERVICE_VERSION,
    throttle: ThrottleConfig | None = None,
    retry: RetrySettings | None = None,
    finalize_timeout_ms: int = DEFAULT_FINALIZE_TIMEOUT_MS,
    roles_of_interest: frozenset[FileRole] | None = None,
) -> ServiceConfig:
    """Build a validated :class:`ServiceConfig`.

    Debug mode targets the local functions host and does not need a key.
    What-if runs never contact the service, so they do not need one either.

    Raises:
        ConfigError: If no key is available outside debug/what-if mode.
    """
    key = get_api_key(api_key) or ""
    if not key and not debug and not what_if:
        raise ConfigError(
            "API key is required. Pass --api-key, store one with "
            "'migreport config set-api-key KEY', set "
            f"{API_KEY_ENV_VAR}, or use --debug to run against a local service."
        )

    host = (
        LOCAL_SERVICE_HOST
        if debug
        else PRODUCTION_SERVICE_HOST.format(version=service_version)
    )
    return ServiceConfig(
        service_host=host,
        service_key=key,
        debug=debug,
        verbose=verbose,
        what_if=what_if,
        service_version=service_version,
        throttle=throttle or DEFAULT_THROTTLE,
        retry=retry or RetrySettings(),
        finalize_timeout_ms=finalize_timeout_ms,
        roles_of_interest=(
            frozenset(roles_of_interest)
            if roles_of_interest
            else DEFAULT_ROLES_OF_INTEREST
        ),
    )


def build_upload_limits(
    max_concurrent: int = DEFAULT_THROTTLE.max_concurrent,
    interval_cap: int = DEFAULT_THROTTLE.interval_cap,
    interval_ms: int = DEFAULT_THROTTLE.interval_ms,
    timeout_ms: int = DEFAULT_THROTTLE.timeout_ms,
    retries: int = RetrySettings().retries,
) -> tuple[ThrottleConfig, RetrySettings]:
    """Validate user-supplied throttle and retry values.

    Raises:
        ConfigError: If any value is out of range.
    """
    try:
        throttle = ThrottleConfig(
            max_concurrent=max_concurrent,
            interval_cap=interval_cap,
            interval_ms=interval_ms,
            timeout_ms=timeout_ms,
        )
        retry = RetrySettings(retries=retries)
    except ValueError as exc:
        raise ConfigError(f"Invalid upload limits: {exc}") from exc
    return throttle, retry


def build_service_url(config: ServiceConfig, route: str) -> str:
    """Join *route* onto the service host.

    Debug mode talks to the Azure Functions host directly, which serves
    routes under ``/api/`` and needs no function key.  Production goes
    through the API gateway, which takes the key as a ``code`` query
    parameter instead.
    """
    base = config.service_host.rstrip("/")
    clean_route = route.lstrip("/")
    if config.debug:
        return f"{base}/api/{clean_route}"
    return f"{base}/{clean_route}?code={config.service_key}"


def throttle_advisories(
    throttle: ThrottleConfig, default: ThrottleConfig = DEFAULT_THROTTLE
) -> list[str]:
    """Return warnings for throttle overrides that are riskier than the default."""
    warnings: list[str] = []
    if throttle.max_concurrent > default.max_concurrent:
        warnings.append(
            f"--max-concurrent={throttle.max_concurrent} exceeds safe default "
            f"({default.max_concurrent}). This can cause service timeouts."
        )
    if throttle.interval_ms < default.interval_ms:
        warnings.append(
            f"--interval-ms={throttle.interval_ms} is below safe default "
            f"({default.interval_ms}). This increases rate-limit risk."
        )
    if throttle.interval_cap > default.interval_cap:
        warnings.append(
            f"--interval-cap={throttle.interval_cap} exceeds safe default "
            f"({default.interval_cap}). This increases rate-limit risk."
        )
    if throttle.timeout_ms < default.timeout_ms:
        warnings.append(
            f"--timeout-ms={throttle.timeout_ms} is below safe default "
            f"({default.timeout_ms}). Large files may time out."
        )
    return warnings

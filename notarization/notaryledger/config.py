"""
Contract configuration.

Configuration is data, not code: a TOML file with three optional tables.

    [notary]
    oversight_org = "MOJMSP"
    role_attribute = "role"
    notary_roles = ["NOTARY"]
    supervisor_roles = ["SUPERVISOR"]
    private_transient_key = "private"
    allow_reissue = false

    [channel]
    orgs = ["Org1MSP", "MOJMSP"]

    [logging]
    level = "INFO"

Every endorsing peer must load the same configuration, otherwise their
simulations diverge and the proposal is rejected.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_ENV_VAR = "NOTARY_CONFIG"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class NotaryConfig:
    oversight_org: str = "MOJMSP"
    role_attribute: str = "role"
    notary_roles: frozenset[str] = frozenset({"NOTARY"})
    supervisor_roles: frozenset[str] = frozenset({"SUPERVISOR"})
    private_transient_key: str = "private"
    # Re-issuing an existing id is rejected unless this is set; even then
    # immutable fields and REVOKED status are protected.
    allow_reissue: bool = False
    # Empty means any organization may endorse.
    channel_orgs: frozenset[str] = field(default_factory=frozenset)
    log_level: str = "WARNING"

    def is_channel_member(self, org: str) -> bool:
        return not self.channel_orgs or org in self.channel_orgs


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _str_field(table: dict[str, Any], name: str, default: str) -> str:
    value = table.get(name, default)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")
    return value.strip()


def _str_set_field(table: dict[str, Any], name: str, default: frozenset[str]) -> frozenset[str]:
    value = table.get(name)
    if value is None:
        return default
    if not isinstance(value, list) or not all(isinstance(v, str) and v.strip() for v in value):
        raise ValueError(f"{name} must be a list of non-empty strings")
    return frozenset(v.strip() for v in value)


def config_from_dict(data: dict[str, Any]) -> NotaryConfig:
    """Build a config from already-parsed TOML data."""
    defaults = NotaryConfig()
    notary = _coerce_dict(data.get("notary"))
    channel = _coerce_dict(data.get("channel"))
    logging_table = _coerce_dict(data.get("logging"))

    allow_reissue = notary.get("allow_reissue", defaults.allow_reissue)
    if not isinstance(allow_reissue, bool):
        raise ValueError("allow_reissue must be a boolean")

    notary_roles = _str_set_field(notary, "notary_roles", defaults.notary_roles)
    supervisor_roles = _str_set_field(notary, "supervisor_roles", defaults.supervisor_roles)
    if not notary_roles:
        raise ValueError("notary_roles must not be empty")
    if not supervisor_roles:
        raise ValueError("supervisor_roles must not be empty")

    level = _str_field(logging_table, "level", defaults.log_level).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"level must be one of {sorted(_LOG_LEVELS)}")

    return NotaryConfig(
        oversight_org=_str_field(notary, "oversight_org", defaults.oversight_org),
        role_attribute=_str_field(notary, "role_attribute", defaults.role_attribute),
        notary_roles=notary_roles,
        supervisor_roles=supervisor_roles,
        private_transient_key=_str_field(notary, "private_transient_key", defaults.private_transient_key),
        allow_reissue=allow_reissue,
        channel_orgs=_str_set_field(channel, "orgs", defaults.channel_orgs),
        log_level=level,
    )


def load_config(path: Path | None = None) -> NotaryConfig:
    """
    Load configuration from TOML.

    Args:
        path: TOML file. Falls back to $NOTARY_CONFIG, then to defaults.

    Returns:
        NotaryConfig
    """
    import tomllib

    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
        if not env_path:
            return NotaryConfig()
        path = Path(env_path)

    data = tomllib.loads(path.read_text(encoding="utf-8"))
    return config_from_dict(data)


def configure_logging(level: str = "WARNING") -> None:
    """Route the package's loggers through rich."""
    from rich.logging import RichHandler

    package_logger = logging.getLogger("notaryledger")
    package_logger.setLevel(level.upper())
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(show_path=False, rich_tracebacks=False))

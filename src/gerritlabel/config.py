# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Configuration loading for gerritlabel.

A configuration file is a JSON document such as:

    {
        "endpoint": "https://gerrit.example.org/changes/",
        "queryString": "status:open",
        "labelMap": {
            "proj-a": {"python": ["\\\\.py$"], "docs": ["^docs/", "\\\\.md$"]}
        }
    }

Label patterns are compiled while the configuration is validated, so an
invalid regex is reported before any request is made.
"""

from __future__ import annotations

import json
import logging
import netrc
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_validator,
    model_validator,
)

from gerritlabel.errors import ConfigError
from gerritlabel.gerrit.client import DEFAULT_TIMEOUT, Credentials
from gerritlabel.labeler import LabelMap

log = logging.getLogger("gerritlabel.config")

_USERNAME_ENV_VARS = ("GERRIT_USERNAME", "GERRIT_HTTP_USER")
_PASSWORD_ENV_VARS = ("GERRIT_PASSWORD", "GERRIT_HTTP_PASSWORD")


class LabelerConfig(BaseModel):
    """Validated settings for one labeling run."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    endpoint: str = Field(..., description="URL of the list-changes resource")
    query_string: str | None = Field(
        None, alias="queryString", description="Gerrit query for listing changes"
    )
    label_map: dict[str, dict[str, list[str]]] = Field(
        default_factory=dict,
        alias="labelMap",
        description="Project -> label -> regex fragments",
    )
    timeout: float = Field(DEFAULT_TIMEOUT, gt=0, description="Request timeout")
    max_concurrency: int | None = Field(
        None,
        alias="maxConcurrency",
        ge=1,
        description="Cap on concurrent file requests (unbounded when unset)",
    )

    _label_rules: LabelMap = PrivateAttr()

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, value: str) -> str:
        scheme = urlparse(value).scheme
        if scheme not in ("http", "https"):
            raise ValueError(f"endpoint must be an http(s) URL, got {value!r}")
        return value

    @model_validator(mode="after")
    def _compile_label_map(self) -> LabelerConfig:
        self._label_rules = LabelMap.from_mapping(self.label_map)
        return self

    @property
    def label_rules(self) -> LabelMap:
        """Get the compiled label map."""
        return self._label_rules

    @property
    def projects(self) -> list[str]:
        """Get the projects that have label rules, in configuration order."""
        return list(self.label_map)


def load_config(path: str | Path, **overrides: Any) -> LabelerConfig:
    """
    Load and validate a JSON configuration file.

    Args:
        path: Path to the JSON file.
        **overrides: Field values (by field name, e.g. ``query_string``)
            replacing those read from the file. None values are ignored.

    Raises:
        ConfigError: If the file cannot be read, is not JSON, or fails
            validation.
    """
    config_path = Path(path)
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration {config_path}: {exc}") from exc
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Configuration {config_path} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration {config_path} must be a JSON object")

    for name, value in overrides.items():
        if value is None:
            continue
        field = LabelerConfig.model_fields[name]
        data.pop(name, None)
        data[field.alias or name] = value

    try:
        config = LabelerConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration {config_path}: {exc}") from exc

    log.debug(
        "Loaded configuration %s: endpoint=%s, projects=%s",
        config_path,
        config.endpoint,
        config.projects,
    )
    return config


def _first_env(names: tuple[str, ...]) -> str:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return ""


def _netrc_credentials(host: str, netrc_file: str | Path | None) -> tuple[str, str] | None:
    path = Path(netrc_file) if netrc_file else Path.home() / ".netrc"
    if not path.is_file():
        if netrc_file:
            raise ConfigError(f"netrc file not found: {path}")
        return None

    try:
        entry = netrc.netrc(str(path)).authenticators(host)
    except (OSError, netrc.NetrcParseError) as exc:
        raise ConfigError(f"Cannot parse netrc file {path}: {exc}") from exc

    if entry is None:
        return None
    login, _account, password = entry
    if login and password:
        log.debug("Using credentials for %s from %s", host, path)
        return login, password
    return None


def resolve_credentials(
    endpoint: str,
    username: str | None = None,
    password: str | None = None,
    *,
    netrc_file: str | Path | None = None,
    use_netrc: bool = True,
) -> Credentials | None:
    """
    Resolve HTTP credentials for an endpoint.

    Sources, in order: explicit arguments, the ``.netrc`` entry for the
    endpoint's host, then GERRIT_USERNAME/GERRIT_HTTP_USER and
    GERRIT_PASSWORD/GERRIT_HTTP_PASSWORD environment variables.

    Returns:
        Credentials, or None when no source provides both a user and a
        password.
    """
    user = (username or "").strip()
    passwd = (password or "").strip()
    if user and passwd:
        return Credentials(user, passwd)

    if use_netrc:
        host = urlparse(endpoint).hostname or ""
        found = _netrc_credentials(host, netrc_file) if host else None
        if found is not None:
            return Credentials(*found)

    user = user or _first_env(_USERNAME_ENV_VARS)
    passwd = passwd or _first_env(_PASSWORD_ENV_VARS)
    if user and passwd:
        return Credentials(user, passwd)
    return None


__all__ = [
    "LabelerConfig",
    "load_config",
    "resolve_credentials",
]

"""
Configuration loader for Conductor.

This module loads the user-level and project-level settings documents,
resolves model settings from both plus the environment, and produces the
merged ``Configuration`` for a session.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir, user_data_dir

from conductor.config.schema import Configuration, PermissionMode, Settings
from conductor.constants import (
    APP_NAME,
    DEFAULT_ENCODING,
    PROJECT_DIR_NAME,
    SETTINGS_FILE_NAME,
)
from conductor.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """
    Get the user-level configuration directory.

    Returns
    -------
    Path
        Path to the user configuration directory.
    """
    return Path(user_config_dir(APP_NAME))


def get_data_dir() -> Path:
    """
    Get the user-level data directory, where transcripts are kept.

    Returns
    -------
    Path
        Path to the user data directory.
    """
    return Path(user_data_dir(APP_NAME))


def get_user_settings_path() -> Path:
    return get_config_dir() / SETTINGS_FILE_NAME


def get_project_settings_path(cwd: Path) -> Path:
    return cwd.resolve() / PROJECT_DIR_NAME / SETTINGS_FILE_NAME


def _parse_json(path: Path) -> dict[str, Any]:
    """
    Parse a JSON settings file.

    Parameters
    ----------
    path : Path
        Path to the JSON file to parse.

    Returns
    -------
    dict[str, Any]
        Parsed document.

    Raises
    ------
    ConfigurationError
        If the file cannot be read, is not valid JSON or is not an object.
    """
    try:
        data: Any = json.loads(path.read_text(encoding=DEFAULT_ENCODING))
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in {path}: {e}",
            config_file=str(path),
            cause=e,
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read settings file {path}: {e}",
            config_file=str(path),
            cause=e,
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Settings file {path} must contain a JSON object",
            config_file=str(path),
        )
    return data


def load_settings(path: Path) -> Settings:
    """
    Load and validate one settings document.

    Parameters
    ----------
    path : Path
        Settings file path.

    Returns
    -------
    Settings
        Validated settings.

    Raises
    ------
    ConfigurationError
        If the document cannot be parsed or fails validation.

    Examples
    --------
    >>> settings = load_settings(Path(".conductor/settings.json"))
    >>> settings.hooks
    {}
    """
    data: dict[str, Any] = _parse_json(path)
    try:
        return Settings.model_validate(data)
    except Exception as e:
        raise ConfigurationError(
            f"Invalid settings in {path}: {e}",
            config_file=str(path),
            cause=e,
        ) from e


def _load_optional_settings(path: Path, level: str) -> Settings:
    if not path.is_file():
        return Settings()
    try:
        settings: Settings = load_settings(path)
        logger.debug(f"Loaded {level} settings from {path}")
        return settings
    except ConfigurationError as e:
        logger.warning(f"Skipping invalid {level} settings {path}: {e}")
        return Settings()


def _resolve_model(user: Settings, project: Settings) -> dict[str, Any]:
    """Merge model settings: user, then project, then environment."""
    resolved: dict[str, Any] = {
        **user.model.model_dump(exclude_none=True),
        **project.model.model_dump(exclude_none=True),
    }

    if os.environ.get("MODEL"):
        resolved["name"] = os.environ["MODEL"]

    token_limit: str | None = os.environ.get("TOKEN_LIMIT")
    if token_limit:
        try:
            resolved["token_limit"] = int(token_limit)
        except ValueError:
            logger.warning(f"Ignoring non-integer TOKEN_LIMIT: {token_limit!r}")

    return resolved


def load_configuration(
    cwd: Path | None = None,
    permission_mode: PermissionMode = PermissionMode.DEFAULT,
    debug: bool = False,
    user_settings_path: Path | None = None,
) -> Configuration:
    """
    Load configuration from user and project settings.

    This function loads configuration in the following order:
    1. User-level settings (if present)
    2. Project-level settings at ``<cwd>/.conductor/settings.json``
    3. Environment variables (``MODEL``, ``TOKEN_LIMIT``)

    Hooks and allow rules from both levels are kept side by side so they can
    be concatenated per event; an invalid file is logged and skipped.

    Parameters
    ----------
    cwd : Path | None, optional
        Project root. If None, uses the current directory.
    permission_mode : PermissionMode, default=PermissionMode.DEFAULT
        Mode selected on the command line.
    debug : bool, default=False
        Enable debug mode.
    user_settings_path : Path | None, optional
        Override for the user settings file location.

    Returns
    -------
    Configuration
        Loaded and validated configuration object.

    Raises
    ------
    ConfigurationError
        If the merged configuration is invalid.
    """
    cwd = (cwd or Path.cwd()).resolve()

    user: Settings = _load_optional_settings(
        user_settings_path or get_user_settings_path(),
        "user",
    )
    project: Settings = _load_optional_settings(
        get_project_settings_path(cwd),
        "project",
    )

    try:
        config: Configuration = Configuration(
            cwd=cwd,
            user=user,
            project=project,
            model=_resolve_model(user, project),
            permission_mode=permission_mode,
            debug=debug,
        )
    except Exception as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}",
            cause=e,
        ) from e

    validation_errors: list[str] = config.validate()
    if validation_errors:
        error_msg: str = "Configuration validation failed:\n" + "\n".join(
            f"  - {err}" for err in validation_errors
        )
        raise ConfigurationError(error_msg)

    logger.info(f"Configuration loaded from {cwd}")
    return config

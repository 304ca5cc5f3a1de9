"""
Environment variable building for hook execution.
"""

import os
from pathlib import Path

from conductor.constants import HOOK_PROJECT_DIR_VAR


def build_hook_environment(
    project_dir: Path,
    env_overrides: dict[str, str] | None = None,
) -> dict[str, str]:
    """
    Build environment variables for a hook process.

    The process inherits the parent environment, gains the project root
    variable, and then the merged configuration variables, which win on
    collision.

    Parameters
    ----------
    project_dir : Path
        Project root directory.
    env_overrides : dict[str, str] | None, optional
        Merged user/project ``env`` settings.

    Returns
    -------
    dict[str, str]
        Environment variables dictionary.

    Examples
    --------
    >>> env = build_hook_environment(Path("/work"), {"LINT": "strict"})
    >>> env["CONDUCTOR_PROJECT_DIR"]
    '/work'
    """
    env: dict[str, str] = os.environ.copy()
    env[HOOK_PROJECT_DIR_VAR] = str(project_dir)
    if env_overrides:
        env.update({key: str(value) for key, value in env_overrides.items()})
    return env

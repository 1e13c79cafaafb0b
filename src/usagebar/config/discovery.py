import os
import subprocess  # nosec B404 - safe usage for git commands only
from pathlib import Path

from usagebar.core.system import get_usagebar_config_dir


CONFIG_FILE_ENV = "USAGEBAR_CONFIG_FILE"


def find_toml_config_file() -> Path | None:
    """Find the TOML configuration file for usagebar.

    Searches in the following order:
    1. $USAGEBAR_CONFIG_FILE when set
    2. .usagebar.toml in current directory
    3. .usagebar.toml in git repository root (if in a git repo)
    4. config.toml in user config directory/usagebar/ (platform-specific)
    """
    override = os.environ.get(CONFIG_FILE_ENV)
    if override:
        return Path(override).expanduser()

    candidates = [Path(".usagebar.toml").resolve()]

    git_root = find_git_root()
    if git_root:
        candidates.append(git_root / ".usagebar.toml")

    candidates.append(get_usagebar_config_dir() / "config.toml")

    for candidate in candidates:
        if candidate.exists() and candidate.is_file():
            return candidate

    return None


def find_git_root(path: Path | None = None) -> Path | None:
    """Find the root directory of a git repository."""
    if path is None:
        path = Path.cwd()

    try:
        # nosec B603, B607 - safe: hardcoded git command, no user input
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=path,
            capture_output=True,
            text=True,
            check=True,
        )
        return Path(result.stdout.strip())
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None

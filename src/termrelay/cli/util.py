"""CLI utility functions"""

import os
from pathlib import Path

INSTANCE_FLAG = ".termrelay_instance"


def get_instance_path(path: str | None = None) -> Path:
    """Get instance path, default to ~/.termrelay

    Args:
        path: Custom path (relative or absolute), None for default

    Returns:
        Resolved absolute path
    """
    if path is None:
        return Path.home() / ".termrelay"
    return Path(path).resolve()


def is_initialized(instance_path: Path) -> bool:
    """Check if instance is initialized

    Returns:
        True if .termrelay_instance exists
    """
    return (instance_path / INSTANCE_FLAG).exists()


def get_pid_file(instance_path: Path) -> Path:
    return instance_path / ".termrelay.pid"


def read_pid(instance_path: Path) -> int | None:
    """PID recorded by `termrelay start`, None if missing or unreadable"""
    pid_file = get_pid_file(instance_path)
    try:
        return int(pid_file.read_text().strip())
    except (FileNotFoundError, ValueError):
        return None


def is_process_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by someone else
        return True
    return True


def is_running(instance_path: Path) -> bool:
    """Check if instance is running

    A PID file whose process is gone is stale and does not count.
    """
    pid = read_pid(instance_path)
    return pid is not None and is_process_alive(pid)


def use_instance(instance_path: Path) -> None:
    """Point Settings at this instance's config.toml and logs/"""
    os.environ["TERMRELAY_INSTANCE_PATH"] = str(instance_path)

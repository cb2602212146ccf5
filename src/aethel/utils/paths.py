"""
Path management for Aethel

Handles platform-specific user data directories following standard conventions:
- macOS: ~/Library/Application Support/Aethel/
- Linux: ~/.local/share/aethel/
- Windows: %APPDATA%/Aethel/
"""
import os
import sys
from pathlib import Path


APP_NAME = "Aethel"


def get_user_data_dir() -> Path:
    """
    Get platform-specific user data directory.

    Returns:
        Path to user data directory holding the database and logs.
    """
    system = sys.platform

    if system == "darwin":  # macOS
        base = Path.home() / "Library" / "Application Support"
        user_data_dir = base / APP_NAME
    elif system == "win32":  # Windows
        base = Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming"))
        user_data_dir = base / APP_NAME
    else:  # Linux and other Unix-like
        base = Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local" / "share"))
        user_data_dir = base / APP_NAME.lower()

    user_data_dir.mkdir(parents=True, exist_ok=True)
    return user_data_dir


def get_logs_dir() -> Path:
    """Directory for application logs (inside the user data directory)."""
    logs_dir = get_user_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


"""Production implementations of dependency injection protocols.

This module provides real implementations that wrap actual external dependencies
(filesystem, subprocess, time, etc.). These are used in production code.

For testing, use mocks or test doubles instead of these implementations.
"""

import os
import shutil
import subprocess
import sys
import tempfile
import time
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List, Union

from apkdeploy.core.protocols import ProcessResult


class ConsoleLogger:
    """Production logger that prints to console (stdout/stderr).

    Debug messages are only shown when verbose is set.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def info(self, message: str) -> None:
        """Print info message to stdout."""
        print(message)

    def warning(self, message: str) -> None:
        """Print warning message to stdout."""
        print(f"Warning: {message}")

    def error(self, message: str) -> None:
        """Print error message to stderr."""
        print(f"Error: {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        """Print debug message to stdout."""
        if self.verbose:
            print(f"Debug: {message}")


class RealFileSystemService:
    """Production filesystem service using real pathlib and shutil operations."""

    def exists(self, path: Union[str, Path]) -> bool:
        """Check if path exists."""
        return Path(path).exists()

    def is_dir(self, path: Union[str, Path]) -> bool:
        """Check if path is a directory."""
        return Path(path).is_dir()

    def read_file(self, path: Union[str, Path]) -> str:
        """Read entire file as string."""
        with open(path, 'r') as f:
            return f.read()

    def make_temp_dir(self, prefix: str) -> str:
        """Create a fresh temporary directory."""
        return tempfile.mkdtemp(prefix=prefix)

    def rmtree(self, path: Union[str, Path]) -> None:
        """Recursively remove directory tree."""
        shutil.rmtree(path)

    def file_size(self, path: Union[str, Path]) -> int:
        """Size of a file in bytes."""
        return os.path.getsize(path)


class SubprocessExecutor:
    """Production process executor using real subprocess.run."""

    def run(
        self,
        cmd: List[str],
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None
    ) -> ProcessResult:
        """Execute command and wait for it to finish."""
        completed = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env
        )
        return ProcessResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or ""
        )


class SystemTimeProvider:
    """Production time provider using real time module."""

    def current_time(self) -> float:
        """Get current time in seconds since epoch."""
        return time.time()


class SystemToolLocator:
    """Production tool locator using real shutil.which.

    Falls back to the newest Android SDK build-tools directory for
    aapt/aapt2, which are usually not on PATH.
    """

    def find_tool(self, tool_name: str) -> Optional[str]:
        """Find tool in PATH or the Android SDK."""
        found = shutil.which(tool_name)
        if found:
            return found

        sdk_root = os.environ.get('ANDROID_HOME') or os.environ.get('ANDROID_SDK_ROOT')
        if not sdk_root:
            return None

        platform_tools = Path(sdk_root) / 'platform-tools' / tool_name
        if platform_tools.is_file():
            return str(platform_tools)

        build_tools = Path(sdk_root) / 'build-tools'
        if build_tools.is_dir():
            # Newest build-tools first
            for version_dir in sorted(build_tools.iterdir(), reverse=True):
                candidate = version_dir / tool_name
                if candidate.is_file():
                    return str(candidate)
        return None


class YamlConfigLoader:
    """Production config loader using real YAML parser."""

    def __init__(self, filesystem: 'RealFileSystemService'):
        """Initialize with filesystem service for reading files."""
        self.fs = filesystem

    def load_yaml(self, path: str) -> Dict[str, Any]:
        """Load YAML file and return parsed dictionary."""
        content = self.fs.read_file(path)
        return yaml.safe_load(content) or {}

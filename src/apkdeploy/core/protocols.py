"""Protocol definitions for dependency injection.

This module defines Protocol-based abstractions for all external dependencies.
Protocols use structural typing (duck typing with type hints) which means any
class implementing these methods satisfies the Protocol without explicit inheritance.

Benefits:
- Easy to mock in tests (just implement the methods)
- No inheritance required
- Type-safe with mypy/pyright
- Clear interface contracts
"""

from dataclasses import dataclass
from typing import Protocol, Dict, Any, Optional, List, Union
from pathlib import Path


@dataclass
class ProcessResult:
    """Outcome of a finished process."""
    returncode: int
    stdout: str
    stderr: str


class Logger(Protocol):
    """Abstraction for logging operations.

    Replaces direct print() statements throughout the codebase.
    """

    def info(self, message: str) -> None:
        """Log informational message."""
        ...

    def warning(self, message: str) -> None:
        """Log warning message."""
        ...

    def error(self, message: str) -> None:
        """Log error message."""
        ...

    def debug(self, message: str) -> None:
        """Log debug message."""
        ...


class FileSystemService(Protocol):
    """Abstraction for filesystem operations.

    Wraps Path and file I/O operations so the caches and config loading
    can be exercised without touching the real filesystem.
    """

    def exists(self, path: Union[str, Path]) -> bool:
        """Check if path exists."""
        ...

    def is_dir(self, path: Union[str, Path]) -> bool:
        """Check if path is a directory."""
        ...

    def read_file(self, path: Union[str, Path]) -> str:
        """Read entire file as string."""
        ...

    def make_temp_dir(self, prefix: str) -> str:
        """Create a fresh temporary directory and return its path."""
        ...

    def rmtree(self, path: Union[str, Path]) -> None:
        """Recursively remove directory tree."""
        ...

    def file_size(self, path: Union[str, Path]) -> int:
        """Size of a file in bytes."""
        ...


class ProcessExecutor(Protocol):
    """Abstraction for process execution.

    Wraps subprocess.run to enable testing without spawning real processes.
    Implementations raise subprocess.TimeoutExpired when the timeout elapses
    and FileNotFoundError when the executable does not exist.
    """

    def run(
        self,
        cmd: List[str],
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None
    ) -> ProcessResult:
        """Execute command to completion and return its result."""
        ...


class TimeProvider(Protocol):
    """Abstraction for time operations."""

    def current_time(self) -> float:
        """Get current time in seconds since epoch."""
        ...


class ToolLocator(Protocol):
    """Abstraction for external tool discovery.

    Wraps shutil.which() to enable testing without requiring
    tools to be installed (adb, aapt2, aapt).
    """

    def find_tool(self, tool_name: str) -> Optional[str]:
        """Find tool in PATH and return absolute path, or None if not found."""
        ...


class ConfigLoader(Protocol):
    """Abstraction for configuration file loading.

    Wraps YAML loading to enable testing with mock configurations
    without requiring actual config files.
    """

    def load_yaml(self, path: str) -> Dict[str, Any]:
        """Load YAML file and return parsed dictionary."""
        ...

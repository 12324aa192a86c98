"""Recognized installer failure signatures.

The device installer reports failures as bracketed codes inside otherwise
free-form text, e.g. "Failure [INSTALL_FAILED_INSUFFICIENT_STORAGE]".
"""

import re
from typing import Optional

ALREADY_EXISTS = 'INSTALL_FAILED_ALREADY_EXISTS'
INSUFFICIENT_STORAGE = 'INSTALL_FAILED_INSUFFICIENT_STORAGE'
TEST_ONLY = 'INSTALL_FAILED_TEST_ONLY'

_INSUFFICIENT_STORAGE_RE = re.compile(rf'\b{INSUFFICIENT_STORAGE}\b')
_TEST_ONLY_RE = re.compile(rf'\[{TEST_ONLY}\]')
_INSTALL_FAILED_RE = re.compile(r'\[(INSTALL[A-Z_]+FAILED[A-Z_]+)(?::[^\]]*)?\]')


def is_already_exists(output: str) -> bool:
    return ALREADY_EXISTS in output


def is_insufficient_storage(output: str) -> bool:
    return bool(_INSUFFICIENT_STORAGE_RE.search(output))


def is_test_only(output: str) -> bool:
    return bool(_TEST_ONLY_RE.search(output))


def find_install_failure(output: str) -> Optional[str]:
    """Return the failure code from installer output, or None if it looks successful."""
    match = _INSTALL_FAILED_RE.search(output or '')
    return match.group(1) if match else None

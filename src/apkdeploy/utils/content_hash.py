"""Content identity of local files."""
import hashlib
from pathlib import Path
from typing import Union

CHUNK_SIZE = 1024 * 1024


def file_hash(path: Union[str, Path], algorithm: str = 'sha1') -> str:
    """Hex digest of a file's bytes, read in chunks.

    Two files with the same digest are treated as the same package,
    regardless of their names or locations.
    """
    digest = hashlib.new(algorithm)
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()

"""
Bundle extraction cache.

Unpacks multi-part .apks bundles into temporary directories and keeps the
most recently used extractions around, keyed by the bundle's content hash.
The cache owns the extracted directories: evicting an entry deletes it, and
close() deletes all of them.
"""

import os
import threading
import zipfile
from collections import OrderedDict
from typing import Callable, FrozenSet, Optional, Sequence, Union

from apkdeploy.cache.locks import KeyedLock
from apkdeploy.core.protocols import FileSystemService, Logger
from apkdeploy.deploy.base import CleanupResult
from apkdeploy.deploy.exceptions import (
    CacheCorruptionError,
    CacheMissError,
    ExtractionFailure,
)
from apkdeploy.utils.content_hash import file_hash

DEFAULT_BUNDLE_CACHE_LIMIT = 10
BUNDLE_EXTENSION = '.apks'
SPLITS_DIR = 'splits'
BASE_PART = 'base-master.apk'
DEFAULT_LANGUAGES = ('en', 'en_us')
TEMP_DIR_PREFIX = 'apkdeploy-bundle-'

PartPath = Union[str, Sequence[str]]


def language_part(language: str) -> str:
    return f'base-{language}.apk'


def unzip_archive(archive: str, destination: str) -> None:
    """Extract a zip archive, raising ExtractionFailure if it is unreadable."""
    try:
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(destination)
    except (zipfile.BadZipFile, OSError) as e:
        raise ExtractionFailure(
            f"Cannot unpack '{archive}': {e}. "
            f"Is it a valid application bundle?"
        ) from e


class BundleExtractionCache:
    """
    Bounded LRU cache of extracted bundles.

    Concurrent extract() calls for the same bundle path are serialized, so a
    bundle is unpacked once and later callers reuse the result. Different
    bundles extract in parallel.

    Args:
        filesystem: Filesystem operations abstraction
        logger: Logging abstraction
        limit: Maximum number of extracted bundles kept on disk
        hasher: Content hash function (path -> hex digest)
        extractor: Archive extraction function (archive, destination)
    """

    def __init__(
        self,
        filesystem: FileSystemService,
        logger: Logger,
        limit: int = DEFAULT_BUNDLE_CACHE_LIMIT,
        hasher: Callable[[str], str] = file_hash,
        extractor: Callable[[str, str], None] = unzip_archive
    ):
        if limit < 1:
            raise ValueError(f"Bundle cache limit must be positive, got {limit}")
        self.fs = filesystem
        self.log = logger
        self.limit = limit
        self._hash = hasher
        self._extract = extractor
        self._index: 'OrderedDict[str, _Extraction]' = OrderedDict()
        self._index_lock = threading.Lock()
        self._guard = KeyedLock()
        self._closed = False

    def __enter__(self) -> 'BundleExtractionCache':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __len__(self) -> int:
        with self._index_lock:
            return len(self._index)

    def __contains__(self, content_hash: str) -> bool:
        with self._index_lock:
            return content_hash in self._index

    def extract(self, bundle: str, part_path: PartPath) -> str:
        """
        Return the local path of a part inside a bundle, extracting if needed.

        Args:
            bundle: Path to the .apks file
            part_path: Relative path of the part inside the bundle, either a
                string or a sequence of path components

        Returns:
            Absolute path of the extracted part

        Raises:
            ExtractionFailure: If the bundle is unreadable or has no such part
        """
        if self._closed:
            raise ExtractionFailure("Bundle cache is closed")
        parts = [part_path] if isinstance(part_path, str) else list(part_path)

        # Hash is unknown until the file is read, so lock on the path
        with self._guard.acquire(os.path.abspath(bundle)):
            content_hash = self._hash(bundle)
            self.log.debug(f"Calculated '{bundle}' hash: {content_hash}")

            try:
                extraction = self._lookup(content_hash, parts)
            except CacheCorruptionError as e:
                self.log.debug(f"{e}. Dropping the stale entry")
                self._discard(content_hash)
            except CacheMissError:
                pass
            else:
                return self._resolve(extraction, parts, bundle)

            root = self.fs.make_temp_dir(TEMP_DIR_PREFIX)
            self.log.debug(f"Unpacking application bundle at '{bundle}' to '{root}'")
            try:
                self._extract(bundle, root)
            except ExtractionFailure:
                self._dispose(root)
                raise
            extraction = self._register(content_hash, _Extraction(root, _list_files(root)))
            return self._resolve(extraction, parts, bundle)

    def extract_base(self, bundle: str) -> str:
        """Extract the base (master) part of a bundle."""
        return self.extract(bundle, [SPLITS_DIR, BASE_PART])

    def extract_language(self, bundle: str, language: Optional[str] = None) -> str:
        """
        Extract the part holding resources for a language.

        Falls back to the base part if the bundle is not split by language.
        Without a language, the default English splits are tried first.
        """
        languages = [language] if language else list(DEFAULT_LANGUAGES)
        for lang in languages:
            try:
                return self.extract(bundle, [SPLITS_DIR, language_part(lang)])
            except ExtractionFailure as e:
                self.log.debug(str(e))

        if language:
            self.log.info(
                f"Assuming that splitting by language is not enabled for the "
                f"'{bundle}' bundle and returning the main apk instead"
            )
        else:
            self.log.info(
                f"Cannot find any split apk for the default languages "
                f"{list(DEFAULT_LANGUAGES)}. Returning the main apk instead"
            )
        return self.extract_base(bundle)

    def close(self) -> CleanupResult:
        """
        Delete every cached extraction directory.

        Returns:
            CleanupResult listing directories that could not be removed

        Note:
            Never raises. The cache cannot be used after closing.
        """
        self._closed = True
        with self._index_lock:
            roots = [extraction.root for extraction in self._index.values()]
            self._index.clear()

        if roots:
            noun = 'package' if len(roots) == 1 else 'packages'
            self.log.debug(f"Performing cleanup of {len(roots)} cached .apks {noun}")

        errors = []
        for root in roots:
            try:
                if self.fs.exists(root):
                    self.fs.rmtree(root)
            except OSError as e:
                errors.append(f"{root}: {e}")
                self.log.warning(f"Cannot remove '{root}': {e}")

        return CleanupResult(success=len(errors) == 0, errors=errors)

    def _lookup(self, content_hash: str, parts: list) -> '_Extraction':
        with self._index_lock:
            extraction = self._index.get(content_hash)
            if extraction is None:
                raise CacheMissError(content_hash)
            self._index.move_to_end(content_hash)
        if not self.fs.is_dir(extraction.root):
            raise CacheCorruptionError(content_hash, extraction.root)
        # A part that was unpacked but is gone now was pruned from disk
        relative = os.path.join(*parts)
        location = os.path.join(extraction.root, relative)
        if relative in extraction.files and not self.fs.exists(location):
            raise CacheCorruptionError(content_hash, location)
        return extraction

    def _resolve(self, extraction: '_Extraction', parts: list, bundle: str) -> str:
        relative = os.path.join(*parts)
        if relative not in extraction.files:
            raise ExtractionFailure(
                f"{relative} cannot be found in '{bundle}' bundle. "
                f"Does the archive contain a valid application bundle?"
            )
        return os.path.abspath(os.path.join(extraction.root, relative))

    def _register(self, content_hash: str, extraction: '_Extraction') -> '_Extraction':
        evicted = []
        with self._index_lock:
            previous = self._index.get(content_hash)
            if previous is not None and self.fs.is_dir(previous.root):
                # Same bytes were unpacked meanwhile under another bundle path
                self._index.move_to_end(content_hash)
                kept = previous
            else:
                self._index.pop(content_hash, None)
                self._index[content_hash] = extraction
                kept = extraction
                while len(self._index) > self.limit:
                    _, oldest = self._index.popitem(last=False)
                    evicted.append(oldest.root)
        if kept is not extraction:
            self.log.debug(f"Reusing the extraction at '{kept.root}' instead of '{extraction.root}'")
            self._dispose(extraction.root)
        for old_root in evicted:
            self.log.debug(f"Evicting extracted bundle at '{old_root}'")
            self._dispose(old_root)
        return kept

    def _discard(self, content_hash: str) -> None:
        with self._index_lock:
            extraction = self._index.pop(content_hash, None)
        if extraction is not None:
            self._dispose(extraction.root)

    def _dispose(self, root: str) -> None:
        try:
            if self.fs.exists(root):
                self.fs.rmtree(root)
        except OSError as e:
            self.log.warning(f"Cannot remove '{root}': {e}")


class _Extraction:
    """Directory holding one unpacked bundle and the files it was unpacked with."""
    __slots__ = ('root', 'files')

    def __init__(self, root: str, files: FrozenSet[str]):
        self.root = root
        self.files = files


def _list_files(root: str) -> FrozenSet[str]:
    return frozenset(
        os.path.relpath(os.path.join(directory, name), root)
        for directory, _, names in os.walk(root)
        for name in names
    )

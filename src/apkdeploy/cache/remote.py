"""
Remote package cache.

Keeps recently installed packages in a fixed directory on the device so that
installing the same bytes again skips the upload. The directory listing on the
device is the source of truth: the in-memory index is cross-checked against it
on every placement, since other processes, reboots or manual cleanup may change
the directory behind our back.

Known limitation: a single writer per device is assumed. Two processes sharing
a device may evict each other's entries.
"""

import os
import posixpath
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from apkdeploy.core.protocols import FileSystemService, Logger, TimeProvider
from apkdeploy.deploy.base import CommandChannel
from apkdeploy.deploy.exceptions import RemotePathNotFoundError
from apkdeploy.utils.content_hash import file_hash

REMOTE_CACHE_ROOT = '/data/local/tmp/apkdeploy_cache'
DEFAULT_REMOTE_CACHE_LIMIT = 10


def _to_hash(remote_name: str) -> str:
    return posixpath.splitext(posixpath.basename(remote_name))[0]


def _readable_size(size: int) -> str:
    for unit in ('B', 'KB', 'MB'):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == 'B' else f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} GB"


class RemotePackageCache:
    """
    Bounded LRU cache of packages uploaded to the device.

    Files are stored flat as <root>/<content hash>.<extension>. There is no
    lock around place(): two concurrent placements of the same content may
    both upload, which is harmless since they write the same destination.

    Args:
        channel: Device command channel
        filesystem: Filesystem operations abstraction (file sizes)
        time_provider: Time operations abstraction (upload timing)
        logger: Logging abstraction
        limit: Maximum number of packages kept on the device
        root: Remote cache directory
        hasher: Content hash function (path -> hex digest)
    """

    def __init__(
        self,
        channel: CommandChannel,
        filesystem: FileSystemService,
        time_provider: TimeProvider,
        logger: Logger,
        limit: int = DEFAULT_REMOTE_CACHE_LIMIT,
        root: str = REMOTE_CACHE_ROOT,
        hasher: Callable[[str], str] = file_hash
    ):
        if limit < 1:
            raise ValueError(f"Remote cache limit must be positive, got {limit}")
        self.channel = channel
        self.fs = filesystem
        self.time = time_provider
        self.log = logger
        self.limit = limit
        self.root = root
        self._hash = hasher
        self._index: 'OrderedDict[str, str]' = OrderedDict()
        self._index_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix='apkdeploy-touch'
        )

    def __len__(self) -> int:
        with self._index_lock:
            return len(self._index)

    def keys(self) -> List[str]:
        """Cached content hashes, least recently used first."""
        with self._index_lock:
            return list(self._index)

    def place(self, local_path: str, timeout: Optional[float] = None) -> str:
        """
        Make sure a package is present in the remote cache.

        Args:
            local_path: Path of the package on the local filesystem
            timeout: Upload timeout in seconds

        Returns:
            Full path of the cached package on the device

        Raises:
            TransportError: If the device cannot be reached
            CommandError: If listing the cache fails for reasons other than
                the directory being absent, or the upload fails
        """
        app_hash = self._hash(local_path)
        extension = os.path.splitext(local_path)[1] or '.apk'
        remote_path = posixpath.join(self.root, f"{app_hash}{extension}")

        remote_files = self._list_remote()
        self.log.debug(f"The count of applications in the cache: {len(remote_files)}")

        if any(_to_hash(name) == app_hash for name in remote_files):
            self.log.info(f"The application at '{local_path}' is already cached to '{remote_path}'")
            self._bump_async(remote_path)
        else:
            self.log.info(f"Caching the application at '{local_path}' to '{remote_path}'")
            started = self.time.current_time()
            self.channel.push(local_path, remote_path, timeout=timeout)
            elapsed_ms = (self.time.current_time() - started) * 1000
            size = _readable_size(self.fs.file_size(local_path))
            self.log.info(
                f"The upload of '{os.path.basename(local_path)}' ({size}) took {elapsed_ms:.0f}ms"
            )

        self._evict(app_hash, remote_path, remote_files)
        return remote_path

    def clear(self) -> None:
        """Remove every cached package from the device and forget them."""
        self.log.info(f"Clearing the cache at '{self.root}'")
        self.channel.remove_files([posixpath.join(self.root, '*')], recursive=True)
        with self._index_lock:
            self._index.clear()

    def list_remote(self) -> List[str]:
        """Names of files in the remote cache directory, newest first."""
        return self._list_remote()

    def close(self) -> None:
        """Wait for pending timestamp bumps and stop the background worker."""
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def _list_remote(self) -> List[str]:
        try:
            output = self.channel.list_directory(self.root)
        except RemotePathNotFoundError as e:
            self.log.debug(
                f"Got an error '{str(e).strip()}' while getting the list of files in the cache. "
                f"Assuming the cache does not exist yet"
            )
            self.channel.make_directory(self.root)
            return []
        return [line.strip() for line in output.splitlines() if line.strip()]

    def _bump_async(self, remote_path: str) -> None:
        # Refreshes the file's position in the time-sorted listing
        executor = self._executor
        if executor is None:
            return
        try:
            future = executor.submit(self.channel.touch, remote_path)
        except RuntimeError:
            return
        future.add_done_callback(lambda f: self._report_bump(f, remote_path))

    def _report_bump(self, future: Future, remote_path: str) -> None:
        error = future.exception()
        if error is not None:
            self.log.debug(f"Cannot update the timestamp of '{remote_path}': {error}")

    def _evict(self, app_hash: str, remote_path: str, remote_files: List[str]) -> None:
        listed = {_to_hash(name) for name in remote_files}
        with self._index_lock:
            for stale in [key for key in self._index if key not in listed]:
                del self._index[stale]
            self._index[app_hash] = remote_path
            self._index.move_to_end(app_hash)
            while len(self._index) > self.limit:
                self._index.popitem(last=False)
            retained = set(self._index)
            spare = self.limit - len(self._index)

        # Listing is newest first, so the oldest untracked files are cut
        expired = [
            posixpath.join(self.root, name)
            for name in remote_files
            if _to_hash(name) not in retained
        ][spare:]
        if not expired:
            return
        try:
            self.channel.remove_files(expired)
            self.log.debug(f"Deleted {len(expired)} expired application cache entries")
        except Exception as e:
            self.log.warning(
                f"Cannot delete {len(expired)} expired application cache entries. "
                f"Original error: {e}"
            )

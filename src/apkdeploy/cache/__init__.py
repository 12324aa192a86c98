"""
Deployment caches.

Public API:
    - RemotePackageCache: packages already uploaded to the device
    - BundleExtractionCache: locally extracted .apks bundles
    - KeyedLock: per-key mutual exclusion used by the bundle cache
"""

from .bundle import BundleExtractionCache
from .locks import KeyedLock
from .remote import RemotePackageCache, REMOTE_CACHE_ROOT

__all__ = [
    "BundleExtractionCache",
    "KeyedLock",
    "RemotePackageCache",
    "REMOTE_CACHE_ROOT",
]

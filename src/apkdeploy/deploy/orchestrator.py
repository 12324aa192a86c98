"""
Deployment orchestration.

Decides whether a package has to be installed, upgraded, reinstalled or
downgraded, performs the device-side operation, and runs the bounded
recovery paths for recognized installer failures:

    insufficient storage  -> clear remote cache, place once more, install once more
    already exists        -> treated as success
    any other upgrade failure -> uninstall, then fresh install
"""

import os
from dataclasses import replace
from typing import Callable, Optional

from apkdeploy.cache.bundle import BUNDLE_EXTENSION, BundleExtractionCache
from apkdeploy.cache.remote import RemotePackageCache
from apkdeploy.core.protocols import Logger, TimeProvider
from . import signatures
from .base import (
    CommandChannel,
    InstallOptions,
    InstallOrUpgradeResult,
    InstallState,
    PackageMetadataReader,
)
from .decision import classify
from .exceptions import CommandError, InstallFailure, UninstallError

DEFAULT_INSTALL_TIMEOUT = 60.0
MIN_GRANT_PERMISSIONS_API_LEVEL = 23
_OUTPUT_PREVIEW = 300


def _truncate(output: str) -> str:
    if len(output) <= _OUTPUT_PREVIEW:
        return output
    half = _OUTPUT_PREVIEW // 2
    return f"{output[:half]}...{output[-half:]}"


class DeploymentOrchestrator:
    """
    Installs packages on one device.

    Args:
        channel: Device command channel
        metadata_reader: Source of candidate and installed package metadata
        bundle_cache: Extraction cache for .apks bundles
        time_provider: Time operations abstraction (install timing)
        logger: Logging abstraction
        remote_cache: Remote package cache; None disables caching
        install_timeout: Default install timeout in seconds
    """

    def __init__(
        self,
        channel: CommandChannel,
        metadata_reader: PackageMetadataReader,
        bundle_cache: BundleExtractionCache,
        time_provider: TimeProvider,
        logger: Logger,
        remote_cache: Optional[RemotePackageCache] = None,
        install_timeout: float = DEFAULT_INSTALL_TIMEOUT
    ):
        self.channel = channel
        self.metadata = metadata_reader
        self.bundles = bundle_cache
        self.time = time_provider
        self.log = logger
        self.remote_cache = remote_cache
        self.install_timeout = install_timeout
        self._streamed_install_supported: Optional[bool] = None

    def build_install_args(self, options: InstallOptions) -> list[str]:
        """Translate install options into installer flags."""
        args = []
        if options.replace:
            args.append('-r')
        if options.allow_test_packages:
            args.append('-t')
        if options.use_sdcard:
            args.append('-s')
        if options.grant_permissions:
            api_level = self.channel.get_api_level()
            if api_level < MIN_GRANT_PERMISSIONS_API_LEVEL:
                self.log.debug(
                    f"Skipping permissions grant option, since the current API level "
                    f"{api_level} does not support applications permissions customization"
                )
            else:
                args.append('-g')
        return args

    def get_install_state(self, app_path: str, package_name: Optional[str] = None) -> InstallState:
        """
        Classify the installed package against the local one.

        Args:
            app_path: Path of the local .apk/.apks file
            package_name: Package identifier; read from the file when omitted

        Returns:
            InstallState of the device relative to app_path
        """
        candidate = None
        if not package_name:
            candidate = self.metadata.read_candidate(app_path)
            package_name = candidate.name
        if not package_name:
            self.log.warning(f"Cannot read the package name of '{app_path}'")
            return InstallState.UNKNOWN

        installed = self.metadata.read_installed(package_name)
        if not installed.is_installed:
            self.log.debug(f"App '{app_path}' is not installed")
            return InstallState.NOT_INSTALLED

        if candidate is None:
            candidate = self.metadata.read_candidate(app_path)
        state = classify(candidate.version, installed.version, installed.is_installed)
        self.log.debug(
            f"'{package_name}' install state: {state.value} "
            f"(installed {installed.version}, candidate {candidate.version})"
        )
        return state

    def install(self, app_path: str, options: Optional[InstallOptions] = None) -> None:
        """
        Install a package from the local file system.

        Raises:
            InstallFailure: If the device rejected the package
            TransportError: If the device could not be reached
        """
        options = replace(options) if options else InstallOptions()
        timeout = options.timeout or self.install_timeout
        args = self.build_install_args(options)

        if app_path.endswith(BUNDLE_EXTENSION):
            parts = self._bundle_parts(app_path)
            self._run_install(
                app_path, lambda: self.channel.install_multiple(args, parts, timeout=timeout)
            )
            return

        perform = lambda: self.channel.install_local(args, app_path, timeout=timeout)
        if self._should_cache(app_path):
            try:
                remote_path = self.remote_cache.place(app_path, timeout=timeout)
            except CommandError as e:
                self.log.warning(f"There was a failure while caching '{app_path}': {e}")
                self.log.warning("Falling back to the default installation procedure")
                self._clear_cache_quietly()
            else:
                perform = lambda: self._install_cached(app_path, remote_path, args, timeout)

        self._run_install(app_path, perform)

    def install_or_upgrade(
        self,
        app_path: str,
        package_name: Optional[str] = None,
        options: Optional[InstallOptions] = None
    ) -> InstallOrUpgradeResult:
        """
        Install the package, or upgrade it if an older version is installed.

        Args:
            app_path: Path of the local .apk/.apks file
            package_name: Package identifier override; read from the file when omitted
            options: Install options; enforce_current_build forces reinstall
                of the same version and downgrade of a newer one

        Returns:
            InstallOrUpgradeResult describing what was done

        Raises:
            UninstallError: If a recovery uninstall was needed and failed
            InstallFailure: If the final install attempt failed
        """
        options = options or InstallOptions()
        if not package_name:
            package_name = self.metadata.read_candidate(app_path).name
            if not package_name:
                self.log.warning(
                    f"Cannot determine the package name of '{app_path}'. "
                    f"Continuing with the install anyway"
                )

        app_state = self.get_install_state(app_path, package_name)

        if app_state == InstallState.NOT_INSTALLED:
            self.log.debug(f"Installing '{app_path}'")
            self.install(app_path, replace(options, replace=False))
            return InstallOrUpgradeResult(app_state, was_uninstalled=False, action='install')

        if app_state == InstallState.NEWER_VERSION_INSTALLED:
            if not options.enforce_current_build:
                self.log.debug(f"There is no need to downgrade '{package_name}'")
                return InstallOrUpgradeResult(app_state, was_uninstalled=False, action='skip')
            self.log.info(f"Downgrading '{package_name}' as requested")
            self._uninstall_or_fail(package_name)
            self._reinstall_fresh(app_path, package_name, options)
            return InstallOrUpgradeResult(app_state, was_uninstalled=True, action='downgrade')

        if app_state == InstallState.SAME_VERSION_INSTALLED:
            if not options.enforce_current_build:
                self.log.debug(f"There is no need to install/upgrade '{app_path}'")
                return InstallOrUpgradeResult(app_state, was_uninstalled=False, action='skip')
            action = 'reinstall'
        elif app_state == InstallState.OLDER_VERSION_INSTALLED:
            self.log.debug(f"Executing upgrade of '{app_path}'")
            action = 'upgrade'
        else:
            self.log.debug(f"The current install state of '{app_path}' is unknown. Installing anyway")
            action = 'install'

        try:
            self.install(app_path, replace(options, replace=True))
        except InstallFailure as e:
            if e.signature == signatures.INSUFFICIENT_STORAGE:
                # Reinstalling does not free device storage
                raise
            self.log.warning(
                f"Cannot install/upgrade '{package_name}' because of '{e}'. Trying full reinstall"
            )
            self._uninstall_or_fail(package_name, cause=e)
            self._reinstall_fresh(app_path, package_name, options)
            return InstallOrUpgradeResult(app_state, was_uninstalled=True, action=action)
        return InstallOrUpgradeResult(app_state, was_uninstalled=False, action=action)

    def _should_cache(self, app_path: str) -> bool:
        if self.remote_cache is None:
            return False
        if self._streamed_install_supported is None:
            self._streamed_install_supported = self.channel.is_streamed_install_supported()
        if self._streamed_install_supported:
            self.log.info(
                f"The application at '{app_path}' will not be cached, because the device under test "
                f"has confirmed the support of streamed installs"
            )
            return False
        return True

    def _install_cached(self, app_path: str, remote_path: str, args: list[str], timeout: float) -> str:
        try:
            output = self.channel.run_installer([*args, remote_path], timeout=timeout)
        except CommandError as e:
            if not signatures.is_insufficient_storage(e.output):
                raise
            output = e.output
        if not signatures.is_insufficient_storage(output):
            return output

        self.log.warning(
            f"There was a failure while installing '{app_path}' "
            f"because of the insufficient device storage space"
        )
        self.remote_cache.clear()
        self.log.info(
            f"Consider decreasing the maximum amount of cached apps "
            f"(currently {self.remote_cache.limit}) to avoid such issues in the future"
        )
        remote_path = self.remote_cache.place(app_path, timeout=timeout)
        return self.channel.run_installer([*args, remote_path], timeout=timeout)

    def _run_install(self, app_path: str, perform: Callable[[], str]) -> None:
        name = os.path.basename(app_path)
        started = self.time.current_time()
        try:
            output = perform()
            elapsed_ms = (self.time.current_time() - started) * 1000
            self.log.info(f"The installation of '{name}' took {elapsed_ms:.0f}ms")
            self.log.debug(f"Install command stdout: {_truncate(output)}")
            self._check_output(output)
        except CommandError as e:
            if signatures.is_already_exists(e.output or str(e)):
                self.log.debug(f"Application '{app_path}' already installed. Continuing.")
                return
            raise InstallFailure(
                f"Cannot install '{name}': {e}",
                signature=signatures.find_install_failure(e.output),
                output=e.output
            ) from e
        except InstallFailure as e:
            if not signatures.is_already_exists(e.output):
                raise
            self.log.debug(f"Application '{app_path}' already installed. Continuing.")

    def _check_output(self, output: str) -> None:
        failure = signatures.find_install_failure(output)
        if failure is None:
            return
        if signatures.is_test_only(output):
            hint = "Set 'allow_test_packages' to true in order to allow test packages installation."
            self.log.warning(hint)
            raise InstallFailure(f"{output.strip()}\n{hint}", signature=failure, output=output)
        raise InstallFailure(output.strip(), signature=failure, output=output)

    def _bundle_parts(self, bundle: str) -> list[str]:
        base = self.bundles.extract_base(bundle)
        language = self.bundles.extract_language(bundle)
        return [base] if language == base else [base, language]

    def _clear_cache_quietly(self) -> None:
        try:
            self.remote_cache.clear()
        except CommandError as e:
            self.log.warning(f"Cannot clear the remote cache: {e}")

    def _uninstall_or_fail(self, package_name: Optional[str],
                           cause: Optional[Exception] = None) -> None:
        suffix = f" Original install failure: {cause}" if cause else ""
        if not package_name:
            raise UninstallError(f"Cannot uninstall: the package name is unknown.{suffix}")
        try:
            removed = self.channel.uninstall(package_name, timeout=self.install_timeout)
        except CommandError as e:
            raise UninstallError(f"Cannot uninstall '{package_name}': {e}.{suffix}") from e
        if not removed:
            raise UninstallError(f"Cannot uninstall '{package_name}': package cannot be uninstalled.{suffix}")

    def _reinstall_fresh(self, app_path: str, package_name: Optional[str],
                         options: InstallOptions) -> None:
        try:
            self.install(app_path, replace(options, replace=False))
        except InstallFailure as e:
            raise InstallFailure(
                f"'{package_name}' was uninstalled but could not be reinstalled: {e}",
                signature=e.signature,
                output=e.output
            ) from e

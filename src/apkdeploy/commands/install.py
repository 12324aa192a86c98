"""Install or upgrade a package on the device"""
from apkdeploy.deploy.base import InstallOptions
from apkdeploy.deploy.exceptions import DeploymentError
from apkdeploy.utils.session import DeploySession, add_session_arguments


def setup_parser(parser):
    """Setup argument parser for install command"""
    parser.add_argument(
        'app',
        help='Path to the .apk or .apks file'
    )
    parser.add_argument(
        '--package',
        help='Package identifier (default: read from the file)'
    )
    parser.add_argument(
        '--enforce-current-build',
        action='store_true',
        help='Reinstall the same version and downgrade newer versions'
    )
    parser.add_argument(
        '--grant-permissions',
        action='store_true',
        help='Grant all runtime permissions on install'
    )
    parser.add_argument(
        '--allow-test-packages',
        action='store_true',
        help='Allow installing test-only packages'
    )
    parser.add_argument(
        '--timeout',
        type=float,
        help='Install timeout in seconds (overrides config)'
    )
    parser.add_argument(
        '--no-cache',
        action='store_true',
        help='Do not use the on-device package cache'
    )
    add_session_arguments(parser)


def execute(args):
    """Execute install command"""
    options = InstallOptions(
        allow_test_packages=args.allow_test_packages,
        grant_permissions=args.grant_permissions,
        timeout=args.timeout,
        enforce_current_build=args.enforce_current_build
    )

    try:
        with DeploySession.from_args(args, use_remote_cache=not args.no_cache) as session:
            result = session.orchestrator.install_or_upgrade(
                args.app, package_name=args.package, options=options
            )
    except DeploymentError as e:
        print(f"Error: {e}")
        return 1

    if result.action == 'skip':
        print(f"✓ Nothing to do ({result.app_state.value})")
    else:
        print(f"✓ {result.action.capitalize()} of '{args.app}' complete ({result.app_state.value})")
        if result.was_uninstalled:
            print("  Note: the previously installed package was removed, app data was not kept")
    return 0

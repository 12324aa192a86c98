"""
apkdeploy - Android package deployment with on-device caching

A command-line interface and library for installing, upgrading and
inspecting .apk and .apks packages on Android devices over adb.
"""
import argparse
import sys

__version__ = "1.0.0"


def build_parser():
    """Build the top-level argument parser with all subcommands"""
    from apkdeploy.commands import cache, extract, install, state

    parser = argparse.ArgumentParser(
        prog='apkdeploy',
        description='apkdeploy: install and upgrade Android packages over adb',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  apkdeploy install app.apk                   # Install or upgrade
  apkdeploy install app.apk --enforce-current-build
  apkdeploy install app.apks -d emulator-5554 # Bundle on a given device
  apkdeploy state app.apk                     # Compare with installed version
  apkdeploy cache list                        # Show cached packages on device
  apkdeploy cache clear                       # Remove cached packages
  apkdeploy extract app.apks --language fr    # Pull a split out of a bundle
        '''
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # Install command
    install_parser = subparsers.add_parser('install', help='Install or upgrade a package')
    install.setup_parser(install_parser)

    # State command
    state_parser = subparsers.add_parser('state', help='Show install state of a package')
    state.setup_parser(state_parser)

    # Cache command
    cache_parser = subparsers.add_parser('cache', help='Manage the on-device package cache')
    cache.setup_parser(cache_parser)

    # Extract command
    extract_parser = subparsers.add_parser('extract', help='Extract a part of an .apks bundle')
    extract.setup_parser(extract_parser)

    return parser


def main(argv=None):
    """Main CLI entry point"""
    from apkdeploy.commands import cache, extract, install, state

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    handlers = {
        'install': install.execute,
        'state': state.execute,
        'cache': cache.execute,
        'extract': extract.execute,
    }

    # Dispatch to command handler
    try:
        sys.exit(handlers[args.command](args))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if getattr(args, 'verbose', False):
            import traceback
            traceback.print_exc()
        sys.exit(1)

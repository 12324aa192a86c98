"""Inspect or clear the on-device package cache"""
from apkdeploy.deploy.exceptions import DeploymentError
from apkdeploy.utils.session import DeploySession, add_session_arguments


def setup_parser(parser):
    """Setup argument parser for cache command"""
    parser.add_argument(
        'action',
        choices=['list', 'clear'],
        help='list cached packages (newest first) or remove all of them'
    )
    add_session_arguments(parser)


def execute(args):
    """Execute cache command"""
    try:
        with DeploySession.from_args(args) as session:
            if session.remote_cache is None:
                print("Remote cache is disabled (remote_cache_limit is 0)")
                return 0

            if args.action == 'clear':
                session.remote_cache.clear()
                print(f"✓ Cleared {session.remote_cache.root}")
                return 0

            names = session.remote_cache.list_remote()
    except DeploymentError as e:
        print(f"Error: {e}")
        return 1

    if not names:
        print("Cache is empty.")
        return 0
    print(f"{len(names)} cached package(s) in {session.config.remote_cache_root}:")
    for name in names:
        print(f"  {name}")
    return 0

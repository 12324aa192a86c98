"""Show how the installed package relates to a local one"""
from apkdeploy.deploy.exceptions import DeploymentError
from apkdeploy.utils.session import DeploySession, add_session_arguments


def setup_parser(parser):
    """Setup argument parser for state command"""
    parser.add_argument(
        'app',
        help='Path to the .apk or .apks file'
    )
    parser.add_argument(
        '--package',
        help='Package identifier (default: read from the file)'
    )
    add_session_arguments(parser)


def execute(args):
    """Execute state command"""
    try:
        with DeploySession.from_args(args, use_remote_cache=False) as session:
            state = session.orchestrator.get_install_state(args.app, args.package)
    except DeploymentError as e:
        print(f"Error: {e}")
        return 1

    print(state.value)
    return 0

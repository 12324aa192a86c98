"""Extract the base or language part of an .apks bundle"""
import os
import shutil

from apkdeploy.deploy.exceptions import DeploymentError
from apkdeploy.utils.session import DeploySession, add_session_arguments


def setup_parser(parser):
    """Setup argument parser for extract command"""
    parser.add_argument(
        'bundle',
        help='Path to the .apks file'
    )
    parser.add_argument(
        '--language',
        help='Extract the split for this language (falls back to the base part)'
    )
    parser.add_argument(
        '--base',
        action='store_true',
        help='Extract the base part (default unless --language is given)'
    )
    parser.add_argument(
        '--output', '-o',
        default='.',
        help='Directory to copy the extracted .apk to (default: current directory)'
    )
    add_session_arguments(parser)


def execute(args):
    """Execute extract command"""
    os.makedirs(args.output, exist_ok=True)

    try:
        with DeploySession.from_args(args, use_remote_cache=False) as session:
            if args.language and not args.base:
                part = session.bundle_cache.extract_language(args.bundle, args.language)
            else:
                part = session.bundle_cache.extract_base(args.bundle)
            # Extracted files are deleted when the session closes
            destination = shutil.copy2(part, args.output)
    except DeploymentError as e:
        print(f"Error: {e}")
        return 1

    print(f"✓ Extracted {os.path.basename(part)} to {destination}")
    return 0

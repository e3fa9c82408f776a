# main.py
import argparse
import logging
import sys
from typing import List, Optional

from .clouds import get_cloud
from .config import get_settings
from .exceptions import CloudError, HTTPError
from .timestamps import Timestamp
from .webdav import WebDAVCloud


def setup_logging():
    """Configures logging to file and console explicitly."""
    settings = get_settings()
    log_level_name = settings.LOG_LEVEL.upper()

    # Get the root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_name)

    # Clear any existing handlers to prevent duplicate logs on re-runs or implicit configs
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    try:
        file_handler = logging.FileHandler(settings.LOG_FILE)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    except IOError as e:
        # Log to console if file logging fails (e.g., permissions)
        root_logger.error(f"Failed to set up file logging to {settings.LOG_FILE}: {e}")

    # Reducing "noise" from third-party libraries
    logging.getLogger("dropbox").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)


def run_command(args: argparse.Namespace) -> int:
    settings = get_settings()
    cloud = get_cloud(settings.CLOUD_PROVIDER)
    if isinstance(cloud, WebDAVCloud):
        cloud = WebDAVCloud(timeout=settings.REQUEST_TIMEOUT_SECONDS)
    credentials = settings.credentials()

    if args.command == "authorize":
        cloud.authorize(credentials)
        logging.info(f"{settings.CLOUD_PROVIDER} is ready.")
        return 0

    handle = cloud.find_file(credentials, args.name)

    if args.command == "find":
        if handle is None:
            print("not found")
            return 1
        print(f"{handle.id}\t{handle.modified_time.value.isoformat()}")
        return 0

    if args.command == "read":
        if handle is None:
            logging.error(f"File '{args.name}' not found.")
            return 1
        sys.stdout.write(cloud.read_file(credentials, handle.id))
        return 0

    # write
    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            content = f.read()
    else:
        content = sys.stdin.read()

    if handle is None:
        cloud.create_file(
            credentials, args.name, content, Timestamp.now(cloud.modified_time_precision)
        )
        logging.info(f"Created '{args.name}'.")
    else:
        cloud.write_file(credentials, handle.id, content, handle.modified_time)
        logging.info(f"Updated '{args.name}'.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Read and write text files in the configured cloud storage."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("authorize", help="Check the credentials and prepare the folder.")
    for name, help_text in (
        ("find", "Print the id and modification time of a file."),
        ("read", "Print the content of a file."),
        ("write", "Create or overwrite a file, refusing to clobber newer remote changes."),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("name", help="File name inside the configured folder.")
    subparsers.choices["write"].add_argument(
        "--file", help="Read the content from this path instead of stdin."
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        setup_logging()
        return run_command(args)
    except HTTPError as e:
        logging.error(f"Remote store rejected the request with status {e.status}: {e.body}")
    except CloudError as e:
        logging.error(f"Cloud operation failed: {e}", exc_info=True)
    except ValueError as e:
        logging.critical(f"Invalid configuration: {e}")
    return 1


if __name__ == "__main__":
    sys.exit(main())

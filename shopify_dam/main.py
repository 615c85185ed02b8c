# main.py
import json
import logging

from .config import get_settings
from .service import DamService


def setup_logging():
    """Configures logging to file and console explicitly."""
    settings = get_settings()
    log_level_name = settings.LOG_LEVEL.upper()

    # Get the root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_name)

    # Clear any existing handlers to prevent duplicate logs on re-runs
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    try:
        file_handler = logging.FileHandler(settings.LOG_FILE)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    except IOError as e:
        root_logger.error(f"Failed to set up file logging to {settings.LOG_FILE}: {e}")

    # Reducing "noise" from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def print_tree(service: DamService, user_tags) -> None:
    """Prints the folder hierarchy as indented names with file counts."""

    def walk(node: dict, depth: int):
        print(f"{'  ' * depth}{node['name']} ({node['fileCount']} files)")
        for child in node["children"]:
            walk(child, depth + 1)

    walk(service.get_tree(user_tags=user_tags), 0)


def main():
    import argparse

    parser = argparse.ArgumentParser(
        description="Serve the Shopify-backed digital asset manager."
    )
    parser.add_argument("--host", help="Interface to bind the HTTP server to.")
    parser.add_argument("--port", type=int, help="Port for the HTTP server.")
    parser.add_argument(
        "--print-tree",
        action="store_true",
        help="Print the folder hierarchy and exit instead of serving.",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print catalog statistics as JSON and exit instead of serving.",
    )
    args = parser.parse_args()

    setup_logging()
    settings = get_settings()
    if args.host:
        settings.SERVER_HOST = args.host
    if args.port:
        settings.SERVER_PORT = args.port

    if args.print_tree or args.stats:
        service = DamService.from_settings(settings)
        # Local inspection runs with the first write tag.
        user_tags = settings.DAM_WRITE_TAGS[:1]
        if args.print_tree:
            print_tree(service, user_tags)
        if args.stats:
            print(json.dumps(service.get_stats(user_tags=user_tags), indent=2))
        return

    from .server import run_server

    try:
        run_server(settings)
    except Exception as e:
        logging.critical(f"DAM server stopped unexpectedly: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()

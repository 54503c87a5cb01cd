import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from peer_review.core.app import LOG_FORMAT, SyncApp


def setup_basic_logging():
    """Setup basic stdout logging before config is loaded"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:  # Only add handler if none exists
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.INFO)
        logging.debug("Basic logging initialized")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Peer review platform sync')
    parser.add_argument('--config',
                        default=os.environ.get("PEER_REVIEW_CONFIG"),
                        help='Path to config file (default: ~/.peer_review/config.yaml)')
    sub = parser.add_subparsers(dest='command')
    sub.add_parser('refresh', help='Fetch platform state once and print a summary')
    sub.add_parser('show', help='Print the saved snapshot as JSON (no network)')
    sub.add_parser('serve', help='Refresh in the background and serve the local API until Ctrl-C')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    setup_basic_logging()
    args = build_parser().parse_args(argv)
    command = args.command or 'refresh'

    app = SyncApp(config_path=args.config, watch_config=(command == 'serve'))

    if command == 'show':
        print(json.dumps(app.client.cached_state().to_payload(), indent=2))
        app.stop()
        return 0

    if command == 'serve':
        try:
            app.run()
        except KeyboardInterrupt:
            logging.info("Shutting down")
        return 0

    state = app.refresh()
    unread = len(app.client.unread_notifications(state))
    print(f"{len(state.projects)} project(s), {len(state.reviews)} review(s), "
          f"{len(state.activity_timeline)} activity entries, {unread} unread notification(s)")
    app.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())

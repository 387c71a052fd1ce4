"""Headless entry point that streams a navigation file through the editor."""

import argparse
import logging
import os
import sys
from pathlib import Path

from navedit.config import config_path, load_settings
from navedit.io.nav_file import BackingStoreError, has_previous_edits, sidecar_path
from navedit.model.edit_session import EditSession
from navedit.model.fix import Channel
from navedit.model.navigation_model import ModelMode

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Navigation editor")
    parser.add_argument("file", type=Path, help="Navigation text file to edit")
    parser.add_argument(
        "--use-previous",
        action="store_true",
        help="Start from the edits saved in the .nve file next to FILE",
    )
    parser.add_argument(
        "--browse",
        action="store_true",
        help="Read only; do not write the edited navigation",
    )
    parser.add_argument(
        "--fix-time",
        action="store_true",
        help="Respace duplicate or reversed time stamps in every buffer",
    )
    parser.add_argument(
        "--offset",
        nargs=2,
        type=float,
        metavar=("DLON", "DLAT"),
        help="Position offset in degrees added to every fix",
    )
    parser.add_argument(
        "--model",
        choices=[mode.value for mode in ModelMode],
        help="Navigation model used to propose positions",
    )
    parser.add_argument(
        "--use-model",
        action="store_true",
        help="Replace every position with the model-proposed position",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings file. Defaults to navedit.ini next to the executable.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("NAVEDIT_LOG_LEVEL", "INFO"),
        help=(
            "Logging level (e.g. DEBUG, INFO). Defaults to NAVEDIT_LOG_LEVEL "
            "environment variable or INFO."
        ),
    )
    parser.add_argument(
        "--log-file",
        default=os.getenv("NAVEDIT_LOG_PATH"),
        help=(
            "Optional log file path. Defaults to navedit_log.txt next to the "
            "executable."
        ),
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Shortcut for --log-level DEBUG",
    )
    return parser.parse_args(argv)


def configure_logging(log_level_name: str, log_path: str | None) -> str:
    resolved_level_name = log_level_name.upper()
    log_level = getattr(logging, resolved_level_name, logging.INFO)

    if not log_path:
        base_dir = os.path.dirname(sys.argv[0])
        log_path = os.path.join(base_dir, "navedit_log.txt")

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(log_path, mode="a", encoding="utf-8"),
            logging.StreamHandler(sys.stdout),
        ],
    )

    return log_path


def _busy_message(text: str | None) -> None:
    if text is not None:
        logger.debug("%s", text)


def _edit_buffer(session: EditSession, args: argparse.Namespace) -> None:
    if args.fix_time and session.timestamp_problem:
        session.fix_time()
    if args.offset is not None:
        session.apply_offset()
    if args.use_model and session.model_active:
        session.select_all(Channel.LON)
        session.use_model()
        session.deselect_all(Channel.LON)


def run(args: argparse.Namespace) -> int:
    """Stream ``args.file`` buffer by buffer, applying the requested edits."""

    settings = load_settings(args.config if args.config is not None else config_path())
    if args.browse:
        settings.output_enabled = False
    if args.model is not None:
        settings.model_mode = ModelMode(args.model)
    if args.use_previous and not has_previous_edits(args.file):
        logger.error("No previous edits found at %s", sidecar_path(args.file))
        return 1

    session = EditSession(settings, message=_busy_message)
    try:
        if not session.open(args.file, use_previous=args.use_previous):
            logger.error("No navigation data were read from %s", args.file)
            return 1
        if args.offset is not None:
            session.set_offset(*args.offset)
        buffers = 0
        while session.file_open:
            buffers += 1
            logger.info(
                "Editing buffer %d: records %d to %d",
                buffers,
                session.buffer.record_number(0),
                session.buffer.record_number(len(session.buffer) - 1),
            )
            _edit_buffer(session, args)
            session.next_buffer()
    except BackingStoreError as exc:
        logger.error("Navigation file failure: %s", exc)
        return 1

    if settings.output_enabled:
        logger.info("Edited navigation written to %s", sidecar_path(args.file))
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    log_level_name = "DEBUG" if args.debug else args.log_level
    log_path = configure_logging(log_level_name, args.log_file)
    logger.info("Starting navedit (log level %s, log file %s)", log_level_name.upper(), log_path)
    sys.exit(run(args))


if __name__ == "__main__":
    main()

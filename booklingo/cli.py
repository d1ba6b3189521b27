# booklingo/cli.py
"""
Command line front-end.

    python -m booklingo -i book.pdf -o book_en.pdf --to en

Exit codes: 0 success, 1 translation failed, 2 unsupported input.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from booklingo import __app_name__, __version__
from booklingo.config.settings import AppSettings, get_default_settings_path
from booklingo.models.types import FileType
from booklingo.services.translation_service import TranslationService, detect_file_type

# Module logger
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_UNSUPPORTED = 2

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(verbose: bool = False) -> logging.Handler:
    """Configure console logging on the root logger.

    Returns:
        The installed handler (kept by the caller so it is not collected)
    """
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    # Remove existing handlers that might interfere
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(console_handler)

    # Suppress verbose logging from third-party libraries
    for name in ['urllib3', 'PIL', 'fitz', 'pymupdf']:
        logging.getLogger(name).setLevel(logging.WARNING)

    return console_handler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="booklingo",
        description="Translate PDF and EPUB books while keeping their layout and images",
    )
    parser.add_argument("-i", "--input", type=Path, required=True,
                        help="Input file (.pdf or .epub)")
    parser.add_argument("-o", "--output", type=Path,
                        help="Output file (default: <input>_translated.<ext>)")
    parser.add_argument("--to", dest="target_language",
                        help="Target language code, e.g. en, fr, ja")
    parser.add_argument("--provider", choices=["google", "llm", "passthrough"],
                        help="Translation provider")
    parser.add_argument("--api-key", help="API key for the selected provider")
    parser.add_argument("--config", type=Path,
                        help="Settings path (settings.template.json / user_settings.json "
                             "are read from its directory)")
    parser.add_argument("--batch-size", type=int, help="Snippets per translation call")
    parser.add_argument("--max-concurrency", type=int,
                        help="Maximum translation calls in flight")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version",
                        version=f"{__app_name__} {__version__}")
    return parser


def apply_arguments(settings: AppSettings, args: argparse.Namespace) -> AppSettings:
    """Layer command line options over loaded settings."""
    if args.target_language:
        settings.target_language = args.target_language
    if args.provider:
        settings.provider = args.provider
    if args.api_key:
        if settings.provider == "llm":
            settings.llm_api_key = args.api_key
        else:
            settings.google_api_key = args.api_key
    # Zero is passed through and rejected by the scheduler
    if args.batch_size is not None:
        settings.request.batch_size = args.batch_size
    if args.max_concurrency is not None:
        settings.request.max_concurrency = args.max_concurrency
    return settings


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    settings_path = args.config or get_default_settings_path()
    settings = apply_arguments(AppSettings.load(settings_path, use_cache=False), args)

    input_path: Path = args.input
    if not input_path.is_file():
        logger.error("Input file not found: %s", input_path)
        return EXIT_FAILED

    try:
        file_type = detect_file_type(input_path)
    except OSError as e:
        logger.error("Cannot read %s: %s", input_path, e)
        return EXIT_FAILED
    if file_type == FileType.UNSUPPORTED:
        logger.error("File type not currently supported: %s", input_path)
        return EXIT_UNSUPPORTED

    service = TranslationService(settings)
    result = service.translate_file(input_path, args.output)
    if not result.succeeded:
        logger.error("Translation failed: %s", result.error_message)
        return EXIT_FAILED

    logger.info("Saved %s", result.output_path)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

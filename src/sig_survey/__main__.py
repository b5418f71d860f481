from __future__ import annotations

import argparse
import logging
from pathlib import Path

from sig_survey.survey import Survey
from sig_survey.surveycache import CacheMode
from sig_survey.surveyconfig import SurveyConfig
from sig_survey.surveyconfig import write_new_config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

EPILOG = """\
Reported paths, signed artifacts and a closing summary line are printed to
stdout and/or appended to <config_name>_<YYYYMMDD>_results.txt, as set in the
[emit] section. Listing pages are cached in the configured database, so a
rerun only downloads what it has not seen.
"""

logger = logging.getLogger("sig_survey")


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="sig-survey",
        description="Find artifact versions published in a target month and check whether their jars are signed.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "config",
        type=str,
        help="The survey .ini file. With --make-config, the file to create.",
    )
    parser.add_argument(
        "--verify",
        help="Send If-None-Match for every cached listing page instead of trusting the cache.",
        default=False,
        action="store_true",
    )
    parser.add_argument(
        "--debug",
        help="Log every skipped entry, quota decision and cache hit.",
        default=False,
        action="store_true",
    )
    parser.add_argument(
        "--log-file",
        help="Also write the log to <config>_survey.log next to the config file.",
        default=False,
        action="store_true",
    )
    parser.add_argument(
        "--make-config",
        help="Write a commented survey config with its own cache database and exit.",
        default=False,
        action="store_true",
    )
    return parser.parse_args(args)


def survey_log_path(config_filepath: str) -> Path:
    """Return the log file that belongs to a survey config."""
    filepath = Path(config_filepath).absolute()
    return filepath.parent / f"{filepath.stem}_survey.log"


def configure_logging(*, debug: bool, log_path: Path | None = None) -> None:
    """Log to stderr, and to log_path at debug level when one is given."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )

    if log_path is None:
        return

    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logging.getLogger().addHandler(file_handler)


def main(*, cli_args: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(cli_args)

    if args.make_config:
        write_new_config(args.config)
        return 0

    configure_logging(
        debug=args.debug,
        log_path=survey_log_path(args.config) if args.log_file else None,
    )

    config = SurveyConfig(args.config)
    survey = Survey(config, cache_mode=CacheMode.VERIFY if args.verify else None)

    tally = survey.run_once()
    logger.info("Survey of %s complete: %s", config.root_url, tally)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

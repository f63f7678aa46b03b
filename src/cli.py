"""CLI: оценка перевода по JSON запросу и запуск сценариев.

    python -m src.cli assess REQUEST.json
    python -m src.cli scenario [NAME ...]

assess печатает JSON outcome; код выхода 0 — перевод принят, 1 — отклонён,
2 — запрос некорректен.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

import jsonschema
import pydantic
from dotenv import load_dotenv

from src.config import AppConfig, load_app_config
from src.core.contracts import assess_request_validator
from src.scenarios import SCENARIOS, run_scenarios
from src.settlement.engine import FeeAssessmentEngine
from src.settlement.request import AssessRequest, run_assess_request

logger = logging.getLogger(__name__)

EXIT_ACCEPTED = 0
EXIT_REJECTED = 1
EXIT_INVALID = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="src.cli", description="Custom-fee-aware NFT transfer simulator"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    assess = commands.add_parser("assess", help="assess a transfer request JSON file")
    assess.add_argument("request", type=Path, help="path to assess request JSON")

    scenario = commands.add_parser("scenario", help="run demonstration scenarios")
    scenario.add_argument(
        "names",
        nargs="*",
        metavar="NAME",
        help=f"scenario name (default: all of {', '.join(SCENARIOS)})",
    )
    return parser


def _assess(path: Path, config: AppConfig) -> int:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        request = AssessRequest.from_json_dict(data)
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Cannot read request %s: %s", path, e)
        return EXIT_INVALID
    except jsonschema.ValidationError:
        logger.error("Request %s violates assess_request contract:", path)
        for line in assess_request_validator().describe_errors(data):
            logger.error("  %s", line)
        return EXIT_INVALID
    except pydantic.ValidationError as e:
        logger.error("Request %s is invalid: %s", path, e)
        return EXIT_INVALID

    outcome = run_assess_request(request, FeeAssessmentEngine(config.engine))
    print(json.dumps(outcome.model_dump(mode="json"), indent=2))
    return EXIT_ACCEPTED if outcome.accepted else EXIT_REJECTED


def _scenario(names: Sequence[str], config: AppConfig) -> int:
    for report in run_scenarios(names, config):
        for line in report.lines():
            logger.info(line)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "scenario":
        unknown = [name for name in args.names if name not in SCENARIOS]
        if unknown:
            parser.error(f"unknown scenario(s): {', '.join(unknown)}")

    load_dotenv()
    config = load_app_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.command == "assess":
        return _assess(args.request, config)
    return _scenario(args.names, config)


if __name__ == "__main__":
    sys.exit(main())

from __future__ import annotations

import argparse
import json
import sys

from loguru import logger

from config import Configuration
from models import CATEGORIES, RecommendationSet
from services.report import build_report
from services.requester import RecommendationRequester, ViewState


class ProgressPrinter:
    """Prints each stage change and newly arrived section once."""

    def __init__(self) -> None:
        self._stage = None
        self._shown: set[str] = set()

    def __call__(self, state: ViewState) -> None:
        if state.loading and state.stage != self._stage:
            self._stage = state.stage
            print(f"[{state.progress_percent:3d}%] {state.message}", file=sys.stderr)
        for key in CATEGORIES:
            if key in state.recommendations and key not in self._shown:
                self._shown.add(key)
                titles = ", ".join(item.get("title", "") for item in state.recommendations[key])
                print(f"       {key}: {titles}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    cfg = Configuration.from_env()
    parser = argparse.ArgumentParser(description="Mood → books, meals and activities")
    parser.add_argument("feeling", help="Free text mood, e.g. 'overwhelmed and tired'")
    parser.add_argument("--url", default=cfg.server_url, help="MoodMatch server base URL")
    parser.add_argument("--json", action="store_true", help="Print the raw recommendation JSON")
    args = parser.parse_args(argv)

    logger.remove()
    # resolve sys.stderr per message so redirected streams keep working
    logger.add(lambda message: sys.stderr.write(message), level="WARNING")

    requester = RecommendationRequester(args.url, on_change=ProgressPrinter())
    state = requester.submit(args.feeling)

    if state.error:
        print(f"Error: {state.error}", file=sys.stderr)
        return 1
    if args.json:
        print(json.dumps(state.recommendations, indent=2, ensure_ascii=False))
    else:
        print(build_report(RecommendationSet.from_dict(state.recommendations), feeling=args.feeling))
    return 0


if __name__ == "__main__":
    sys.exit(main())

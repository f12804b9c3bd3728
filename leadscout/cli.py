"""Command-line entrypoint: research one company and print the result as JSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

from leadscout.config import settings
from leadscout.services.research.errors import PipelineError
from leadscout.services.research.pipeline import (
    PipelineOutcome,
    ResearchPipeline,
    build_research_pipeline,
)

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Research a company's leadership team from its domain.")
    parser.add_argument("query", help="Domain, URL, or free text containing a domain.")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Optional path to write the JSON result to instead of stdout.",
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level (default from settings).")
    return parser.parse_args(argv)


def render(outcome: PipelineOutcome) -> str:
    if outcome.ok:
        payload = outcome.result.model_dump(by_alias=True, mode="json")
    else:
        payload = {"error": str(outcome.error), "code": outcome.code, "status": outcome.status_code}
    return json.dumps(payload, indent=2, ensure_ascii=False)


def main(
    argv: Sequence[str] | None = None,
    *,
    pipeline_factory: Callable[[], ResearchPipeline] = build_research_pipeline,
) -> int:
    """CLI entrypoint for a single research run."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stderr,
    )
    try:
        pipeline = pipeline_factory()
    except PipelineError as exc:
        logger.error("Research pipeline unavailable: %s (code=%s)", exc, exc.code)
        return 1

    outcome = asyncio.run(pipeline.run(args.query))
    rendered = render(outcome)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(rendered + "\n", encoding="utf-8")
        logger.info("Wrote research result to %s", args.output)
    else:
        print(rendered)
    if not outcome.ok:
        logger.error("Research failed: %s (code=%s)", outcome.error, outcome.code)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())

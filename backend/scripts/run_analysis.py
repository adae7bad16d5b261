"""
Brand Analysis Script
Runs a full analysis from the command line and prints the results
"""

import argparse
import asyncio
import json
import logging
import sys

# Add parent directory to path
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from brand_monitor.adapters.llm import NoProvidersConfiguredError, list_configured_providers
from brand_monitor.config import get_settings
from brand_monitor.schemas import BrandAnalysis, Company, ProgressEvent, ScrapedData
from brand_monitor.services import AnalysisOrchestrator
from brand_monitor.utils import CallbackProgressSink, create_sse_message

settings = get_settings()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Measure how visible a brand is in LLM answers")
    parser.add_argument("name", help="Company name")
    parser.add_argument("--url", default="", help="Company website")
    parser.add_argument("--industry", help="Industry, e.g. 'web scraping'")
    parser.add_argument("--description", help="Short company description")
    parser.add_argument("--competitor", action="append", dest="competitors",
                        help="Competitor to track (repeatable); skips discovery")
    parser.add_argument("--prompt", action="append", dest="prompts",
                        help="Custom prompt (repeatable); skips generation")
    parser.add_argument("--provider", action="append", dest="providers",
                        help="Provider id to use (repeatable); default all configured")
    parser.add_argument("--sse", action="store_true", help="Print progress as server-sent events")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    return parser.parse_args(argv)


def print_summary(analysis: BrandAnalysis):
    scores = analysis.scores
    print(f"\n{analysis.company.name}: status={analysis.status}"
          f"{' (partial)' if analysis.partial else ''}")
    if analysis.error:
        print(f"  error: {analysis.error}")
    print(f"  providers: {', '.join(analysis.providers_used)}")
    print(f"  responses: {len(analysis.responses)}, failed units: {len(analysis.failed_units)}")
    print(f"  visibility {scores.visibility_score}  sentiment {scores.sentiment_score}  "
          f"share of voice {scores.share_of_voice}  avg position {scores.average_position}  "
          f"overall {scores.overall_score}")

    print("\n  Competitor ranking:")
    for i, ranking in enumerate(analysis.competitor_rankings, 1):
        marker = "*" if ranking.is_own else " "
        print(f"  {marker}{i:>2}. {ranking.name:<30} visibility {ranking.visibility_score:>5}  "
              f"sov {ranking.share_of_voice:>5}  mentions {ranking.mentions:>3}  "
              f"position {ranking.average_position:>4}  {ranking.sentiment.value}")


def print_event(event: ProgressEvent, as_sse: bool):
    if as_sse:
        sys.stdout.write(create_sse_message(event))
        sys.stdout.flush()
    else:
        print(f"[{event.stage.value}] {event.type.value} {json.dumps(event.data, default=str)[:160]}")


async def run(args: argparse.Namespace) -> int:
    company = Company(
        name=args.name,
        url=args.url,
        industry=args.industry,
        description=args.description,
        scraped_data=ScrapedData(),
    )
    orchestrator = AnalysisOrchestrator(
        sink=CallbackProgressSink(lambda event: print_event(event, args.sse)),
    )

    try:
        analysis = await orchestrator.run(
            company,
            competitors=args.competitors,
            prompts=args.prompts,
            providers=args.providers,
        )
    except NoProvidersConfiguredError as e:
        print(f"{e}. Set OPENAI_API_KEY, ANTHROPIC_API_KEY, GOOGLE_API_KEY or PERPLEXITY_API_KEY.")
        return 2

    if args.json:
        print(analysis.model_dump_json(indent=2))
    else:
        print_summary(analysis)
    return 0 if analysis.status == "done" else 1


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    configured = [p.name for p in list_configured_providers()]
    logging.getLogger(__name__).info(f"Configured providers: {configured or 'none'}")
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())

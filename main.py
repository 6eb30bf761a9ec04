"""
Company Lookup command-line entry point.

Searches for a company, then prints the profile, latest quote, recent
filings and AI summary of the best match.
"""

import argparse
import asyncio
import sys

from loguru import logger

from company_lookup.constants import FILING_FORMS
from company_lookup.datasource import CompanyLookupApi
from company_lookup.datasource.models import CompanyLookup
from company_lookup.search import SearchOptions, SearchOrchestrator, SearchPhase
from company_lookup.services.errors import ApiError
from company_lookup.settings import get_settings
from company_lookup.utils import configure_logging


def print_details(details: CompanyLookup) -> None:
    company = details.company
    if company:
        print(f"\n{company.name} ({company.ticker}), CIK {company.cik or 'N/A'}")
        if company.industry or company.sector:
            print(f"  {company.sector or ''} / {company.industry or ''}")
        if company.website:
            print(f"  {company.website}")

    if details.stock_quote:
        quote = details.stock_quote.current
        change = f"{quote.change_percent:+.2f}%" if quote.change_percent is not None else "N/A"
        print(f"\nQuote: {quote.price} {quote.currency} ({change}) [{quote.market_state or 'UNKNOWN'}]")

    if details.recent_filings:
        print("\nRecent filings:")
        for filing in details.recent_filings:
            label = FILING_FORMS.get(filing.form, filing.description or "")
            print(f"  {filing.filing_date or '':<12} {filing.form:<8} {label}")

    analysis = details.investment_analysis
    if analysis and analysis.summary:
        print(f"\nSummary: {analysis.summary}")
        if analysis.disclaimer:
            print(f"  ({analysis.disclaimer})")


async def main(query: str, limit: int, details: bool) -> int:
    settings = get_settings()
    configure_logging(settings)
    logger.debug(f"Using backend {settings.base_url}")

    async with CompanyLookupApi.from_settings(settings) as api:
        orchestrator = SearchOrchestrator(
            api, SearchOptions(max_results=limit, enable_suggestions=False)
        )
        state = await orchestrator.search(query)

        if state.phase == SearchPhase.ERROR:
            print(f"{state.notice.title}: {state.error}", file=sys.stderr)
            for detail in state.notice.details:
                print(f"  - {detail}", file=sys.stderr)
            return 1

        if state.phase == SearchPhase.IDLE:
            print("Query is too short.", file=sys.stderr)
            return 1

        if not state.has_results:
            print(f"No companies found for '{state.debounced_query}'.")
            return 0

        for result in state.results:
            print(f"{result.ticker or '-':<8} {result.name or ''}")

        if details:
            best = state.results[0].ticker or state.debounced_query
            try:
                bundle = await orchestrator.lookup_company(best)
            except ApiError as e:
                print(f"Could not load company details: {e}", file=sys.stderr)
                return 1
            print_details(bundle)

    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Look up a public company.")
    parser.add_argument("query", help="company name or ticker")
    parser.add_argument("--limit", type=int, default=10, help="maximum search results")
    parser.add_argument(
        "--no-details",
        dest="details",
        action="store_false",
        help="only list search matches",
    )
    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(main(args.query, args.limit, args.details)))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)

#!/usr/bin/env python3
"""
Command Line Audit

Crawls a site, analyzes every page and writes a report, without a
database or the API.

Usage:
    python scripts/run_audit.py example.com

    # Crawl up to 25 pages, 2 levels deep, HTML report into ./reports
    python scripts/run_audit.py https://example.com \
        --max-pages 25 \
        --depth 2 \
        --format html \
        --output ./reports

Set PAGESPEED_API_KEY to include measured Core Web Vitals for the start page.
"""

import asyncio
import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


async def run_audit(
    url: str,
    max_pages: int = 10,
    depth: int = 2,
    report_format: str = "html",
    output_dir: str = "./reports",
    use_sitemap: bool = False,
    ignore_robots: bool = False,
) -> int:
    """Run crawl, analysis and report generation. Returns the exit code."""
    from src.analysis.analyzer import PageAnalyzer, SiteAnalyzer
    from src.analysis.performance import PageSpeedClient
    from src.crawler.crawler import CrawlConfig, SiteCrawler
    from src.crawler.fetcher import PageFetcher
    from src.reporter import ReportGenerator, site_analysis_to_report_input
    from src.utils.config import get_settings
    from src.utils.errors import SEOAuditError

    settings = get_settings()
    config = CrawlConfig(
        crawl_type="single" if max_pages <= 1 else "domain",
        max_pages=max_pages,
        max_depth=depth,
        use_sitemap=use_sitemap,
        respect_robots_txt=not ignore_robots,
    )

    def show_progress(progress):
        if progress.current_url:
            print(f"  [{progress.crawled}/{progress.total}] {progress.current_url}")

    print(f"\n{'=' * 60}")
    print(f"SEO AUDIT: {url}")
    print(f"{'=' * 60}\n")

    pagespeed = PageSpeedClient(api_key=settings.PAGESPEED_API_KEY) if settings.pagespeed_active else None
    try:
        async with PageFetcher(
            user_agent=settings.CRAWLER_USER_AGENT,
            timeout=settings.CRAWLER_TIMEOUT,
            max_redirects=settings.CRAWLER_MAX_REDIRECTS,
        ) as fetcher:
            crawl_result = await SiteCrawler(config, fetcher, progress_callback=show_progress).crawl(url)

        analyzer = SiteAnalyzer(PageAnalyzer(pagespeed=pagespeed, strategy=settings.PAGESPEED_STRATEGY))
        site = await analyzer.analyze(crawl_result)
    except SEOAuditError as e:
        print(f"\nAudit failed: {e.message}")
        return 1
    finally:
        if pagespeed is not None:
            await pagespeed.close()

    generator = ReportGenerator()
    report = generator.generate(site_analysis_to_report_input(site), format=report_format)
    path = generator.save_report(report, output_dir)

    counts = site.issue_counts()
    print(f"\n{'=' * 60}")
    print(f"Overall score:  {site.overall_score}/100")
    for category, score in site.scores.category_scores.items():
        print(f"  {category:<10} {score}")
    print(f"Pages analyzed: {len(site.analyzed_pages)} of {len(site.pages)}")
    print(
        f"Issues:         {counts['critical']} critical, {counts['high']} high, "
        f"{counts['medium']} medium, {counts['low']} low"
    )
    print(f"Report:         {path}")
    print(f"{'=' * 60}\n")
    return 0


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Crawl a website and write an SEO audit report"
    )
    parser.add_argument("url", help="Start URL or domain (e.g., example.com)")
    parser.add_argument(
        "--max-pages", type=int, default=10,
        help="Maximum pages to crawl (default: 10; 1 audits only the start page)",
    )
    parser.add_argument(
        "--depth", type=int, default=2,
        help="Maximum link depth from the start page (default: 2)",
    )
    parser.add_argument(
        "--format", choices=["html", "json", "csv"], default="html",
        help="Report format (default: html)",
    )
    parser.add_argument(
        "--output", default="./reports",
        help="Directory for the report (default: ./reports)",
    )
    parser.add_argument(
        "--sitemap", action="store_true",
        help="Seed the crawl from sitemap.xml",
    )
    parser.add_argument(
        "--ignore-robots", action="store_true",
        help="Do not apply robots.txt rules",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    load_dotenv()

    from src.utils.config import configure_logging
    configure_logging("DEBUG" if args.verbose else "WARNING")

    exit_code = asyncio.run(run_audit(
        url=args.url,
        max_pages=args.max_pages,
        depth=args.depth,
        report_format=args.format,
        output_dir=args.output,
        use_sitemap=args.sitemap,
        ignore_robots=args.ignore_robots,
    ))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

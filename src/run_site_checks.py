#!/usr/bin/env python3

import argparse
import asyncio
import csv
import html
import json
import sys
import zipfile
from datetime import datetime
from pathlib import Path

from pages import DEFAULT_REGISTRY, PageNotFound, PageRegistry
from runner import run_site_suite
from site_config import SiteConfig
from verifier import planned_checks


def write_html_report(results_json: dict, html_path: Path):
    summary = results_json.get("summary", {})
    checks = results_json.get("checks", [])
    shots = results_json.get("screenshots", {})

    by_page: dict[str, list] = {}
    for c in checks:
        by_page.setdefault(c.get("page", "Unknown"), []).append(c)

    report = f"""
<html><head><title>Site Verification Report</title>
<style>
body {{ font-family: Arial, sans-serif; padding: 20px; }}
.summary {{ margin-bottom: 16px; }}
.pass {{ color: #0a7b44; }}
.fail {{ color: #b00020; }}
.skipped {{ color: #666; }}
.high {{ background: #fde7e9; font-weight: bold; }}
td, th {{ padding: 4px 10px; text-align: left; vertical-align: top; }}
</style>
</head><body>
  <h1>Site Verification Report</h1>
  <p>Base URL: {html.escape(results_json.get('base_url', ''))}</p>
  <div class="summary">
    <strong>Total:</strong> {summary.get('total', 0)} &nbsp;
    <strong class="pass">Passed:</strong> {summary.get('passed', 0)} &nbsp;
    <strong class="fail">Failed:</strong> {summary.get('failed', 0)} &nbsp;
    <strong class="skipped">Skipped:</strong> {summary.get('skipped', 0)}
  </div>
  <hr />
  {''.join(render_page_section(name, rows, shots.get(name, '')) for name, rows in by_page.items())}
</body></html>
"""
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(report)


def render_page_section(page_name: str, rows: list[dict], screenshot: str) -> str:
    body = "".join(
        f"<tr class=\"{'high' if r.get('severity') == 'high' else ''}\">"
        f"<td>{html.escape(r.get('check', ''))}</td>"
        f"<td class=\"{r.get('outcome', '')}\">{r.get('outcome', '').upper()}</td>"
        f"<td>{html.escape(r.get('detail', ''))}</td></tr>"
        for r in rows
    )
    img_tag = f"<div><img src=\"{html.escape(screenshot)}\" style=\"max-width: 100%; border: 1px solid #ddd;\" /></div>" if screenshot else ""
    return f"""
  <section>
    <h3>{html.escape(page_name)}</h3>
    <table>{body}</table>
    {img_tag}
  </section>
  <hr />
"""


def archive_files(zip_path: Path, files: list[Path], base: Path | None = None):
    with zipfile.ZipFile(zip_path, "w") as zf:
        for f in files:
            if f.exists():
                zf.write(f, arcname=f.relative_to(base).as_posix() if base else f.name)


def log_to_csv(log_path: Path, timestamp: str, summary: dict, artifacts: dict):
    csv_exists = log_path.exists()
    with open(log_path, "a", newline="") as csvfile:
        writer = csv.writer(csvfile)
        if not csv_exists:
            writer.writerow(["Timestamp", "Total", "Passed", "Failed", "Skipped", "Results", "Report", "Archive"])
        writer.writerow([
            timestamp,
            summary.get("total", 0),
            summary.get("passed", 0),
            summary.get("failed", 0),
            summary.get("skipped", 0),
            str(artifacts.get("results")),
            str(artifacts.get("report")),
            str(artifacts.get("archive")),
        ])


def load_registry(args: argparse.Namespace) -> PageRegistry:
    if args.pages_file:
        return PageRegistry.from_json(Path(args.pages_file))
    return DEFAULT_REGISTRY


def print_plan(registry: PageRegistry, routes: list[str] | None):
    specs = [registry.get(r) for r in routes] if routes else registry.all()
    for spec in specs:
        print(f"📄 {spec.name} ({spec.route}): {', '.join(planned_checks(spec))}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Page catalog → verification checks → report")
    parser.add_argument("--base-url", help="Base URL under test (default: $SITE_BASE_URL)")
    parser.add_argument("--pages-file", help="JSON page catalog to use instead of the built-in one")
    parser.add_argument("--route", action="append", dest="routes", help="Only verify this route (repeatable)")
    parser.add_argument("--dry-run", action="store_true", help="Only list the checks each page gets, do not execute")
    parser.add_argument("--no-flows", action="store_true", help="Skip navigation, history and viewport flows")
    parser.add_argument("--extras", action="store_true", help="Also run site chrome, optional features, menu clicks, links, content items, form and page error checks")
    parser.add_argument("--sync", action="store_true", help="Run the CMS write/observe/revert check (needs CMS_URL, STRAPI_TOKEN, CMS_TARGET_ID)")
    parser.add_argument("--cms-url", help="CMS base URL (default: $CMS_URL)")
    parser.add_argument("--target-id", help="Article id mutated by --sync (default: $CMS_TARGET_ID)")
    parser.add_argument("--original-title", help="Title restored after --sync (default: $CMS_ORIGINAL_VALUE or 'Original Heading')")
    parser.add_argument("--heading-selector", help="Selector whose text must show the new title (default: h1)")
    parser.add_argument("--sync-timeout-ms", type=int, help="How long to wait for the new title to appear")
    parser.add_argument("--headful", action="store_true", help="Run browser headful for debugging")
    parser.add_argument("--verbose", action="store_true", help="Print resolver and step logs")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = SiteConfig.from_env(
        base_url=args.base_url,
        cms_url=args.cms_url,
        target_id=args.target_id,
        original_value=args.original_title,
        heading_selector=args.heading_selector,
        sync_timeout_ms=args.sync_timeout_ms,
        headless=not args.headful,
        verbose=args.verbose,
    )

    registry = load_registry(args)
    try:
        print_plan(registry, args.routes)
    except PageNotFound as e:
        raise SystemExit(f"Unknown route: {e.args[0]}. Known routes: {', '.join(registry.routes())}")
    if args.dry_run:
        print("✅ Done. Dry run, no checks executed.")
        return 0

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = Path(f"data/runs/run_{timestamp}")
    run_dir.mkdir(parents=True, exist_ok=True)

    print(f"🏃 Verifying {config.base_url} with Playwright...")
    results_json = asyncio.run(run_site_suite(
        config=config,
        registry=registry,
        run_dir=run_dir,
        routes=args.routes,
        flows=not args.no_flows,
        extras=args.extras,
        sync=args.sync,
    ))

    results_path = run_dir / "results.json"
    with open(results_path, "w", encoding="utf-8") as f:
        json.dump(results_json, f, indent=2)
    print(f"📊 Results written: {results_path}")
    artifacts = {"results": results_path}

    report_path = run_dir / "report.html"
    write_html_report(results_json, report_path)
    artifacts["report"] = report_path
    print(f"📝 HTML report: {report_path}")

    archive_path = run_dir / "archive.zip"
    screenshot_paths = [run_dir / s for s in results_json["screenshots"].values()]
    archive_files(archive_path, [results_path, report_path, *screenshot_paths], base=run_dir)
    artifacts["archive"] = archive_path
    print(f"📦 Archive: {archive_path}")

    summary = results_json["summary"]
    log_to_csv(run_dir / "run_log.csv", timestamp, summary, artifacts)

    print(f"✅ Done. Total: {summary['total']}, Passed: {summary['passed']}, Failed: {summary['failed']}, Skipped: {summary['skipped']}")
    if summary.get("high_severity"):
        print("🚨 Content sync revert failed; the CMS may still hold test data.")
    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())

import os
import re
from pathlib import Path

from playwright.async_api import async_playwright

from cms_client import CmsClient
from content_sync import new_heading_transaction, run_heading_sync
from flows import (
    CROSS_PAGE_FLOW,
    DEFAULT_FLOW,
    check_content_items,
    check_form_typing,
    check_links,
    check_page_errors,
    check_submit_control,
    probe_optional_features,
    run_menu_click_through,
    run_flow,
    run_history_flow,
    run_site_chrome,
    run_viewport_check,
)
from pages import PageRegistry
from site_config import SiteConfig
from verifier import FAIL, PASS, SKIPPED, CheckResult, first_line, verify


def sanitize_for_filename(text: str) -> str:
    """Sanitize text for use in filenames."""
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[-\s]+", "_", text)
    return text.strip("_").lower()[:100]


def get_screenshot_path(screenshots_dir: Path, page_name: str, index: int, action_type: str, context: str = "") -> Path:
    """Descriptive screenshot path, e.g. page_contact_us_03_failure_form.png."""
    page_slug = sanitize_for_filename(page_name)
    action_slug = sanitize_for_filename(action_type)
    context_slug = f"_{sanitize_for_filename(context)}" if context else ""
    return screenshots_dir / f"page_{page_slug}_{index:02d}_{action_slug}{context_slug}.png"


def print_result(result: CheckResult) -> None:
    label = f"{result.page_name} [{result.check_kind}]"
    if result.outcome == PASS:
        print(f"✓ Passed: {label}")
    elif result.outcome == SKIPPED:
        print(f"↷ Skipped: {label} — {result.detail}")
    else:
        # Trim error for readability
        detail = result.detail if len(result.detail) < 300 else (result.detail[:297] + "...")
        glyph = "🚨" if result.severity == "high" else "✖"
        print(f"{glyph} Failed: {label} — {detail}")


def summarize(results: list[CheckResult]) -> dict:
    return {
        "total": len(results),
        "passed": sum(1 for r in results if r.outcome == PASS),
        "failed": sum(1 for r in results if r.outcome == FAIL),
        "skipped": sum(1 for r in results if r.outcome == SKIPPED),
        "high_severity": sum(1 for r in results if r.failed and r.severity == "high"),
    }


async def capture_failure(page, screenshots_dir: Path, page_name: str, index: int, results: list[CheckResult], verbose: bool) -> str:
    failed_kinds = "_".join(r.check_kind for r in results if r.failed)
    shot = get_screenshot_path(screenshots_dir, page_name, index, "failure", context=failed_kinds[:50])
    try:
        delay_ms = int(os.environ.get("SCREENSHOT_DELAY_MS", "0"))
    except ValueError:
        delay_ms = 0
    try:
        if delay_ms > 0:
            await page.wait_for_timeout(delay_ms)
        await page.screenshot(path=str(shot), full_page=True)
    except Exception as e:
        if verbose:
            print(f"⚠️ Could not save failure screenshot: {e}")
        return ""
    if verbose:
        print(f"📸 Failure screenshot saved: {shot.name}")
    # Relative to the run directory, where report.html lives
    return shot.relative_to(screenshots_dir.parent).as_posix()


async def run_site_suite(
    config: SiteConfig,
    registry: PageRegistry,
    run_dir: Path,
    routes: list[str] | None = None,
    flows: bool = True,
    extras: bool = False,
    sync: bool = False,
) -> dict:
    screenshots_dir = run_dir / "screenshots"
    screenshots_dir.mkdir(parents=True, exist_ok=True)
    verbose = config.verbose

    specs = [registry.get(r) for r in routes] if routes else list(registry.all())
    results: list[CheckResult] = []
    screenshots: dict[str, str] = {}
    sync_state: dict = {}

    def record(batch: list[CheckResult]) -> None:
        for r in batch:
            print_result(r)
        results.extend(batch)

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=config.headless)
        context = await browser.new_context(viewport={"width": 1366, "height": 900})
        page = await context.new_page()
        try:
            for idx, spec in enumerate(specs, start=1):
                if verbose:
                    print(f"\n===== Verifying: {spec.name} ({spec.route}) =====")
                batch = await verify(spec, page, config)
                record(batch)
                if any(r.failed for r in batch):
                    shot = await capture_failure(page, screenshots_dir, spec.name, idx, batch, verbose)
                    if shot:
                        screenshots[spec.name] = shot

            if flows:
                if verbose:
                    print("\n===== Navigation flows =====")
                steps = DEFAULT_FLOW if not routes else CROSS_PAGE_FLOW
                record(await run_flow(page, steps, config))
                record(await run_history_flow(page, config))
                record(await run_viewport_check(page, config, 375, 667))
                record(await run_viewport_check(page, config, 768, 1024))

            if extras:
                if verbose:
                    print("\n===== Site chrome & optional features =====")
                record(await run_site_chrome(page, config, [s.route for s in specs]))
                record(await probe_optional_features(page, config))
                record(await run_menu_click_through(page, config))
                record(await check_links(page, config))
                record(await check_content_items(page, config))
                form_routes = [s.route for s in specs if s.has_form]
                if form_routes:
                    record(await check_form_typing(page, config, form_routes[0]))
                    record(await check_submit_control(page, config, form_routes[0]))
                record(await check_page_errors(page, config))

            if sync:
                if verbose:
                    print("\n===== Content sync =====")
                try:
                    tx = new_heading_transaction(config)
                except AssertionError as e:
                    record([CheckResult("Content Sync", "cms-config", FAIL, str(e))])
                else:
                    cms = CmsClient(
                        context.request, config.cms_url, config.api_token,
                        timeout_ms=config.navigation_timeout_ms, verbose=verbose,
                    )
                    try:
                        await run_heading_sync(page, cms, config, tx)
                    except Exception as e:
                        current_url = page.url
                        print(f"✖ Content sync failed: {first_line(e)} (url={current_url})")
                    record(tx.results())
                    sync_state = tx.to_dict()
        finally:
            await browser.close()

    return {
        "base_url": config.base_url,
        "checks": [r.to_dict() for r in results],
        "summary": summarize(results),
        "screenshots": screenshots,
        "sync": sync_state,
    }

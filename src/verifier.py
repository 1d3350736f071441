import re
import urllib.parse
from dataclasses import dataclass, field

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from locators import concept, resolve, resolve_required
from pages import PageSpec
from site_config import SiteConfig


PASS = "pass"
FAIL = "fail"
SKIPPED = "skipped"

# Literal substrings treated as an error page anywhere in body text.
# Coarse on purpose: legitimate copy containing "Error" will trip it.
ERROR_MARKERS = ("404", "Page Not Found", "Error")

IMAGE_SKIP_PREFIXES = ("data:", "blob:")


@dataclass(frozen=True)
class CheckResult:
    page_name: str
    check_kind: str
    outcome: str
    detail: str = ""
    severity: str = "normal"
    data: dict = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.outcome == PASS

    @property
    def failed(self) -> bool:
        return self.outcome == FAIL

    def to_dict(self) -> dict:
        return {
            "page": self.page_name,
            "check": self.check_kind,
            "outcome": self.outcome,
            "detail": self.detail,
            "severity": self.severity,
            "data": self.data,
        }


def first_line(err: Exception) -> str:
    msg = str(err).strip()
    return msg.splitlines()[0] if msg else err.__class__.__name__


def error_markers_in(body_text: str) -> list[str]:
    return [m for m in ERROR_MARKERS if m in body_text]


async def body_text(page, config: SiteConfig) -> str:
    return await page.locator("body").text_content(timeout=config.element_timeout_ms) or ""


async def run_check(page_name: str, kind: str, check) -> CheckResult:
    """Await one check, mapping its failure modes onto a failed CheckResult.

    AssertionError is an unmet expectation; Playwright timeouts and transport
    errors are reported with their first line attached. Nothing here is retried.
    """
    try:
        return await check()
    except AssertionError as e:
        return CheckResult(page_name, kind, FAIL, str(e))
    except PlaywrightTimeoutError as e:
        return CheckResult(page_name, kind, FAIL, f"Timeout: {first_line(e)}")
    except PlaywrightError as e:
        return CheckResult(page_name, kind, FAIL, f"Transport failure: {first_line(e)}")


async def check_load(spec: PageSpec, page, config: SiteConfig) -> CheckResult:
    response = await page.goto(
        config.url_for(spec.route),
        wait_until="domcontentloaded",
        timeout=config.navigation_timeout_ms,
    )
    if response is not None and not response.ok:
        raise AssertionError(f"Navigation to {spec.route} returned HTTP {response.status}")
    if spec.route not in page.url:
        raise AssertionError(f"URL '{page.url}' does not contain '{spec.route}'")
    markers = error_markers_in(await body_text(page, config))
    if markers:
        raise AssertionError(f"Error page detected on {spec.name}: body contains {markers}")
    status = response.status if response is not None else None
    return CheckResult(spec.name, "load", PASS, f"Loaded {page.url}", data={"status": status})


async def check_title(spec: PageSpec, page, config: SiteConfig) -> CheckResult:
    if not spec.title_pattern:
        return CheckResult(spec.name, "title", SKIPPED, "No title pattern declared")
    title = await page.title()
    if not re.search(spec.title_pattern, title, re.I):
        raise AssertionError(f"Title '{title}' does not match /{spec.title_pattern}/i")
    return CheckResult(spec.name, "title", PASS, f"Title '{title}'")


async def check_landmark(spec: PageSpec, page, config: SiteConfig) -> CheckResult:
    located = await resolve(
        page, spec.landmark_selectors, timeout_ms=config.element_timeout_ms, verbose=config.verbose
    )
    if located:
        await located.locator.scroll_into_view_if_needed(timeout=config.element_timeout_ms)
        return CheckResult(spec.name, "landmark", PASS, f"Matched {located.strategy.describe()}")

    # Degrade to the generic <main> landmark before declaring failure
    fallback = await resolve(page, concept("main"), timeout_ms=config.element_timeout_ms, verbose=config.verbose)
    if fallback:
        msg = f"Specific selector for {spec.name} timed out. Verified <main> instead."
        print(f"⚠️ Warning: {msg}")
        return CheckResult(spec.name, "landmark", PASS, msg, data={"fallback": True})
    raise AssertionError(
        f"No landmark visible on {spec.name} (tried: {located.describe()}; fallback <main> also absent)"
    )


async def check_content(spec: PageSpec, page, config: SiteConfig) -> CheckResult:
    text = (await body_text(page, config)).lower()
    matched = [c for c in spec.expected_content if c.lower() in text]
    if not matched:
        raise AssertionError(
            f"Expected to find at least one of [{', '.join(spec.expected_content)}] on {spec.name}"
        )
    return CheckResult(spec.name, "content", PASS, f"Found '{matched[0]}'", data={"matched": matched})


async def check_navigation(spec: PageSpec, page, config: SiteConfig) -> CheckResult:
    if not spec.has_navigation:
        return CheckResult(spec.name, "navigation", SKIPPED, "Page declares no navigation")
    nav = await resolve_required(
        page, concept("navigation"), "navigation", timeout_ms=config.element_timeout_ms, verbose=config.verbose
    )
    link_count = await nav.locator.locator("a").count()
    data = {"link_count": link_count}
    if link_count <= 0:
        return CheckResult(spec.name, "navigation", FAIL, f"Navigation on {spec.name} has no links", data=data)
    return CheckResult(spec.name, "navigation", PASS, f"{link_count} navigation link(s)", data=data)


async def sample_image_urls(page, limit: int) -> list[str]:
    images = page.locator("img[src]")
    cnt = await images.count()
    urls: list[str] = []
    for i in range(cnt):
        if len(urls) >= limit:
            break
        src = (await images.nth(i).get_attribute("src") or "").strip()
        if not src or src.startswith(IMAGE_SKIP_PREFIXES):
            continue
        urls.append(urllib.parse.urljoin(page.url, src))
    return urls


async def check_images(spec: PageSpec, page, config: SiteConfig) -> CheckResult:
    urls = await sample_image_urls(page, config.image_sample_limit)
    if not urls:
        return CheckResult(spec.name, "images", SKIPPED, "No images with a fetchable source")
    broken = []
    for url in urls:
        try:
            response = await page.request.head(url, timeout=config.element_timeout_ms)
        except PlaywrightError as e:
            broken.append(f"{url} ({first_line(e)})")
            continue
        if response.status >= 400:
            broken.append(f"{url} (HTTP {response.status})")
    data = {"sampled": urls, "broken": broken}
    if broken:
        return CheckResult(spec.name, "images", FAIL, f"Broken image on {spec.name}: {'; '.join(broken)}", data=data)
    return CheckResult(spec.name, "images", PASS, f"{len(urls)} image(s) sampled", data=data)


async def check_form(spec: PageSpec, page, config: SiteConfig) -> CheckResult:
    if not spec.has_form:
        return CheckResult(spec.name, "form", SKIPPED, "Page declares no form")
    timeout = config.element_timeout_ms
    await resolve_required(page, concept("form"), "form", timeout_ms=timeout, verbose=config.verbose)
    input_count = await page.locator("input, textarea, select").count()
    if input_count <= 0:
        raise AssertionError(f"Form on {spec.name} has no input fields")
    submit = await resolve_required(page, concept("submit"), "submit control", timeout_ms=timeout, verbose=config.verbose)
    return CheckResult(
        spec.name,
        "form",
        PASS,
        f"{input_count} input(s); submit via {submit.strategy.describe()}",
        data={"input_count": input_count},
    )


CHECKS = (
    ("load", check_load),
    ("title", check_title),
    ("landmark", check_landmark),
    ("content", check_content),
    ("navigation", check_navigation),
    ("images", check_images),
    ("form", check_form),
)


def planned_checks(spec: PageSpec) -> list[str]:
    kinds = []
    for kind, _ in CHECKS:
        if kind == "title" and not spec.title_pattern:
            continue
        if kind == "navigation" and not spec.has_navigation:
            continue
        if kind == "form" and not spec.has_form:
            continue
        kinds.append(kind)
    return kinds


async def verify(spec: PageSpec, page, config: SiteConfig) -> list[CheckResult]:
    """Run the full check battery for one page; a failing check never stops the rest."""
    results = []
    for kind, check in CHECKS:
        if config.verbose:
            print(f"→ {spec.name}: {kind} check")
        results.append(await run_check(spec.name, kind, lambda check=check: check(spec, page, config)))
    return results

import re
from dataclasses import dataclass

from locators import concept, css, css_strategies, resolve, resolve_required, role
from site_config import SiteConfig
from verifier import FAIL, PASS, SKIPPED, CheckResult, body_text, run_check


@dataclass(frozen=True)
class FlowStep:
    route: str
    expected_fragment: str


DEFAULT_FLOW = (
    FlowStep("/", "TDT"),
    FlowStep("/investment-profiles", "Investment"),
    FlowStep("/social-accountability", "Accountability"),
    FlowStep("/stakeholder-directory", "Stakeholder"),
    FlowStep("/knowledge-hub", "Knowledge"),
    FlowStep("/news-events", "News"),
    FlowStep("/contact-us", "Contact"),
)

CROSS_PAGE_FLOW = (
    FlowStep("/", "TDT"),
    FlowStep("/investment-profiles", "Investment"),
    FlowStep("/contact-us", "Contact"),
)

MOBILE_VIEWPORT = {"width": 375, "height": 667}
TABLET_VIEWPORT = {"width": 768, "height": 1024}

# Page errors from these sources are noise, not site defects
IGNORED_PAGE_ERRORS = ("favicon", "analytics")

# Where each optional feature is most likely to appear
FEATURE_ROUTES = {
    "branding": "/",
    "breadcrumbs": "/knowledge-hub",
    "active-nav": "/investment-profiles",
    "skip-link": "/",
    "search": "/",
}

# Menu entries a visitor can click, and the URL fragment each should reach
MENU_LINKS = (("Investment", "investment"), ("About", "about"))

INTERNAL_LINKS = "a[href^='/'], a[href^='./'], a[href^='../']"
EXTERNAL_LINKS = "a[href^='http']:not([href*='{host}'])"
LINK_SAMPLE = 10
NON_NAVIGATING_HREFS = ("#", "mailto:", "tel:")

# Listing pages and the cards or items they render
CONTENT_ITEMS = {
    "/investment-profiles": ".card, [class*='Card'], article, .grid > div",
    "/knowledge-hub": "article, .resource-item, [class*='item']",
}


async def goto(page, config: SiteConfig, route: str):
    return await page.goto(
        config.url_for(route), wait_until="domcontentloaded", timeout=config.navigation_timeout_ms
    )


async def ensure_route(page, config: SiteConfig, route: str) -> str:
    if page.url != config.url_for(route):
        await goto(page, config, route)
    return route


async def run_flow(page, steps, config: SiteConfig, name: str = "Navigation Flow") -> list[CheckResult]:
    """Visit each step in order; every step is reported on its own."""
    results = []
    for idx, step in enumerate(steps, start=1):
        kind = f"flow-step-{idx:02d}"

        async def check(step=step, kind=kind):
            await goto(page, config, step.route)
            if step.route not in page.url:
                raise AssertionError(f"URL '{page.url}' does not contain '{step.route}'")
            text = (await body_text(page, config)).lower()
            if step.expected_fragment.lower() not in text:
                raise AssertionError(f'Expected to find "{step.expected_fragment}" on {step.route}')
            return CheckResult(name, kind, PASS, f"{step.route} contains '{step.expected_fragment}'")

        results.append(await run_check(name, kind, check))
    return results


async def run_history_flow(
    page, config: SiteConfig, first: str = "/", second: str = "/investment-profiles"
) -> list[CheckResult]:
    name = "History Flow"

    async def check():
        await goto(page, config, first)
        first_url = page.url
        await goto(page, config, second)
        second_url = page.url

        await page.go_back(wait_until="domcontentloaded", timeout=config.navigation_timeout_ms)
        if page.url != first_url:
            raise AssertionError(f"Back navigation landed on '{page.url}', expected '{first_url}'")
        await page.go_forward(wait_until="domcontentloaded", timeout=config.navigation_timeout_ms)
        if page.url != second_url:
            raise AssertionError(f"Forward navigation landed on '{page.url}', expected '{second_url}'")
        return CheckResult(name, "back-forward", PASS, f"{first_url} ⇄ {second_url}")

    return [await run_check(name, "back-forward", check)]


async def run_viewport_check(
    page, config: SiteConfig, width: int = 375, height: int = 667, route: str = "/"
) -> list[CheckResult]:
    """Reduced viewport: main content stays visible; a mobile menu trigger is optional."""
    name = f"Viewport {width}x{height}"
    timeout = config.element_timeout_ms
    results = []
    previous = page.viewport_size
    await page.set_viewport_size({"width": width, "height": height})
    try:

        async def check_main():
            await goto(page, config, route)
            await resolve_required(page, concept("main"), "main", timeout_ms=timeout, verbose=config.verbose)
            return CheckResult(name, "viewport-main", PASS, f"<main> visible on {route}")

        results.append(await run_check(name, "viewport-main", check_main))

        async def check_menu():
            trigger = await resolve(page, concept("mobile-menu"), timeout_ms=timeout, verbose=config.verbose)
            if not trigger:
                return CheckResult(name, "mobile-menu", SKIPPED, "No mobile menu trigger on this layout")
            await trigger.locator.click(timeout=timeout)
            await page.wait_for_timeout(500)
            expanded = await trigger.locator.get_attribute("aria-expanded")
            # Missing aria-expanded is optional instrumentation, not a failure
            if expanded is not None and expanded != "true":
                raise AssertionError(f"Mobile menu aria-expanded is '{expanded}' after activation")
            detail = f"Trigger {trigger.strategy.describe()} visible"
            if expanded is not None:
                detail += ", aria-expanded=true after click"
            return CheckResult(name, "mobile-menu", PASS, detail)

        results.append(await run_check(name, "mobile-menu", check_menu))
    finally:
        if previous:
            await page.set_viewport_size(previous)
    return results


async def run_site_chrome(page, config: SiteConfig, routes) -> list[CheckResult]:
    """Header and navigation on every route; footer checked only where one exists."""
    name = "Site Chrome"
    timeout = config.element_timeout_ms
    results = []
    for route in routes:

        async def check_header(route=route):
            await goto(page, config, route)
            located = await resolve_required(page, concept("header"), "header", timeout_ms=timeout)
            await resolve_required(page, concept("navigation"), "navigation", timeout_ms=timeout)
            return CheckResult(name, f"header {route}", PASS, f"Header via {located.strategy.describe()}")

        results.append(await run_check(name, f"header {route}", check_header))

        async def check_footer(route=route):
            # Scroll to the bottom so lazily rendered footers exist
            await page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")
            await page.wait_for_timeout(500)
            present = await resolve(page, concept("footer"), timeout_ms=0, require_visible=False)
            if not present:
                return CheckResult(name, f"footer {route}", SKIPPED, "No footer on this page")
            visible = await resolve(page, concept("footer"), timeout_ms=timeout)
            if not visible:
                raise AssertionError(f"Footer exists on {route} but is not visible")
            link_count = await visible.locator.locator("a").count()
            return CheckResult(
                name, f"footer {route}", PASS, f"Footer visible with {link_count} link(s)",
                data={"link_count": link_count},
            )

        results.append(await run_check(name, f"footer {route}", check_footer))
    return results


async def probe_optional_features(page, config: SiteConfig, routes: dict | None = None) -> list[CheckResult]:
    """Features a page may or may not have. Absent means skipped, present must behave."""
    name = "Optional Features"
    timeout = config.element_timeout_ms
    routes = {**FEATURE_ROUTES, **(routes or {})}
    results = []

    for feature in ("branding", "breadcrumbs", "active-nav"):

        async def check_visible(feature=feature):
            route = await ensure_route(page, config, routes[feature])
            present = await resolve(page, concept(feature), timeout_ms=0, require_visible=False)
            if not present:
                return CheckResult(name, feature, SKIPPED, f"No {feature} on {route}")
            visible = await resolve(page, concept(feature), timeout_ms=timeout)
            if not visible:
                raise AssertionError(f"{feature} exists on {route} but is not visible")
            return CheckResult(name, feature, PASS, f"Visible via {visible.strategy.describe()} on {route}")

        results.append(await run_check(name, feature, check_visible))

    async def check_skip_link():
        route = await ensure_route(page, config, routes["skip-link"])
        # Skip links are usually visually hidden, so presence is enough
        link = await resolve(page, concept("skip-link"), timeout_ms=0, require_visible=False)
        if not link:
            return CheckResult(name, "skip-link", SKIPPED, f"No skip link on {route}")
        href = await link.locator.get_attribute("href")
        if not href:
            raise AssertionError("Skip link has no href")
        return CheckResult(name, "skip-link", PASS, f"Skip link to {href}")

    results.append(await run_check(name, "skip-link", check_skip_link))

    async def check_search():
        route = await ensure_route(page, config, routes["search"])
        present = await resolve(page, concept("search"), timeout_ms=0, require_visible=False)
        if not present:
            return CheckResult(name, "search", SKIPPED, f"No search input on {route}")
        field = await resolve_required(page, concept("search"), "search", timeout_ms=timeout)
        await field.locator.fill("test", timeout=timeout)
        value = await field.locator.input_value(timeout=timeout)
        if value != "test":
            raise AssertionError(f"Search input holds '{value}' after typing 'test'")
        return CheckResult(name, "search", PASS, "Search input accepts text")

    results.append(await run_check(name, "search", check_search))
    return results


async def check_form_typing(page, config: SiteConfig, route: str = "/contact-us") -> list[CheckResult]:
    """Fill the contact form fields locally; nothing is submitted."""
    name = "Form Typing"
    timeout = config.element_timeout_ms

    async def check():
        await goto(page, config, route)
        samples = (
            ("input[type='text'], input[type='email'], input:not([type='submit']):not([type='button'])", "Test User"),
            ("textarea", "This is a test message"),
        )
        typed = []
        for selector, value in samples:
            field = page.locator(selector).first
            if await field.count() == 0:
                continue
            await field.fill(value, timeout=timeout)
            actual = await field.input_value(timeout=timeout)
            if actual != value:
                raise AssertionError(f"Field '{selector}' holds '{actual}', expected '{value}'")
            typed.append(value)
        if not typed:
            return CheckResult(name, "typing", SKIPPED, f"No text fields on {route}")
        return CheckResult(name, "typing", PASS, f"{len(typed)} field(s) accepted input")

    return [await run_check(name, "typing", check)]


async def check_page_errors(page, config: SiteConfig, route: str = "/", settle_ms: int = 2000) -> list[CheckResult]:
    name = "Page Errors"
    errors: list[str] = []

    def on_error(err):
        errors.append(str(err))

    page.on("pageerror", on_error)
    try:

        async def check():
            await goto(page, config, route)
            await page.wait_for_timeout(settle_ms)
            critical = [e for e in errors if not any(noise in e for noise in IGNORED_PAGE_ERRORS)]
            if critical:
                return CheckResult(
                    name, "js-errors", FAIL, f"{len(critical)} uncaught error(s): {critical[0]}",
                    data={"errors": critical},
                )
            return CheckResult(name, "js-errors", PASS, f"No uncaught errors on {route}")

        return [await run_check(name, "js-errors", check)]
    finally:
        page.remove_listener("pageerror", on_error)


async def run_menu_click_through(page, config: SiteConfig, links=MENU_LINKS, route: str = "/") -> list[CheckResult]:
    """Click menu links the way a visitor would; each click must change the URL."""
    name = "Menu Navigation"
    timeout = config.element_timeout_ms
    results = []
    for label, fragment in links:
        kind = f"menu {label}"

        async def check(label=label, fragment=fragment, kind=kind):
            await goto(page, config, route)
            start_url = page.url
            strategies = (role("link", rf"\b{re.escape(label)}\b"), css(f"a:has-text('{label}')"))
            present = await resolve(page, strategies, timeout_ms=0, require_visible=False)
            if not present:
                return CheckResult(name, kind, SKIPPED, f"No '{label}' link on {route}")
            link = await resolve_required(page, strategies, f"{label} link", timeout_ms=timeout)
            await link.locator.click(timeout=timeout)
            await page.wait_for_url(
                re.compile(re.escape(fragment), re.I),
                wait_until="domcontentloaded",
                timeout=config.navigation_timeout_ms,
            )
            if page.url == start_url:
                raise AssertionError(f"Clicking '{label}' did not leave {start_url}")
            return CheckResult(name, kind, PASS, f"'{label}' → {page.url}", data={"from": start_url})

        results.append(await run_check(name, kind, check))
    return results


async def check_links(page, config: SiteConfig, route: str = "/", sample: int = LINK_SAMPLE) -> list[CheckResult]:
    """Sampled internal links need an href; external links with a target must open a new tab."""
    name = "Link Validation"

    async def check_internal():
        await goto(page, config, route)
        found = page.locator(INTERNAL_LINKS)
        count = await found.count()
        if count == 0:
            return CheckResult(name, "internal-links", SKIPPED, f"No internal links on {route}")
        checked, empty = 0, []
        for i in range(min(count, sample)):
            href = await found.nth(i).get_attribute("href") or ""
            if any(marker in href for marker in NON_NAVIGATING_HREFS):
                continue
            checked += 1
            if not href.strip():
                empty.append(i)
        if empty:
            raise AssertionError(f"Internal link(s) #{', #'.join(map(str, empty))} on {route} have an empty href")
        return CheckResult(
            name, "internal-links", PASS, f"{checked} internal link(s) checked",
            data={"found": count, "checked": checked},
        )

    async def check_external():
        await ensure_route(page, config, route)
        found = page.locator(EXTERNAL_LINKS.format(host=config.host))
        count = await found.count()
        if count == 0:
            return CheckResult(name, "external-links", SKIPPED, f"No external links on {route}")
        wrong = []
        for i in range(min(count, sample)):
            link = found.nth(i)
            target = await link.get_attribute("target")
            if target and target != "_blank":
                wrong.append(f"{await link.get_attribute('href')} (target={target})")
        if wrong:
            raise AssertionError(f"External link(s) not opening a new tab: {'; '.join(wrong)}")
        return CheckResult(name, "external-links", PASS, f"{min(count, sample)} external link(s) checked")

    return [
        await run_check(name, "internal-links", check_internal),
        await run_check(name, "external-links", check_external),
    ]


async def check_submit_control(page, config: SiteConfig, route: str = "/contact-us") -> list[CheckResult]:
    """The form's submit control must be visible and enabled. Nothing is clicked."""
    name = "Form Submit"
    timeout = config.element_timeout_ms

    async def check():
        await ensure_route(page, config, route)
        present = await resolve(page, concept("submit"), timeout_ms=0, require_visible=False)
        if not present:
            return CheckResult(name, "submit-enabled", SKIPPED, f"No submit control on {route}")
        button = await resolve_required(page, concept("submit"), "submit", timeout_ms=timeout)
        if not await button.locator.is_enabled(timeout=timeout):
            raise AssertionError(f"Submit control {button.strategy.describe()} is disabled on {route}")
        return CheckResult(name, "submit-enabled", PASS, f"{button.strategy.describe()} is enabled")

    return [await run_check(name, "submit-enabled", check)]


async def check_content_items(page, config: SiteConfig, items=None) -> list[CheckResult]:
    """Listing pages: cards or items are optional, but any that render must be visible."""
    name = "Content Items"
    timeout = config.element_timeout_ms
    results = []
    for route, selector_list in (items or CONTENT_ITEMS).items():
        kind = f"items {route}"

        async def check(route=route, selector_list=selector_list, kind=kind):
            await goto(page, config, route)
            strategies = css_strategies(selector_list)
            present = await resolve(page, strategies, timeout_ms=0, require_visible=False)
            if not present:
                return CheckResult(name, kind, SKIPPED, f"No cards or items on {route}")
            visible = await resolve(page, strategies, timeout_ms=timeout)
            if not visible:
                raise AssertionError(f"Cards or items exist on {route} but none is visible")
            return CheckResult(name, kind, PASS, f"Visible via {visible.strategy.describe()}")

        results.append(await run_check(name, kind, check))
    return results

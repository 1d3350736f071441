import asyncio
import math
import re
from dataclasses import dataclass

from playwright.async_api import Error as PlaywrightError


ENGINES = ("css", "role", "text", "testid")

# Cap on how many matches of one strategy are checked for visibility
MAX_CANDIDATES = 50


@dataclass(frozen=True)
class LocatorStrategy:
    """One way of finding a logical element.

    engine: 'css' | 'role' | 'text' | 'testid'
    value: the CSS selector, ARIA role, text fragment or test id
    name_regex: accessible-name pattern, only used by the role engine
    """

    engine: str
    value: str
    name_regex: str | None = None

    def __post_init__(self):
        if self.engine not in ENGINES:
            raise ValueError(f"Unknown locator engine: {self.engine}")
        if not self.value:
            raise ValueError("Locator strategy needs a value")

    def describe(self) -> str:
        if self.engine == "role" and self.name_regex:
            return f"role={self.value} name=/{self.name_regex}/i"
        return f"{self.engine}={self.value}"

    def to_dict(self) -> dict:
        d = {"engine": self.engine, "value": self.value}
        if self.name_regex:
            d["name_regex"] = self.name_regex
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "LocatorStrategy":
        return cls(engine=data["engine"], value=data["value"], name_regex=data.get("name_regex"))


def css(value: str) -> LocatorStrategy:
    return LocatorStrategy("css", value)


def role(value: str, name_regex: str | None = None) -> LocatorStrategy:
    return LocatorStrategy("role", value, name_regex)


def text(value: str) -> LocatorStrategy:
    return LocatorStrategy("text", value)


def split_selector_list(selector_list: str) -> list[str]:
    """Split 'a, b:has-text("x, y"), c' on top-level commas only."""
    parts: list[str] = []
    depth = 0
    quote = ""
    current = ""
    for ch in selector_list:
        if quote:
            if ch == quote:
                quote = ""
        elif ch in ("'", '"'):
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif ch == "," and depth == 0:
            if current.strip():
                parts.append(current.strip())
            current = ""
            continue
        current += ch
    if current.strip():
        parts.append(current.strip())
    return parts


def css_strategies(selector_list: str) -> tuple[LocatorStrategy, ...]:
    return tuple(css(s) for s in split_selector_list(selector_list))


# Ranked alternatives per logical UI concept. Order matters: first visible hit wins.
CONCEPTS: dict[str, tuple[LocatorStrategy, ...]] = {
    "main": (
        css("main"),
        role("main"),
    ),
    "header": (
        css("header"),
        role("banner"),
        css("nav"),
    ),
    "navigation": (
        css("nav"),
        css("header nav"),
        role("navigation"),
    ),
    "footer": (
        css("footer"),
        role("contentinfo"),
    ),
    "form": (
        css("form"),
        role("form"),
    ),
    "form-input": (
        css("input, textarea, select"),
    ),
    "submit": (
        css("button[type='submit']"),
        css("input[type='submit']"),
        role("button", r"\b(send|submit)\b"),
        css("button:has-text('Send')"),
        css("button:has-text('Submit')"),
    ),
    "heading": (
        role("heading"),
        css("h1"),
        css("h2"),
    ),
    "mobile-menu": (
        css("button[aria-label*='menu' i]"),
        role("button", r"menu"),
        css("button:has-text('Menu')"),
        css(".hamburger"),
        css("[class*='hamburger']"),
        css("[class*='mobile-menu']"),
    ),
    "search": (
        css("input[type='search']"),
        css("input[placeholder*='search' i]"),
        css("[role='search'] input"),
    ),
    "breadcrumbs": (
        css("[aria-label*='breadcrumb' i]"),
        css(".breadcrumb"),
        css("[class*='breadcrumb']"),
    ),
    "branding": (
        css("header img"),
        css(".logo"),
        css("[class*='logo' i]"),
        css("header a:first-child"),
    ),
    "active-nav": (
        css("nav a[aria-current]"),
        css("nav .active"),
        css("nav [class*='active']"),
    ),
    "skip-link": (
        css("a[href='#main']"),
        css("a[href='#content']"),
        css(".skip-link"),
        css("[class*='skip']"),
    ),
}


def concept(name: str) -> tuple[LocatorStrategy, ...]:
    try:
        return CONCEPTS[name]
    except KeyError:
        raise KeyError(f"Unknown UI concept: {name}") from None


@dataclass(frozen=True)
class Located:
    strategy: LocatorStrategy
    locator: object
    index: int = 0

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Absent:
    tried: tuple[LocatorStrategy, ...] = ()

    def __bool__(self) -> bool:
        return False

    def describe(self) -> str:
        return ", ".join(s.describe() for s in self.tried) or "(no strategies)"


def build_locator(page, strategy: LocatorStrategy):
    if strategy.engine == "css":
        return page.locator(strategy.value)
    if strategy.engine == "role":
        if strategy.name_regex:
            return page.get_by_role(strategy.value, name=re.compile(strategy.name_regex, re.I))
        return page.get_by_role(strategy.value)
    if strategy.engine == "text":
        return page.get_by_text(strategy.value, exact=False)
    return page.get_by_test_id(strategy.value)


async def _first_match(page, strategy: LocatorStrategy, require_visible: bool) -> Located | None:
    try:
        loc = build_locator(page, strategy)
        cnt = await loc.count()
        for i in range(min(cnt, MAX_CANDIDATES)):
            el = loc.nth(i)
            if not require_visible or await el.is_visible():
                return Located(strategy, el, i)
    except PlaywrightError:
        # A strategy the page cannot evaluate counts as no match
        return None
    return None


async def resolve(
    page,
    strategies,
    timeout_ms: int = 5000,
    poll_ms: int = 250,
    require_visible: bool = True,
    verbose: bool = False,
) -> Located | Absent:
    """Return the first visible match across ranked strategies, polling until timeout_ms.

    Total absence is reported as Absent (falsy) rather than raised; callers
    decide whether the concept was mandatory.
    """
    strategies = tuple(strategies)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    while True:
        for strategy in strategies:
            located = await _first_match(page, strategy, require_visible)
            if located:
                if verbose:
                    print(f"🔍 Resolved via {strategy.describe()} (match #{located.index})")
                return located
        remaining_ms = (deadline - loop.time()) * 1000
        if poll_ms <= 0 or remaining_ms <= 0:
            break
        await page.wait_for_timeout(min(poll_ms, math.ceil(remaining_ms)))
    if verbose:
        print(f"🔍 No visible match for: {Absent(strategies).describe()}")
    return Absent(strategies)


async def resolve_required(page, strategies, label: str, **kwargs) -> Located:
    located = await resolve(page, strategies, **kwargs)
    if not located:
        raise AssertionError(f"Required element '{label}' not found (tried: {located.describe()})")
    return located

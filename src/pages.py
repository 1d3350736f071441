import json
from dataclasses import dataclass
from pathlib import Path

from locators import LocatorStrategy, css_strategies


@dataclass(frozen=True)
class PageSpec:
    name: str
    route: str
    landmark_selectors: tuple[LocatorStrategy, ...]
    expected_content: tuple[str, ...]
    has_navigation: bool = False
    has_form: bool = False
    title_pattern: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "route": self.route,
            "landmarks": [s.to_dict() for s in self.landmark_selectors],
            "expected_content": list(self.expected_content),
            "has_navigation": self.has_navigation,
            "has_form": self.has_form,
            "title_pattern": self.title_pattern,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PageSpec":
        if "landmarks" in data:
            landmarks = tuple(LocatorStrategy.from_dict(d) for d in data["landmarks"])
        else:
            landmarks = css_strategies(data.get("selector", "main"))
        return cls(
            name=data["name"],
            route=data["route"],
            landmark_selectors=landmarks,
            expected_content=tuple(data.get("expected_content", [])),
            has_navigation=bool(data.get("has_navigation", False)),
            has_form=bool(data.get("has_form", False)),
            title_pattern=data.get("title_pattern"),
        )


class PageNotFound(KeyError):
    pass


class PageRegistry:
    """Ordered, read-only catalog of the pages every run verifies."""

    def __init__(self, specs):
        specs = tuple(specs)
        seen: set[str] = set()
        for spec in specs:
            if spec.route in seen:
                raise ValueError(f"Duplicate route in page registry: {spec.route}")
            if not spec.expected_content:
                raise ValueError(f"Page '{spec.name}' needs at least one expected content string")
            if not spec.landmark_selectors:
                raise ValueError(f"Page '{spec.name}' needs at least one landmark selector")
            seen.add(spec.route)
        self._specs = specs
        self._by_route = {s.route: s for s in specs}

    def all(self) -> tuple[PageSpec, ...]:
        return self._specs

    def get(self, route: str) -> PageSpec:
        try:
            return self._by_route[route]
        except KeyError:
            raise PageNotFound(route) from None

    def routes(self) -> list[str]:
        return [s.route for s in self._specs]

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self):
        return iter(self._specs)

    @classmethod
    def from_json(cls, path: Path) -> "PageRegistry":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(raw, dict):
            raw = raw.get("pages", [])
        return cls(PageSpec.from_dict(d) for d in raw)


DEFAULT_PAGES = (
    PageSpec(
        name="Home",
        route="/",
        landmark_selectors=css_strategies("main"),
        expected_content=("TDT", "Investment", "Tanzania"),
        has_navigation=True,
        title_pattern=r"TDT|Tanzania|Investment|Home",
    ),
    PageSpec(
        name="Investment Profiles",
        route="/investment-profiles",
        landmark_selectors=css_strategies('.investment-card, .card, [class*="Card"], .grid > div, main div > div'),
        expected_content=("Investment",),
        has_navigation=True,
    ),
    PageSpec(
        name="Social Accountability",
        route="/social-accountability",
        landmark_selectors=css_strategies("main section, .prose, main div > div"),
        expected_content=("Accountability", "Social"),
        has_navigation=True,
    ),
    PageSpec(
        name="Stakeholder Directory",
        route="/stakeholder-directory",
        landmark_selectors=css_strategies("table, .directory-list, .grid, main"),
        expected_content=("Stakeholder",),
        has_navigation=True,
    ),
    PageSpec(
        name="Knowledge Hub",
        route="/knowledge-hub",
        landmark_selectors=css_strategies('.resource-item, article, [class*="item"], main'),
        expected_content=("Knowledge", "Resource"),
        has_navigation=True,
    ),
    PageSpec(
        name="News & Events",
        route="/news-events",
        landmark_selectors=css_strategies("article, .news-item, .grid > div, h1, h2"),
        expected_content=("News", "Events"),
        has_navigation=True,
    ),
    PageSpec(
        name="Contact Us",
        route="/contact-us",
        landmark_selectors=css_strategies("form, main section"),
        expected_content=("Contact",),
        has_navigation=True,
        has_form=True,
    ),
)

DEFAULT_REGISTRY = PageRegistry(DEFAULT_PAGES)

"""Tests for the page catalog."""

from __future__ import annotations

import json

import pytest

from locators import css
from pages import DEFAULT_PAGES, DEFAULT_REGISTRY, PageNotFound, PageRegistry, PageSpec


def spec(route="/x", content=("X",), name="X"):
    return PageSpec(name=name, route=route, landmark_selectors=(css("main"),), expected_content=content)


class TestDefaultCatalog:
    def test_seven_pages_in_order(self):
        assert DEFAULT_REGISTRY.routes() == [
            "/",
            "/investment-profiles",
            "/social-accountability",
            "/stakeholder-directory",
            "/knowledge-hub",
            "/news-events",
            "/contact-us",
        ]

    def test_every_page_has_navigation(self):
        assert all(p.has_navigation for p in DEFAULT_PAGES)

    def test_only_contact_has_form(self):
        assert [p.route for p in DEFAULT_PAGES if p.has_form] == ["/contact-us"]

    def test_landmarks_split_from_selector_lists(self):
        news = DEFAULT_REGISTRY.get("/news-events")
        assert [s.value for s in news.landmark_selectors] == ["article", ".news-item", ".grid > div", "h1", "h2"]


class TestRegistry:
    def test_get_unknown_route(self):
        with pytest.raises(PageNotFound):
            DEFAULT_REGISTRY.get("/missing")

    def test_page_not_found_is_key_error(self):
        with pytest.raises(KeyError):
            DEFAULT_REGISTRY.get("/missing")

    def test_duplicate_routes_rejected(self):
        with pytest.raises(ValueError, match="Duplicate route"):
            PageRegistry([spec("/a"), spec("/a", name="Y")])

    def test_empty_expected_content_rejected(self):
        with pytest.raises(ValueError, match="expected content"):
            PageRegistry([spec(content=())])

    def test_iteration_and_length(self):
        registry = PageRegistry([spec("/a"), spec("/b")])
        assert len(registry) == 2
        assert [s.route for s in registry] == ["/a", "/b"]

    def test_from_json(self, tmp_path):
        path = tmp_path / "pages.json"
        path.write_text(json.dumps({
            "pages": [
                {"name": "Home", "route": "/", "selector": "main, .hero", "expected_content": ["Welcome"]},
                {
                    "name": "Contact",
                    "route": "/contact",
                    "landmarks": [{"engine": "role", "value": "form"}],
                    "expected_content": ["Contact"],
                    "has_form": True,
                },
            ]
        }))
        registry = PageRegistry.from_json(path)
        home = registry.get("/")
        assert [s.value for s in home.landmark_selectors] == ["main", ".hero"]
        contact = registry.get("/contact")
        assert contact.has_form
        assert contact.landmark_selectors[0].engine == "role"

    def test_spec_dict_round_trip(self):
        contact = DEFAULT_REGISTRY.get("/contact-us")
        assert PageSpec.from_dict(contact.to_dict()) == contact

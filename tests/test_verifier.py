"""Tests for the per-page check battery."""

from __future__ import annotations

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from fakes import FakeElement, make_dom, tdt_site
from locators import css
from pages import DEFAULT_REGISTRY, PageSpec
from verifier import FAIL, PASS, SKIPPED, error_markers_in, planned_checks, verify


def by_kind(results):
    return {r.check_kind: r for r in results}


class TestVerifyHappyPath:
    async def test_home_passes_every_check(self, site, config):
        results = await verify(DEFAULT_REGISTRY.get("/"), site, config)
        assert [r.check_kind for r in results] == [
            "load", "title", "landmark", "content", "navigation", "images", "form",
        ]
        outcomes = {r.check_kind: r.outcome for r in results}
        assert outcomes == {
            "load": PASS,
            "title": PASS,
            "landmark": PASS,
            "content": PASS,
            "navigation": PASS,
            "images": PASS,
            "form": SKIPPED,
        }

    async def test_every_catalog_page_passes_on_healthy_site(self, site, config):
        for spec in DEFAULT_REGISTRY.all():
            results = await verify(spec, site, config)
            failed = [r for r in results if r.failed]
            assert not failed, f"{spec.name}: {[r.detail for r in failed]}"

    async def test_navigation_exposes_link_count(self, site, config):
        results = by_kind(await verify(DEFAULT_REGISTRY.get("/knowledge-hub"), site, config))
        assert results["navigation"].data["link_count"] == 3


class TestLoadCheck:
    async def test_error_marker_fails_load_but_not_siblings(self, config):
        page = tdt_site(**{"/": make_dom("TDT Investment - Error loading widgets")})
        results = by_kind(await verify(DEFAULT_REGISTRY.get("/"), page, config))
        assert results["load"].outcome == FAIL
        assert "Error" in results["load"].detail
        assert results["content"].outcome == PASS
        assert results["navigation"].outcome == PASS

    async def test_http_error_status_fails(self, config):
        page = tdt_site()
        page.statuses["/knowledge-hub"] = 500
        results = by_kind(await verify(DEFAULT_REGISTRY.get("/knowledge-hub"), page, config))
        assert results["load"].outcome == FAIL
        assert "HTTP 500" in results["load"].detail

    async def test_transport_failure_is_reported_and_battery_continues(self, config):
        page = tdt_site()
        page.goto_errors["/news-events"] = PlaywrightError("net::ERR_NAME_NOT_RESOLVED\nCall log: ...")
        results = await verify(DEFAULT_REGISTRY.get("/news-events"), page, config)
        assert len(results) == 7
        load = by_kind(results)["load"]
        assert load.outcome == FAIL
        assert load.detail == "Transport failure: net::ERR_NAME_NOT_RESOLVED"

    async def test_navigation_timeout_is_reported_as_timeout(self, config):
        page = tdt_site()
        page.goto_errors["/"] = PlaywrightTimeoutError("Timeout 1000ms exceeded.")
        load = by_kind(await verify(DEFAULT_REGISTRY.get("/"), page, config))["load"]
        assert load.detail == "Timeout: Timeout 1000ms exceeded."

    def test_error_markers(self):
        assert error_markers_in("Oops 404 Page Not Found") == ["404", "Page Not Found"]
        assert error_markers_in("All good") == []


class TestTitleCheck:
    async def test_title_mismatch_fails(self, config):
        page = tdt_site()
        page.titles["/"] = "Untitled"
        title = by_kind(await verify(DEFAULT_REGISTRY.get("/"), page, config))["title"]
        assert title.outcome == FAIL

    async def test_no_pattern_skips(self, site, config):
        title = by_kind(await verify(DEFAULT_REGISTRY.get("/contact-us"), site, config))["title"]
        assert title.outcome == SKIPPED


class TestLandmarkCheck:
    async def test_falls_back_to_main_with_diagnostic(self, config, capsys):
        page = tdt_site(**{"/investment-profiles": make_dom("Investment Profiles")})
        landmark = by_kind(await verify(DEFAULT_REGISTRY.get("/investment-profiles"), page, config))["landmark"]
        assert landmark.outcome == PASS
        assert landmark.data == {"fallback": True}
        assert "Verified <main> instead" in landmark.detail
        assert "⚠️ Warning" in capsys.readouterr().out

    async def test_fails_when_nothing_renders(self, config):
        page = tdt_site(**{"/investment-profiles": make_dom("Investment Profiles", main=False)})
        landmark = by_kind(await verify(DEFAULT_REGISTRY.get("/investment-profiles"), page, config))["landmark"]
        assert landmark.outcome == FAIL
        assert "fallback <main> also absent" in landmark.detail

    async def test_hidden_primary_uses_next_alternative(self, config):
        dom = make_dom("Stakeholder Directory", extra={"table": [FakeElement("Row", visible=False)]})
        dom["main"] = [FakeElement("Stakeholder Directory")]
        page = tdt_site(**{"/stakeholder-directory": dom})
        landmark = by_kind(await verify(DEFAULT_REGISTRY.get("/stakeholder-directory"), page, config))["landmark"]
        assert landmark.outcome == PASS
        assert not landmark.data.get("fallback")
        assert landmark.detail == "Matched css=main"


class TestContentCheck:
    async def test_any_one_expected_string_is_enough(self, config):
        page = tdt_site(**{"/knowledge-hub": make_dom("Our RESOURCE library", extra={"article": [FakeElement("x")]})})
        content = by_kind(await verify(DEFAULT_REGISTRY.get("/knowledge-hub"), page, config))["content"]
        assert content.outcome == PASS
        assert content.data["matched"] == ["Resource"]

    async def test_failure_lists_every_expected_string(self, config):
        page = tdt_site(**{"/social-accountability": make_dom("Nothing to see", extra={"main section": [FakeElement("s")]})})
        content = by_kind(await verify(DEFAULT_REGISTRY.get("/social-accountability"), page, config))["content"]
        assert content.outcome == FAIL
        assert content.detail == "Expected to find at least one of [Accountability, Social] on Social Accountability"


class TestNavigationCheck:
    async def test_zero_links_fails_with_count(self, config):
        page = tdt_site(**{"/": make_dom("TDT", nav_links=0)})
        nav = by_kind(await verify(DEFAULT_REGISTRY.get("/"), page, config))["navigation"]
        assert nav.outcome == FAIL
        assert nav.data == {"link_count": 0}

    async def test_missing_navigation_fails(self, config):
        page = tdt_site(**{"/": make_dom("TDT", nav_links=None)})
        nav = by_kind(await verify(DEFAULT_REGISTRY.get("/"), page, config))["navigation"]
        assert nav.outcome == FAIL
        assert "navigation" in nav.detail

    async def test_skipped_when_not_declared(self, site, config):
        spec = PageSpec("Plain", "/news-events", (css("article"),), ("News",))
        nav = by_kind(await verify(spec, site, config))["navigation"]
        assert nav.outcome == SKIPPED


class TestImageCheck:
    async def test_samples_at_most_five_fetchable_images(self, config):
        srcs = ["data:image/png;base64,xx", "", "blob:abc"] + [f"/img/{i}.png" for i in range(8)]
        page = tdt_site(**{"/": make_dom("TDT", images=srcs)})
        images = by_kind(await verify(DEFAULT_REGISTRY.get("/"), page, config))["images"]
        assert images.outcome == PASS
        assert page.request.heads == [f"https://site.test/img/{i}.png" for i in range(5)]

    async def test_broken_image_fails(self, config):
        page = tdt_site(**{"/": make_dom("TDT", images=("/ok.png", "https://cdn.test/missing.jpg"))})
        page.request.statuses["https://cdn.test/missing.jpg"] = 404
        images = by_kind(await verify(DEFAULT_REGISTRY.get("/"), page, config))["images"]
        assert images.outcome == FAIL
        assert images.data["broken"] == ["https://cdn.test/missing.jpg (HTTP 404)"]

    async def test_unreachable_image_counts_as_broken(self, config):
        page = tdt_site(**{"/": make_dom("TDT", images=("/gone.png",))})
        page.request.errors["https://site.test/gone.png"] = PlaywrightError("connect ECONNREFUSED")
        images = by_kind(await verify(DEFAULT_REGISTRY.get("/"), page, config))["images"]
        assert images.outcome == FAIL
        assert "ECONNREFUSED" in images.detail

    async def test_no_images_skips(self, site, config):
        images = by_kind(await verify(DEFAULT_REGISTRY.get("/contact-us"), site, config))["images"]
        assert images.outcome == SKIPPED


class TestFormCheck:
    async def test_contact_form_with_send_button(self, site, config):
        form = by_kind(await verify(DEFAULT_REGISTRY.get("/contact-us"), site, config))["form"]
        assert form.outcome == PASS
        assert form.data == {"input_count": 2}
        assert "send|submit" in form.detail

    async def test_submit_type_matches_without_button_text(self, config):
        dom = make_dom("Contact Us", form=True)
        del dom["role=button"]
        dom["input[type='submit']"] = [FakeElement(attrs={"type": "submit", "value": "Go"})]
        page = tdt_site(**{"/contact-us": dom})
        form = by_kind(await verify(DEFAULT_REGISTRY.get("/contact-us"), page, config))["form"]
        assert form.outcome == PASS
        assert "input[type='submit']" in form.detail

    async def test_missing_submit_control_fails(self, config):
        dom = make_dom("Contact Us", form=True)
        dom["role=button"] = [FakeElement("Cancel")]
        page = tdt_site(**{"/contact-us": dom})
        form = by_kind(await verify(DEFAULT_REGISTRY.get("/contact-us"), page, config))["form"]
        assert form.outcome == FAIL
        assert "submit control" in form.detail

    async def test_form_without_inputs_fails(self, config):
        dom = make_dom("Contact Us", form=True)
        del dom["input, textarea, select"]
        page = tdt_site(**{"/contact-us": dom})
        form = by_kind(await verify(DEFAULT_REGISTRY.get("/contact-us"), page, config))["form"]
        assert form.outcome == FAIL
        assert "no input fields" in form.detail


def test_planned_checks():
    assert planned_checks(DEFAULT_REGISTRY.get("/")) == [
        "load", "title", "landmark", "content", "navigation", "images",
    ]
    assert planned_checks(DEFAULT_REGISTRY.get("/contact-us")) == [
        "load", "landmark", "content", "navigation", "images", "form",
    ]

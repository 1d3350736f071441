from __future__ import annotations

import pytest

from fakes import tdt_site
from site_config import SiteConfig


@pytest.fixture
def config() -> SiteConfig:
    """Short timeouts; the fake page sleeps for real in wait_for_timeout."""
    return SiteConfig(
        base_url="https://site.test",
        cms_url="https://cms.site.test",
        api_token="secret-token",
        target_id="1",
        navigation_timeout_ms=1000,
        element_timeout_ms=200,
        sync_timeout_ms=500,
        poll_interval_ms=100,
    )


@pytest.fixture
def site():
    return tdt_site()

import os
import urllib.parse
from dataclasses import dataclass, field


ENV_BASE_URL = "SITE_BASE_URL"
ENV_CMS_URL = "CMS_URL"
ENV_API_TOKEN = "STRAPI_TOKEN"
ENV_TARGET_ID = "CMS_TARGET_ID"
ENV_ORIGINAL_VALUE = "CMS_ORIGINAL_VALUE"

DEFAULT_BASE_URL = "https://tdt.akvotest.org"
DEFAULT_ORIGINAL_VALUE = "Original Heading"


@dataclass
class SiteConfig:
    """Run settings passed explicitly to every check and transaction."""

    base_url: str = DEFAULT_BASE_URL
    cms_url: str = ""
    api_token: str = field(default="", repr=False)
    target_id: str = ""
    original_value: str = DEFAULT_ORIGINAL_VALUE
    heading_selector: str = "h1"
    headless: bool = True
    verbose: bool = False
    navigation_timeout_ms: int = 45000
    element_timeout_ms: int = 15000
    image_sample_limit: int = 5
    sync_timeout_ms: int = 30000
    poll_interval_ms: int = 1000

    @classmethod
    def from_env(cls, **overrides) -> "SiteConfig":
        values = {
            "base_url": os.environ.get(ENV_BASE_URL, "") or DEFAULT_BASE_URL,
            "cms_url": os.environ.get(ENV_CMS_URL, ""),
            "api_token": os.environ.get(ENV_API_TOKEN, ""),
            "target_id": os.environ.get(ENV_TARGET_ID, ""),
            "original_value": os.environ.get(ENV_ORIGINAL_VALUE, "") or DEFAULT_ORIGINAL_VALUE,
        }
        # CLI flags win over the environment, but only when actually given
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def url_for(self, route: str) -> str:
        if route.startswith("http"):
            return route
        return self.base_url.rstrip("/") + "/" + route.lstrip("/")

    @property
    def host(self) -> str:
        return urllib.parse.urlparse(self.base_url).hostname or ""

    def require_cms(self) -> None:
        missing = []
        if not self.cms_url:
            missing.append(ENV_CMS_URL)
        if not self.api_token:
            missing.append(ENV_API_TOKEN)
        if not self.target_id:
            missing.append(ENV_TARGET_ID)
        if missing:
            raise AssertionError(
                f"Missing required environment variables: {', '.join(missing)}. "
                "Please set these before running the content sync check."
            )

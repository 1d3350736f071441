class CmsClient:
    """Thin wrapper over a Playwright APIRequestContext for the articles API."""

    def __init__(self, request, cms_url: str, api_token: str, timeout_ms: int = 30000, verbose: bool = False):
        self.request = request
        self.cms_url = cms_url.rstrip("/")
        self.api_token = api_token
        self.timeout_ms = timeout_ms
        self.verbose = verbose

    def article_url(self, article_id: str) -> str:
        return f"{self.cms_url}/api/articles/{article_id}"

    def headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    async def update_article_title(self, article_id: str, title: str):
        url = self.article_url(article_id)
        if self.verbose:
            print(f"→ PUT {url} title={title!r}")
        response = await self.request.put(
            url,
            headers=self.headers(),
            data={"data": {"title": title}},
            timeout=self.timeout_ms,
        )
        if self.verbose:
            print(f"→ PUT {url} → HTTP {response.status}")
        return response

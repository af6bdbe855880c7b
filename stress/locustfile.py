"""Basic Locust profile for mixed create/redirect/stats operations.

This profile is convenient for local smoke load and interactive testing. Each
simulated owner keeps a pool of the slugs it created so redirect and stats
traffic can target recently created pages. Redirects alternate between a
browser User-Agent (recorded as page views) and a crawler (served without
recording).

Run with::

    locust -f stress/locustfile.py --host http://localhost:8080
"""

import random

from locust import HttpUser, between, task

MAX_SLUGS_PER_USER = 200

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
CRAWLER_UA = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


class PageOwnerUser(HttpUser):
    """Mixed workload user for local functional load checks."""

    wait_time = between(0.1, 0.5)

    def on_start(self) -> None:
        self.slugs: list[str] = []
        self.owner_headers = {"X-User-ID": str(random.randint(1, 10_000))}

    @task(2)
    def create_page(self) -> None:
        """Create a page, with OGP metadata one time in four."""

        payload: dict = {"url": f"https://example.com/page/{random.randint(1, 1000000)}"}
        if random.random() < 0.25:
            payload["ogp"] = {"title": "Load test page", "description": "Generated by locust"}

        response = self.client.post("/api/pages", json=payload, headers=self.owner_headers, name="POST /api/pages")
        if response.status_code == 201:
            slug = response.json().get("slug")
            if slug:
                self.slugs.append(slug)
                if len(self.slugs) > MAX_SLUGS_PER_USER:
                    self.slugs = self.slugs[-MAX_SLUGS_PER_USER:]

    @task(6)
    def redirect(self) -> None:
        if not self.slugs:
            self.create_page()
            return

        slug = random.choice(self.slugs)
        user_agent = CRAWLER_UA if random.random() < 0.1 else BROWSER_UA
        self.client.get(f"/{slug}", headers={"User-Agent": user_agent}, name="GET /:slug", allow_redirects=False)

    @task(2)
    def stats(self) -> None:
        if not self.slugs:
            self.create_page()
            return

        slug = random.choice(self.slugs)
        self.client.get(f"/api/pages/{slug}/stats", headers=self.owner_headers, name="GET /api/pages/:slug/stats")

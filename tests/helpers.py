"""
Shared test data: sample pages and a mock HTTP site.
"""

from typing import Dict, Tuple, Union

import httpx


GOOD_PAGE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Garden Tools Guide: Choosing Pruners and Spades</title>
  <meta name="description" content="A practical guide to choosing garden tools, covering pruners, spades, rakes and hoes, with maintenance tips that keep every tool working for years.">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta name="author" content="Ada Gardener">
  <meta property="article:published_time" content="2026-10-01T08:00:00Z">
  <meta property="og:title" content="Garden Tools Guide">
  <meta property="og:description" content="Choosing pruners and spades">
  <meta property="og:image" content="https://example.com/og.png">
  <meta name="twitter:card" content="summary">
  <link rel="canonical" href="https://example.com/">
  <link rel="icon" href="/favicon.ico">
  <script type="application/ld+json">
  {"@context": "https://schema.org", "@type": "Article", "headline": "Garden Tools Guide"}
  </script>
</head>
<body>
  <header><nav><a href="/">Home</a> <a href="/tools/">Tools</a> <a href="/about">About</a></nav></header>
  <main>
    <article>
      <h1>Garden Tools Guide</h1>
      <p>Choosing garden tools starts with the work you plan to do. Pruners cut stems cleanly. Spades turn soil and lift roots.</p>
      <h2>Pruners</h2>
      <p>Bypass pruners suit living stems because the blades pass each other. Anvil pruners crush dry wood and suit dead branches.</p>
      <h2>Spades</h2>
      <p>A good spade has a forged blade and a strong handle. Keep the edge sharp and clean the blade after every use.</p>
      <img src="/images/pruners.webp" alt="Bypass pruners" width="800" height="600" loading="lazy">
      <p>Read the <a href="/tools/pruners">pruner reviews</a> and the <a href="https://rhs.org.uk/tools">society guide</a> or the <a href="https://gardenersworld.com/tools">magazine test</a>.</p>
    </article>
  </main>
  <footer><a href="/contact">Contact</a></footer>
</body>
</html>
"""

BAD_PAGE_HTML = """<html>
<head>
  <meta name="robots" content="noindex, nofollow">
</head>
<body>
  <div>Welcome</div>
  <img src="/banner.jpg">
  <img src="/promo.png">
  <a href="/other">click here</a>
</body>
</html>
"""


def simple_page(title: str, body: str = "", links=()) -> str:
    """Minimal valid HTML page with the given title and links."""
    anchors = "".join(f'<a href="{href}">{href}</a> ' for href in links)
    return (
        "<!DOCTYPE html><html lang=\"en\"><head>"
        f"<title>{title}</title>"
        "<meta name=\"viewport\" content=\"width=device-width, initial-scale=1\">"
        "</head><body>"
        f"<h1>{title}</h1><p>{body or title + ' page content for testing purposes.'}</p>"
        f"<nav>{anchors}</nav>"
        "</body></html>"
    )


def site_pages() -> Dict[str, str]:
    """A three page site linking home -> about, blog."""
    return {
        "https://example.com/": GOOD_PAGE_HTML.replace(
            '<a href="/contact">Contact</a>',
            '<a href="/about">About us</a> <a href="/blog">Blog</a>',
        ),
        "https://example.com/about": simple_page("About Example Gardens", links=["/"]),
        "https://example.com/blog": simple_page("Example Gardens Blog", links=["/", "/about"]),
    }


Route = Union[str, Tuple[int, str], Tuple[int, str, Dict[str, str]], httpx.Response]


def build_transport(routes: Dict[str, Route], default_status: int = 404) -> httpx.MockTransport:
    """
    MockTransport serving a fixed site.

    Routes map absolute URLs to an HTML string, a (status, body) or
    (status, body, headers) tuple, or a ready httpx.Response. Unknown
    URLs (robots.txt and sitemaps included) return default_status.
    """
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        route = routes.get(url)
        if route is None and url.endswith("/"):
            route = routes.get(url.rstrip("/"))
        if route is None:
            return httpx.Response(default_status, text="Not found", headers={"content-type": "text/html"})
        if isinstance(route, httpx.Response):
            return route
        if isinstance(route, str):
            return httpx.Response(200, text=route, headers={"content-type": "text/html; charset=utf-8"})
        status, body = route[0], route[1]
        headers = route[2] if len(route) > 2 else {"content-type": "text/html; charset=utf-8"}
        return httpx.Response(status, text=body, headers=headers)

    return httpx.MockTransport(handler)


LIGHTHOUSE_PAYLOAD = {
    "lighthouseResult": {
        "audits": {
            "largest-contentful-paint": {"numericValue": 2100.4567},
            "cumulative-layout-shift": {"numericValue": 0.05},
            "interactive": {"numericValue": 3200},
            "render-blocking-resources": {
                "score": 0.5,
                "title": "Eliminate render-blocking resources",
                "details": {"type": "opportunity", "overallSavingsMs": 450},
            },
            "unused-css-rules": {
                "score": 0.3,
                "title": "Reduce unused CSS",
                "details": {"type": "opportunity", "overallSavingsMs": 900},
            },
            "uses-http2": {
                "score": 1,
                "details": {"type": "opportunity", "overallSavingsMs": 0},
            },
        },
        "categories": {
            "performance": {"score": 0.87},
            "seo": {"score": 0.92},
        },
    }
}

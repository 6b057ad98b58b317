from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
import requests

from unifi_monitor.config import Settings

HOME_URL = "https://store.ui.com/us/en"
ENDPOINT = "https://store.ui.com/_next/data/abc123/us/en.json"
HOME_HTML = (
    "<html><head>"
    '<script src="https://assets-new.ecomm.ui.com/_next/static/abc123/_ssgManifest.js" defer></script>'
    "</head><body></body></html>"
)


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", url: str = "") -> None:
        self.status_code = status_code
        self.text = text
        self.url = url

    def json(self) -> Any:
        return json.loads(self.text)


Handler = Union[FakeResponse, Exception, Callable[..., FakeResponse]]


class FakeSession:
    """Stands in for requests.Session; routes by URL (and category param)."""

    def __init__(self) -> None:
        self.routes: Dict[str, List[Handler]] = {}
        self.post_responses: List[Handler] = []
        self.gets: List[dict] = []
        self.posts: List[dict] = []
        self.headers: Dict[str, str] = {}
        self.closed = False

    def route(self, key: str, *handlers: Handler) -> None:
        """Queue responses for `key`; the last one repeats forever."""
        self.routes[key] = list(handlers)

    def _next(self, queue: List[Handler], **kwargs: Any) -> FakeResponse:
        handler = queue[0] if len(queue) == 1 else queue.pop(0)
        if isinstance(handler, Exception):
            raise handler
        if callable(handler) and not isinstance(handler, FakeResponse):
            return handler(**kwargs)
        return handler

    def get(self, url: str, params: Optional[dict] = None, timeout: Optional[float] = None, **kwargs: Any) -> FakeResponse:
        self.gets.append({"url": url, "params": params, "timeout": timeout})
        key = url
        if params and "category" in params:
            key = f"{url}#{params['category']}"
        if key not in self.routes:
            raise requests.ConnectionError(f"no route for {key}")
        resp = self._next(self.routes[key])
        if not resp.url:
            resp.url = url
        return resp

    def post(self, url: str, json: Any = None, timeout: Optional[float] = None, **kwargs: Any) -> FakeResponse:
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        return self._next(self.post_responses)

    def close(self) -> None:
        self.closed = True


def product_record(pid: str, title: str = "", amount: int = 9900, **extra: Any) -> dict:
    record = {
        "id": pid,
        "title": title or f"Product {pid}",
        "shortDescription": f"Description of {pid}",
        "slug": f"slug-{pid}",
        "thumbnail": {"url": f"https://images.example/{pid}.png"},
        "variants": [
            {"id": f"{pid}-v1", "displayPrice": {"amount": amount, "currency": "USD"}},
        ],
    }
    record.update(extra)
    return record


def listing(*subcategories: List[dict]) -> FakeResponse:
    body = {"pageProps": {"subCategories": [{"products": list(s)} for s in subcategories]}}
    return FakeResponse(200, json.dumps(body))


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: List[float]) -> Callable[[float], None]:
    return sleeps.append


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        discord_webhook_url="https://discord.example/webhook",
        home_url=HOME_URL,
        products_file=str(tmp_path / "products.json"),
        categories=("all-switching", "all-wifi"),
    )

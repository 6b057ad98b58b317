"""Discord webhook notifier.

Turns a newly detected product into a Discord embed and posts it to the
configured webhook.  A 429 from Discord is retried after a fixed delay;
any other failure is reported as NotifyError.
"""
from __future__ import annotations

import datetime as _dt
import logging
import time
from typing import Callable, Optional

import requests

from .errors import NotifyError
from .scraper import Product, first_variant, product_url
from .utils import fixed_retry, get_http_session

logger = logging.getLogger(__name__)

EMBED_COLOR = 15277667
BOT_NAME = "Unifi Store Monitor"
ICON_URL = "https://tse3.mm.bing.net/th?id=OIP.RadjPrUUrLwqfVTEI5YqmwHaIV&pid=Api&P=0&w=300&h=300"
STORE_PRODUCT_BASE = "https://store.ui.com/us/en"


class RateLimited(NotifyError):
    """Discord answered 429."""


def format_price(amount: int) -> str:
    """Format an integer amount of cents as ``$<major>.<minor>``."""
    amount = int(amount)
    sign = "-" if amount < 0 else ""
    major, minor = divmod(abs(amount), 100)
    return f"{sign}${major}.{minor:02d}"


def build_payload(product: Product, now: Optional[_dt.datetime] = None) -> dict:
    if now is None:
        now = _dt.datetime.now(_dt.timezone.utc)

    variant = first_variant(product)
    if variant is None:
        logger.warning("Product %s has no variants; sending without price", product.id)
        variant_value, price_value = "N/A", "N/A"
    else:
        variant_value = variant.id or "N/A"
        price_value = format_price(variant.amount) if variant.amount is not None else "N/A"

    embed = {
        "title": product.title or "Unknown product",
        "color": EMBED_COLOR,
        "url": product_url(product.slug, STORE_PRODUCT_BASE),
        "timestamp": now.isoformat(),
        "author": {"name": "🎉 **New Product Alert!** 🎉", "icon_url": ICON_URL},
        "description": f"{product.short_description}\n",
        "fields": [
            {"name": "Variant", "value": variant_value, "inline": True},
            {"name": "Price", "value": price_value, "inline": True},
        ],
        "footer": {"text": BOT_NAME, "icon_url": ICON_URL},
    }
    if product.thumbnail_url:
        embed["thumbnail"] = {"url": product.thumbnail_url}

    return {"username": BOT_NAME, "avatar_url": ICON_URL, "embeds": [embed]}


class DiscordNotifier:
    """Callable that announces one product on the webhook."""

    def __init__(
        self,
        webhook_url: str,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 10.0,
        max_attempts: int = 3,
        rate_limit_delay: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not webhook_url:
            raise NotifyError("Discord webhook URL is not configured")
        self.webhook_url = webhook_url
        self.session = session or get_http_session()
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.rate_limit_delay = rate_limit_delay
        self._sleep = sleep

    def _post_once(self, payload: dict) -> None:
        try:
            resp = self.session.post(self.webhook_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotifyError(f"failed to send discord webhook: {e}") from e

        if resp.status_code == 429:
            raise RateLimited("discord webhook rate limited", status_code=429)
        if not 200 <= resp.status_code < 300:
            raise NotifyError(
                f"discord webhook returned status code: {resp.status_code}",
                status_code=resp.status_code,
            )

    def send(self, product: Product) -> None:
        payload = build_payload(product)
        logger.info("Sending new product notification for %s (id=%s)", product.title, product.id)
        retrying = fixed_retry(
            self.max_attempts,
            self.rate_limit_delay,
            retry_on=(RateLimited,),
            sleep=self._sleep,
            log=logger,
        )
        try:
            retrying(self._post_once, payload)
        except RateLimited as e:
            raise NotifyError(
                f"discord webhook still rate limited after {self.max_attempts} attempts",
                status_code=429,
            ) from e

    __call__ = send


__all__ = ["DiscordNotifier", "RateLimited", "build_payload", "format_price"]

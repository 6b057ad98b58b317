from __future__ import annotations

import logging
import os
import sys
import threading
import time
from typing import Callable, List, Optional, Set

import requests

from . import config, scraper
from .errors import (ConfigError, FetchError, NotifyError,
                     PersistError, ResponseFormatError)
from .notifier import DiscordNotifier
from .scraper import Product
from .store import KnownProductStore
from .utils import exponential_retry, get_http_session

logger = logging.getLogger(__name__)


def setup_logging(level_name: str = "INFO") -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


class Monitor:
    """Polls every category, announces unseen products and records them.

    Starting from an empty store, each category's first clean fetch only
    seeds the store; products it brings in later are announced.  A store
    loaded from a populated file announces from the first cycle.
    """

    def __init__(
        self,
        settings: config.Settings,
        store: KnownProductStore,
        session: Optional[requests.Session] = None,
        notify: Optional[Callable[[Product], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.store = store
        self._owns_session = session is None
        self.session = session or get_http_session()
        self._sleep = sleep
        self._seeded: Set[str] = set()
        if notify is None:
            notify = DiscordNotifier(
                settings.discord_webhook_url,
                self.session,
                timeout=settings.http_timeout_seconds,
                max_attempts=settings.notify_max_attempts,
                rate_limit_delay=settings.notify_rate_limit_delay_seconds,
                sleep=sleep,
            )
        self.notify = notify

    def close(self) -> None:
        """Close the HTTP session if the monitor created it."""
        if self._owns_session:
            self.session.close()

    def resolve_endpoint_with_retry(self) -> str:
        """Resolve the data endpoint, backing off 1s, 2s, 4s... between tries.

        The last FetchError/ParseError propagates once attempts run out.
        """
        retrying = exponential_retry(
            self.settings.resolve_max_attempts,
            retry_on=(FetchError, ResponseFormatError),
            sleep=self._sleep,
        )
        return retrying(
            scraper.resolve_endpoint,
            self.session,
            self.settings.home_url,
            timeout=self.settings.http_timeout_seconds,
        )

    def _announce(self, products: List[Product]) -> None:
        for p in products:
            try:
                self.notify(p)
            except NotifyError:
                logger.exception("Notification failed for %s (id=%s)", p.title, p.id)
            except Exception:
                logger.exception("Unexpected error notifying for %s (id=%s)", p.title, p.id)

    def run_cycle(self) -> List[Product]:
        """One pass over all categories; returns the products new this cycle."""
        endpoint = self.resolve_endpoint_with_retry()

        new_products: List[Product] = []
        failed = 0
        for category in self.settings.categories:
            try:
                products = scraper.fetch_products(
                    self.session,
                    endpoint,
                    category,
                    timeout=self.settings.http_timeout_seconds,
                )
            except (FetchError, ResponseFormatError):
                failed += 1
                logger.exception("Failed to fetch products for category %s", category)
                self._sleep(self.settings.error_penalty_seconds)
                continue

            announce = self.store.initialized or category in self._seeded
            fresh = self.store.diff(products)
            for p in fresh:
                logger.info("New product detected: id=%s title=%s", p.id, p.title)
            if announce:
                self._announce(fresh)
            elif fresh:
                logger.info("Seeded %d existing products from category %s", len(fresh), category)
            self._seeded.add(category)
            new_products.extend(fresh)

        if new_products:
            try:
                self.store.persist(new_products)
            except PersistError:
                logger.exception("Failed to save %d new products", len(new_products))

        if not self.store.initialized and self._seeded.issuperset(self.settings.categories):
            self.store.mark_initialized()

        logger.info(
            "Cycle finished: %d new products across %d categories (%d failed)",
            len(new_products), len(self.settings.categories), failed,
        )
        return new_products

    def run_forever(self) -> None:
        logger.info("Starting monitor for categories %s", ", ".join(self.settings.categories))
        try:
            while True:
                try:
                    self.run_cycle()
                except (FetchError, ResponseFormatError):
                    # run_cycle only lets these out when endpoint resolution is exhausted
                    raise
                except Exception:
                    logger.exception("Unexpected error during poll cycle")
                logger.info("Sleeping for %s seconds...", self.settings.poll_interval_seconds)
                self._sleep(self.settings.poll_interval_seconds)
        finally:
            self.close()


def _poll_thread(monitor: Monitor, errors: list) -> None:
    try:
        monitor.run_forever()
    except (FetchError, ResponseFormatError) as e:
        errors.append(e)
        logger.critical("Catalog endpoint unavailable after retries, stopping: %s", e)
    except Exception as e:
        errors.append(e)
        logger.exception("Poll loop stopped on %s", type(e).__name__)


def main() -> None:
    """Initialise and run the polling loop."""
    setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
    logger.info("Initializing...")
    try:
        settings = config.load_settings()
    except ConfigError as e:
        logger.critical("%s", e)
        sys.exit(2)
    logging.getLogger().setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    store = KnownProductStore(settings.products_file).load()
    monitor = Monitor(settings, store)

    errors: list = []
    t_poll = threading.Thread(target=_poll_thread, args=(monitor, errors), name="poll-loop", daemon=True)
    t_poll.start()
    t_poll.join()
    if errors:
        sys.exit(1)


if __name__ == "__main__":
    main()

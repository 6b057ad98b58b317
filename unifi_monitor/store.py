"""JSON-file persistence for products the monitor has already seen."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Set, Union

from .errors import PersistError
from .scraper import Product

logger = logging.getLogger(__name__)


class KnownProductStore:
    """In-memory set of known products backed by an append-only JSON array.

    ``initialized`` is True once the store was loaded from a populated file
    or every configured category has been swept once.  Until then the poll
    loop announces products per category, after that category's first
    clean fetch.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.lock = threading.Lock()
        self.initialized = False
        self._products: Dict[str, Product] = {}
        self._ids: Set[str] = set()

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def contains(self, product_id: str) -> bool:
        return product_id in self._ids

    def get(self, product_id: str) -> Product | None:
        return self._products.get(product_id)

    def products(self) -> List[Product]:
        with self.lock:
            return list(self._products.values())

    def load(self) -> "KnownProductStore":
        """Read the products file into memory.

        A missing file is created empty.  Unreadable or malformed content
        is logged and leaves the store empty; this never raises.
        """
        logger.info("Loading known products from %s", self.path)
        self._products.clear()
        self._ids.clear()
        self.initialized = False

        if not self.path.exists():
            logger.info("%s not found, creating empty file", self.path)
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.touch()
            except OSError:
                logger.exception("Failed to create %s", self.path)
            return self

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError:
            logger.exception("Failed to read %s", self.path)
            return self

        if not raw.strip():
            return self

        try:
            records = json.loads(raw)
            if not isinstance(records, list):
                raise TypeError("top level is not a JSON array")
            products = [Product.from_dict(r) for r in records]
        except (ValueError, TypeError, OverflowError):
            logger.exception("Failed to decode %s", self.path)
            return self

        for product in products:
            # first-seen wins if the file ever holds duplicates
            if product.id not in self._ids:
                self._ids.add(product.id)
                self._products[product.id] = product
        self.initialized = True
        logger.info("Loaded %d known products", len(self._ids))
        return self

    def record_new(self, product: Product) -> bool:
        """Remember `product`; caller must hold ``lock``.

        Returns False, leaving the stored record untouched, if the id is
        already known.
        """
        if product.id in self._ids:
            return False
        self._ids.add(product.id)
        self._products[product.id] = product
        return True

    def diff(self, products: Iterable[Product]) -> List[Product]:
        """Record every unknown product and return them in listing order."""
        new: List[Product] = []
        with self.lock:
            for product in products:
                if self.record_new(product):
                    new.append(product)
        return new

    def mark_initialized(self) -> None:
        if not self.initialized:
            logger.info("Known-product store initialized with %d products", len(self._ids))
        self.initialized = True

    def _read_persisted(self) -> List[dict]:
        if not self.path.exists():
            return []
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return []
        records = json.loads(raw)
        if not isinstance(records, list):
            raise TypeError(f"{self.path} does not hold a JSON array")
        return records

    def persist(self, new_products: Iterable[Product]) -> None:
        """Append `new_products` to the products file.

        The combined array is written to a sibling temp file and swapped in
        with os.replace, so readers see either the old or the new content.
        Raises PersistError; in-memory state is left as is.
        """
        new_records = [p.to_dict() for p in new_products]
        if not new_records:
            return

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with self.lock:
            try:
                records = self._read_persisted()
                records.extend(new_records)
                payload = json.dumps(records, indent=2, ensure_ascii=False)
                with open(tmp_path, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp_path, self.path)
            except (OSError, ValueError, TypeError) as e:
                try:
                    tmp_path.unlink()
                except FileNotFoundError:
                    pass
                except OSError:
                    logger.warning("Could not remove temp file %s", tmp_path)
                raise PersistError(f"failed to save known products to {self.path}: {e}") from e

        logger.info("Saved %d new products to %s", len(new_records), self.path)


__all__ = ["KnownProductStore"]

"""HTTP client for the storelight storage-location service."""

from __future__ import annotations

import json
import os
from typing import Iterable

import requests

from .logger import get_logger

logger = get_logger(__name__)

UNSTORE_BARCODES_QUERY = """mutation {
  unstoreBarcodes(barcodes: %s) {
    numUnstored
  }
}"""


class StoreError(RuntimeError):
    """Raised when the storage service cannot be reached or reports errors."""


class StorelightClient:
    def __init__(self, url: str | None = None, api_key: str | None = None, timeout: float | None = None):
        self.url = url if url is not None else os.getenv("STORELIGHT_URL", "")
        self.api_key = api_key if api_key is not None else os.getenv("STORELIGHT_APIKEY", "")
        self.timeout = timeout if timeout is not None else float(os.getenv("STORELIGHT_TIMEOUT", "10"))

    def headers(self, username: str | None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "STORELIGHT-APIKEY": self.api_key,
        }
        if username:
            headers["STORELIGHT-USER"] = username
        return headers

    def post_query(self, query: str, username: str | None) -> dict:
        """POST a query and return the response ``data``; raise :class:`StoreError` on failure."""
        if not self.url:
            raise StoreError("Storage service URL is not configured.")
        try:
            r = requests.post(
                self.url,
                json={"query": query},
                headers=self.headers(username),
                timeout=self.timeout,
            )
            r.raise_for_status()
            body = r.json()
        except (requests.RequestException, ValueError) as exc:
            raise StoreError(f"Storage service request failed: {exc}") from exc
        errors = body.get("errors")
        if errors:
            messages = [error.get("message", str(error)) if isinstance(error, dict) else str(error) for error in errors]
            raise StoreError("Storage service reported errors: " + "; ".join(messages))
        return body.get("data") or {}

    def unstore_barcodes(self, barcodes: Iterable[str], username: str | None) -> int:
        """Remove ``barcodes`` from storage and return how many were stored before."""
        barcodes = sorted(set(barcodes))
        if not barcodes:
            return 0
        data = self.post_query(UNSTORE_BARCODES_QUERY % json.dumps(barcodes), username)
        num_unstored = int((data.get("unstoreBarcodes") or {}).get("numUnstored", 0))
        logger.info("store.unstored", barcodes=barcodes, unstored=num_unstored)
        return num_unstored


def get_store_client() -> StorelightClient:
    return StorelightClient()

"""Removal of labware from the external storage system."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy.orm import Session

from .. import models
from ..logger import get_logger
from ..storelight import StoreError, StorelightClient
from ..transactor import Transactor
from . import admin_notify

# purpose: best-effort unstore of labware once it can no longer be stored
# status: active
# depends_on: sampletrack.storelight.StorelightClient, sampletrack.services.admin_notify

logger = get_logger(__name__)

STORAGE_FAILURE_NOTIFICATION = "storage_failure"


def discard_storage(
    db: Session,
    username: str,
    barcodes: Iterable[str],
    *,
    client: StorelightClient | None = None,
) -> int:
    """Unstore ``barcodes``; on failure alert the admins and re-raise the :class:`StoreError`."""

    barcodes = sorted(set(barcodes))
    client = client or StorelightClient()
    try:
        return client.unstore_barcodes(barcodes, username)
    except StoreError:
        logger.exception("store.unstore_failed", username=username, barcodes=barcodes)
        description = admin_notify.service_description()
        admin_notify.issue(
            db,
            STORAGE_FAILURE_NOTIFICATION,
            f"{description} was unable to discard storage",
            f"{description} failed to discard storage for the following barcodes: {barcodes}",
        )
        raise


def unstore_after_commit(
    db: Session,
    user: models.User,
    barcodes: Iterable[str],
    *,
    client: StorelightClient | None = None,
) -> None:
    """Register an unstore of ``barcodes`` to run once the current transaction commits."""

    barcodes = sorted(set(barcodes))
    if not barcodes:
        return
    username = user.username
    Transactor.of(db).run_after_commit(
        lambda: discard_storage(db, username, barcodes, client=client),
        "remove labware from storage",
    )

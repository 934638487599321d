"""Change notifications for documents.

Every successful mutation sends ``document_changed`` exactly once, after
the surrounding transaction commits. Receivers get a ``DocumentChange``
describing the document touched and any other documents the same
mutation touched (``related``). The default receiver drops the cached
projections built by ``django_invoicing.selectors``.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

from django.core.cache import cache
from django.db import transaction
from django.dispatch import Signal

from .conf import get_setting

logger = logging.getLogger(__name__)

# Sent with ``change=DocumentChange``.
document_changed = Signal()

CACHE_PREFIX = "invoicing"


@dataclass(frozen=True)
class DocumentChange:
    organization_id: str
    kind: str
    document_id: str
    action: str
    related: Tuple[Tuple[str, str], ...] = ()

    def keys(self):
        """All (kind, document_id) pairs affected by the change."""
        return ((str(self.kind), str(self.document_id)),) + tuple(
            (str(kind), str(doc_id)) for kind, doc_id in self.related
        )


def document_cache_key(organization_id: str, kind: str, document_id) -> str:
    return f"{CACHE_PREFIX}:{organization_id}:{kind}:{document_id}"


def document_list_cache_key(organization_id: str, kind: str) -> str:
    return f"{CACHE_PREFIX}:{organization_id}:{kind}:list"


def _send_document_changed(change: DocumentChange) -> None:
    # Runs after commit: receiver errors are logged and never raised.
    for receiver, response in document_changed.send_robust(sender=DocumentChange, change=change):
        if isinstance(response, Exception):
            logger.error(
                "document_changed receiver %r failed after %s: %s",
                receiver, change.action, response,
                exc_info=response,
            )


def announce_change(change: DocumentChange) -> None:
    """Queue ``document_changed`` for when the current transaction commits.

    Outside a transaction the signal is sent immediately. Nothing is sent
    if the transaction rolls back. Receiver errors are logged, not raised.
    """
    transaction.on_commit(lambda: _send_document_changed(change))


def invalidate_cached_documents(sender, change: DocumentChange, **kwargs):
    """Delete the cached detail and list projections touched by ``change``."""
    keys = set()
    for kind, document_id in change.keys():
        keys.add(document_cache_key(change.organization_id, kind, document_id))
        keys.add(document_list_cache_key(change.organization_id, kind))
    cache.delete_many(sorted(keys))
    logger.debug("Invalidated %d cache keys after %s", len(keys), change.action)


def connect_default_receivers() -> None:
    """Connect the cache receiver unless INVOICING_CACHE_INVALIDATION is off."""
    if not get_setting("CACHE_INVALIDATION"):
        return
    document_changed.connect(
        invalidate_cached_documents,
        sender=DocumentChange,
        dispatch_uid="django_invoicing.invalidate_cached_documents",
    )

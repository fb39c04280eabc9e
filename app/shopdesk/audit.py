import json
from typing import Any

from flask import g, has_request_context, request

from app.shopdesk.store import DocumentStore
from app.shopdesk.utils import utcnow

AUDIT_COLLECTION = "audit_events"


def record_event(
    store: DocumentStore,
    *,
    shop_id: str | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> str:
    """
    Append-only audit event helper. Returns the new event id.
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    return store.add(
        AUDIT_COLLECTION,
        {
            "createdAt": utcnow(),
            "requestId": rid,
            "shopId": shop_id,
            "clientIp": request.remote_addr if in_request else None,
            "action": action,
            "entityType": entity_type,
            "entityId": entity_id,
            "metadataJson": json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        },
    )

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from typing import Any

from flask import current_app, g
from sqlalchemy import inspect as sa_inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.shopdesk.models import new_document_id

logger = logging.getLogger(__name__)

Document = dict[str, Any]


class StoreError(RuntimeError):
    pass


class DocumentStore:
    """
    Minimal document-collection API: equality queries plus add/update/delete.
    Documents are plain dicts with camelCase keys and an "id".
    """

    def query(self, collection: str, **equals: Any) -> list[Document]:
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Document | None:
        raise NotImplementedError

    def add(self, collection: str, data: Document) -> str:
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, data: Document) -> None:
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass


_CAMEL_BOUNDARY = re.compile(r"_([a-z0-9])")


def camel_key(attr: str) -> str:
    """shop_id -> shopId"""
    return _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), attr)


def sql_collections() -> dict[str, type]:
    from app.shopdesk.models import AuditEvent
    from app.shopdesk.modules.customer_loans.models import CustomerLoan
    from app.shopdesk.modules.customers.models import Customer

    return {
        "customers": Customer,
        "customerLoans": CustomerLoan,
        "audit_events": AuditEvent,
    }


@lru_cache(maxsize=None)
def document_fields(model: type) -> dict[str, str]:
    """Document key -> mapped attribute name (shopId -> shop_id), per model."""
    return {camel_key(attr.key): attr.key for attr in sa_inspect(model).column_attrs}


@dataclass
class SqlDocumentStore(DocumentStore):
    """
    Collections backed by SQLAlchemy tables. Writes are flushed, not committed;
    the caller owns the transaction via commit()/rollback().
    """

    session: Session
    collections: dict[str, type] = field(default_factory=sql_collections)

    def _model(self, collection: str) -> type:
        model = self.collections.get(collection)
        if model is None:
            raise StoreError(f"Unknown collection '{collection}'")
        return model

    def _attrs(self, model: type, collection: str, data: Document) -> dict[str, Any]:
        fields = document_fields(model)
        out: dict[str, Any] = {}
        for key, value in data.items():
            attr = fields.get(key)
            if attr is None:
                raise StoreError(f"Unknown field '{key}' for collection '{collection}'")
            out[attr] = value
        return out

    @staticmethod
    def _to_document(row: Any) -> Document:
        return {key: getattr(row, attr) for key, attr in document_fields(type(row)).items()}

    def query(self, collection: str, **equals: Any) -> list[Document]:
        model = self._model(collection)
        stmt = select(model)
        for attr, value in self._attrs(model, collection, equals).items():
            stmt = stmt.where(getattr(model, attr) == value)
        try:
            rows = self.session.scalars(stmt).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Query on '{collection}' failed: {e}") from e
        return [self._to_document(r) for r in rows]

    def get(self, collection: str, doc_id: str) -> Document | None:
        model = self._model(collection)
        try:
            row = self.session.get(model, doc_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Read of '{collection}/{doc_id}' failed: {e}") from e
        return self._to_document(row) if row is not None else None

    def add(self, collection: str, data: Document) -> str:
        model = self._model(collection)
        attrs = self._attrs(model, collection, data)
        attrs.setdefault("id", new_document_id())
        row = model(**attrs)
        try:
            self.session.add(row)
            self.session.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"Insert into '{collection}' failed: {e}") from e
        return str(row.id)

    def update(self, collection: str, doc_id: str, data: Document) -> None:
        model = self._model(collection)
        attrs = self._attrs(model, collection, data)
        attrs.pop("id", None)
        try:
            row = self.session.get(model, doc_id)
            if row is None:
                raise StoreError(f"No document to update: {collection}/{doc_id}")
            for attr, value in attrs.items():
                setattr(row, attr, value)
            self.session.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"Update of '{collection}/{doc_id}' failed: {e}") from e

    def delete(self, collection: str, doc_id: str) -> None:
        model = self._model(collection)
        try:
            row = self.session.get(model, doc_id)
            if row is not None:
                self.session.delete(row)
                self.session.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"Delete of '{collection}/{doc_id}' failed: {e}") from e

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Commit failed: {e}") from e

    def rollback(self) -> None:
        self.session.rollback()


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


@lru_cache(maxsize=4)
def _supabase_client(url: str, key: str):
    from supabase import create_client

    return create_client(url, key)


@dataclass
class SupabaseDocumentStore(DocumentStore):
    """
    Collections backed by Supabase tables (one table per collection, columns
    named like the document keys). Every call is sent immediately.
    """

    url: str
    key: str
    client: Any = None

    def _client(self):
        if self.client is None:
            if not self.url or not self.key:
                raise StoreError("SUPABASE_URL and SUPABASE_KEY are required for the supabase store.")
            self.client = _supabase_client(self.url, self.key)
        return self.client

    def _execute(self, what: str, request) -> list[Document]:
        try:
            resp = request.execute()
        except Exception as e:
            raise StoreError(f"{what} failed: {e}") from e
        return list(getattr(resp, "data", None) or [])

    def query(self, collection: str, **equals: Any) -> list[Document]:
        req = self._client().table(collection).select("*")
        for key, value in equals.items():
            req = req.eq(key, _encode(value))
        return self._execute(f"Query on '{collection}'", req)

    def get(self, collection: str, doc_id: str) -> Document | None:
        req = self._client().table(collection).select("*").eq("id", doc_id).limit(1)
        rows = self._execute(f"Read of '{collection}/{doc_id}'", req)
        return rows[0] if rows else None

    def add(self, collection: str, data: Document) -> str:
        payload = {k: _encode(v) for k, v in data.items()}
        payload.setdefault("id", new_document_id())
        rows = self._execute(f"Insert into '{collection}'", self._client().table(collection).insert(payload))
        if rows and rows[0].get("id"):
            return str(rows[0]["id"])
        return str(payload["id"])

    def update(self, collection: str, doc_id: str, data: Document) -> None:
        payload = {k: _encode(v) for k, v in data.items() if k != "id"}
        req = self._client().table(collection).update(payload).eq("id", doc_id)
        rows = self._execute(f"Update of '{collection}/{doc_id}'", req)
        if not rows:
            raise StoreError(f"No document to update: {collection}/{doc_id}")

    def delete(self, collection: str, doc_id: str) -> None:
        self._execute(
            f"Delete of '{collection}/{doc_id}'",
            self._client().table(collection).delete().eq("id", doc_id),
        )


def store_from_config(config: dict, session: Session | None = None) -> DocumentStore:
    backend = (config.get("STORE_BACKEND") or "sql").strip().lower()
    if backend == "supabase":
        return SupabaseDocumentStore(
            url=(config.get("SUPABASE_URL") or "").strip(),
            key=(config.get("SUPABASE_KEY") or "").strip(),
        )
    if backend != "sql":
        raise StoreError(f"Unknown STORE_BACKEND '{backend}' (expected 'sql' or 'supabase').")
    if session is None:
        from app.shopdesk.db import db_session

        session = db_session()
    return SqlDocumentStore(session=session)


def get_store() -> DocumentStore:
    """
    Request-scoped document store. Use inside request handlers.
    """
    store = getattr(g, "document_store", None)
    if store is None:
        store = store_from_config(current_app.config)
        g.document_store = store
        logger.debug("Document store opened (%s)", type(store).__name__)
    return store

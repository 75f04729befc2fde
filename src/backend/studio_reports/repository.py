from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy import Column, MetaData, String, Table, Text, bindparam, create_engine, text
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import SQLAlchemyError

from .dates import coerce_timezone
from .ingest import build_snapshot
from .models import MaintenancePlan, StudioSnapshot
from .packages import credit_reset_fields, unfreeze_fields

logger = logging.getLogger(__name__)

COLLECTIONS = ("lessons", "transactions", "users", "members", "bookings", "equipment")


class ReportDataUnavailable(RuntimeError):
    """The document store could not be read; distinct from an empty dataset."""


class DocumentRepository:
    """
    Interface for the studio document store.

    ``load`` returns every document of the requested collections as typed
    records. ``update_document`` merges ``fields`` into one stored document.
    """

    def load(self, tz: Optional[ZoneInfo] = None, collections: Sequence[str] = COLLECTIONS) -> StudioSnapshot:
        raise NotImplementedError

    def update_document(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> None:
        raise NotImplementedError

    def apply_maintenance(self, plan: MaintenancePlan, now: datetime) -> int:
        """
        Write a maintenance plan back to the store.

        A failed write is logged and skipped so one bad document never blocks
        the rest. Returns the number of documents updated.
        """

        updates = [(reset.source, reset.member_id, credit_reset_fields(now)) for reset in plan.credit_resets]
        updates += [(unfreeze.source, unfreeze.member_id, unfreeze_fields(now)) for unfreeze in plan.unfreezes]

        applied = 0
        for collection, document_id, fields in updates:
            try:
                self.update_document(collection, document_id, fields)
            except ReportDataUnavailable as exc:
                logger.warning("Failed to update %s/%s during maintenance: %s", collection, document_id, exc)
                continue
            applied += 1
        return applied


class SQLDocumentRepository(DocumentRepository):
    """
    Documents stored as JSON text in a single table.

    Expected table:
      - documents(collection, id, data_json)
    """

    def __init__(self, engine: Engine, table_name: str = "documents"):
        self.engine = engine
        self.table_name = table_name
        self.metadata = MetaData()
        self.table = Table(
            table_name,
            self.metadata,
            Column("collection", String(64), primary_key=True),
            Column("id", String(128), primary_key=True),
            Column("data_json", Text, nullable=False),
        )

    def create_schema(self) -> None:
        self.metadata.create_all(self.engine, checkfirst=True)

    def load(self, tz: Optional[ZoneInfo] = None, collections: Sequence[str] = COLLECTIONS) -> StudioSnapshot:
        query = text(
            f"""
            SELECT collection, id, data_json
            FROM {self.table_name}
            WHERE collection IN :collections
            ORDER BY collection ASC, id ASC
            """
        ).bindparams(bindparam("collections", expanding=True))
        try:
            with self.engine.connect() as connection:
                rows = connection.execute(query, {"collections": list(collections)}).fetchall()
        except SQLAlchemyError as exc:
            logger.warning("Failed to load documents: %s", exc)
            raise ReportDataUnavailable("Report data unavailable") from exc

        grouped: Dict[str, List[Dict[str, Any]]] = {name: [] for name in COLLECTIONS}
        for row in rows:
            grouped.setdefault(row.collection, []).append(self._row_to_document(row))

        return build_snapshot(
            tz or coerce_timezone(None),
            lessons=grouped["lessons"],
            transactions=grouped["transactions"],
            users=grouped["users"],
            members=grouped["members"],
            bookings=grouped["bookings"],
            equipment=grouped["equipment"],
        )

    def save_document(self, collection: str, document: Mapping[str, Any]) -> str:
        document_id = str(document["id"])
        payload = json.dumps({key: value for key, value in document.items() if key != "id"}, default=str)
        try:
            with self.engine.begin() as connection:
                connection.execute(
                    text(f"DELETE FROM {self.table_name} WHERE collection = :collection AND id = :id"),
                    {"collection": collection, "id": document_id},
                )
                connection.execute(
                    self.table.insert().values(collection=collection, id=document_id, data_json=payload)
                )
        except SQLAlchemyError as exc:
            raise ReportDataUnavailable(f"Failed to save {collection}/{document_id}") from exc
        return document_id

    def update_document(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> None:
        select = text(f"SELECT data_json FROM {self.table_name} WHERE collection = :collection AND id = :id")
        update = text(
            f"UPDATE {self.table_name} SET data_json = :data_json WHERE collection = :collection AND id = :id"
        )
        params = {"collection": collection, "id": document_id}
        try:
            with self.engine.begin() as connection:
                row = connection.execute(select, params).fetchone()
                if row is None:
                    raise ReportDataUnavailable(f"Document {collection}/{document_id} not found")
                data = self._decode(row.data_json)
                data.update(fields)
                connection.execute(update, {**params, "data_json": json.dumps(data, default=str)})
        except SQLAlchemyError as exc:
            raise ReportDataUnavailable(f"Failed to update {collection}/{document_id}") from exc

    @staticmethod
    def _decode(raw: Any) -> Dict[str, Any]:
        if isinstance(raw, dict):
            return dict(raw)
        if isinstance(raw, str):
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                return {}
            return data if isinstance(data, dict) else {}
        return {}

    @classmethod
    def _row_to_document(cls, row: Row) -> Dict[str, Any]:
        document = cls._decode(row.data_json)
        document["id"] = str(row.id)
        return document


@dataclass(frozen=True)
class RepositoryConfig:
    database_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "RepositoryConfig":
        return cls(database_url=os.getenv("STUDIO_REPORTS_DATABASE_URL"))


def build_repository_from_env(config: Optional[RepositoryConfig] = None) -> Optional[DocumentRepository]:
    cfg = config or RepositoryConfig.from_env()
    if cfg.database_url:
        engine = create_engine(cfg.database_url)
        return SQLDocumentRepository(engine)
    return None

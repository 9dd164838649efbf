"""SQLAlchemy backed stores."""

from __future__ import annotations

import json
import logging
import secrets
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from promptlog.core.exceptions import ResourceConflictError, StorageError, ValidationError
from promptlog.db.session import Database
from promptlog.domain import EDITABLE_FIELDS, PromptLog, User
from promptlog.models.prompt_log import PromptLogRecord
from promptlog.models.session import SessionRecord
from promptlog.models.user import UserRecord
from promptlog.services.id_generator import IdGenerator, parse_sequence
from promptlog.services.search import matches, sql_prefilter
from promptlog.storage.base import (
    DEFAULT_RECENT_LIMIT,
    LogStore,
    SessionStore,
    next_timestamp,
    normalize_limit,
    utcnow,
)

logger = logging.getLogger("promptlog")

# Attempts at inserting a generated id before giving up on a busy table.
MAX_ID_ATTEMPTS = 5


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Translate database failures into StorageError, keeping details in the log."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Storage failure while trying to %s", action)
        raise StorageError(f"Failed to {action}") from exc


class SqlLogStore(LogStore):
    """Relational store; each operation runs in its own short session."""

    backend_name = "sql"

    def __init__(self, database: Database, id_generator: Optional[IdGenerator] = None) -> None:
        self.database = database
        self._ids = id_generator or IdGenerator(seed=self._highest_sequence)
        self._stamp_lock = threading.Lock()
        self._last_stamp: Optional[datetime] = None

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> "SqlLogStore":
        return cls(Database(url, echo=echo))

    def create_schema(self) -> None:
        with storage_errors("create tables"):
            self.database.create_all()

    def close(self) -> None:
        self.database.dispose()

    # prompt logs -------------------------------------------------------

    def get(self, log_id: str, owner_id: Optional[str] = None) -> Optional[PromptLog]:
        with storage_errors("fetch log"), self.database.session() as db:
            record = self._query(db, owner_id).filter(PromptLogRecord.id == log_id).first()
            return self._to_domain(record) if record else None

    def list_all(self, owner_id: Optional[str] = None) -> List[PromptLog]:
        with storage_errors("fetch logs"), self.database.session() as db:
            records = self._ordered(self._query(db, owner_id)).all()
            return [self._to_domain(record) for record in records]

    def list_recent(
        self, limit: Any = DEFAULT_RECENT_LIMIT, owner_id: Optional[str] = None
    ) -> List[PromptLog]:
        limit = normalize_limit(limit)
        with storage_errors("fetch recent logs"), self.database.session() as db:
            records = self._ordered(self._query(db, owner_id)).limit(limit).all()
            return [self._to_domain(record) for record in records]

    def search(self, query: str, owner_id: Optional[str] = None) -> List[PromptLog]:
        if not query:
            raise ValidationError("Search query is required")
        with storage_errors("search logs"), self.database.session() as db:
            candidates = self._query(db, owner_id)
            clause = sql_prefilter(PromptLogRecord, query)
            if clause is not None:
                candidates = candidates.filter(clause)
            logs = [self._to_domain(record) for record in self._ordered(candidates).all()]
        return [log for log in logs if matches(log, query)]

    def create(self, data: Mapping[str, Any]) -> PromptLog:
        explicit_id = data.get("id")
        with storage_errors("create log"), self.database.session() as db:
            if explicit_id:
                return self._upsert(db, explicit_id, data)
            for _ in range(MAX_ID_ATTEMPTS):
                log_id = self._ids.next_id(taken=lambda candidate: self._exists(db, candidate))
                record = self._new_record(log_id, data)
                db.add(record)
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    if not self._exists(db, log_id):
                        raise
                    # another writer took the id between the check and the insert
                    logger.warning("Generated id %s collided, retrying", log_id)
                    continue
                return self._to_domain(record)
        raise StorageError("Failed to create log: could not allocate a unique id")

    def update(
        self, log_id: str, patch: Mapping[str, Any], owner_id: Optional[str] = None
    ) -> Optional[PromptLog]:
        with storage_errors("update log"), self.database.session() as db:
            record = self._query(db, owner_id).filter(PromptLogRecord.id == log_id).first()
            if record is None:
                return None
            for key, value in patch.items():
                if key not in EDITABLE_FIELDS:
                    continue
                if key == "tags":
                    record.tags_json = json.dumps(list(value or []))
                else:
                    setattr(record, key, value)
            record.updated_at = self._stamp(after=record.updated_at)
            db.commit()
            return self._to_domain(record)

    def delete(self, log_id: str, owner_id: Optional[str] = None) -> bool:
        with storage_errors("delete log"), self.database.session() as db:
            removed = (
                self._query(db, owner_id)
                .filter(PromptLogRecord.id == log_id)
                .delete(synchronize_session=False)
            )
            db.commit()
            return removed > 0

    # users -------------------------------------------------------------

    def get_user(self, user_id: str) -> Optional[User]:
        with storage_errors("fetch user"), self.database.session() as db:
            record = db.get(UserRecord, user_id)
            return self._user_to_domain(record) if record else None

    def upsert_user(self, data: Mapping[str, Any]) -> User:
        with storage_errors("save user"), self.database.session() as db:
            now = utcnow()
            record = db.get(UserRecord, data["id"])
            if record is None:
                record = UserRecord(id=data["id"], created_at=now)
                db.add(record)
            record.email = data.get("email")
            record.first_name = data.get("first_name")
            record.last_name = data.get("last_name")
            record.profile_image_url = data.get("profile_image_url")
            record.updated_at = now
            db.commit()
            return self._user_to_domain(record)

    # helpers -----------------------------------------------------------

    def _query(self, db: Session, owner_id: Optional[str]):
        query = db.query(PromptLogRecord)
        if owner_id is not None:
            query = query.filter(PromptLogRecord.user_id == owner_id)
        return query

    @staticmethod
    def _ordered(query):
        return query.order_by(PromptLogRecord.created_at.desc(), PromptLogRecord.id.desc())

    @staticmethod
    def _exists(db: Session, log_id: str) -> bool:
        return db.query(PromptLogRecord.id).filter(PromptLogRecord.id == log_id).first() is not None

    def _upsert(self, db: Session, log_id: str, data: Mapping[str, Any]) -> PromptLog:
        owner_id = data.get("owner_id")
        existing = db.get(PromptLogRecord, log_id)
        if existing is not None and existing.user_id is not None and existing.user_id != owner_id:
            raise ResourceConflictError(f"Log {log_id} already exists")
        record = db.merge(self._new_record(log_id, data))
        db.commit()
        return self._to_domain(record)

    def _new_record(self, log_id: str, data: Mapping[str, Any]) -> PromptLogRecord:
        stamp = self._stamp()
        return PromptLogRecord(
            id=log_id,
            user_id=data.get("owner_id"),
            pr_url=data["pr_url"],
            branch=data.get("branch"),
            author_email=data["author_email"],
            orchestrator=data["orchestrator"],
            llm=data["llm"],
            tags_json=json.dumps(list(data.get("tags") or [])),
            content=data["content"],
            created_at=stamp,
            updated_at=stamp,
        )

    def _highest_sequence(self, year: int) -> int:
        with storage_errors("scan log ids"), self.database.session() as db:
            rows = (
                db.query(PromptLogRecord.id)
                .filter(PromptLogRecord.id.like(f"LOG-{year}-%"))
                .all()
            )
        sequences = [parse_sequence(row[0], year) for row in rows]
        return max((seq for seq in sequences if seq is not None), default=0)

    def _stamp(self, after: Optional[datetime] = None) -> datetime:
        with self._stamp_lock:
            floor = max(filter(None, (self._last_stamp, after)), default=None)
            self._last_stamp = next_timestamp(floor)
            return self._last_stamp

    @staticmethod
    def _to_domain(record: PromptLogRecord) -> PromptLog:
        return PromptLog(
            id=record.id,
            pr_url=record.pr_url,
            branch=record.branch,
            author_email=record.author_email,
            orchestrator=record.orchestrator,
            llm=record.llm,
            tags=json.loads(record.tags_json or "[]"),
            content=record.content,
            owner_id=record.user_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    @staticmethod
    def _user_to_domain(record: UserRecord) -> User:
        return User(
            id=record.id,
            email=record.email,
            first_name=record.first_name,
            last_name=record.last_name,
            profile_image_url=record.profile_image_url,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class SqlSessionStore(SessionStore):
    """Session rows in the ``sessions`` table, sharing the log store's database."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def create(self, user_id: str, ttl: timedelta) -> str:
        sid = secrets.token_urlsafe(32)
        with storage_errors("create session"), self.database.session() as db:
            db.add(SessionRecord(
                sid=sid,
                sess=json.dumps({"userId": user_id}),
                expire=utcnow() + ttl,
            ))
            db.commit()
        return sid

    def get(self, sid: str) -> Optional[Dict[str, Any]]:
        with storage_errors("fetch session"), self.database.session() as db:
            record = db.get(SessionRecord, sid)
            if record is None:
                return None
            if record.expire <= utcnow():
                db.delete(record)
                db.commit()
                return None
            return json.loads(record.sess)

    def delete(self, sid: str) -> None:
        with storage_errors("delete session"), self.database.session() as db:
            db.query(SessionRecord).filter(SessionRecord.sid == sid).delete(synchronize_session=False)
            db.commit()

    def purge_expired(self) -> int:
        with storage_errors("purge sessions"), self.database.session() as db:
            removed = (
                db.query(SessionRecord)
                .filter(SessionRecord.expire <= utcnow())
                .delete(synchronize_session=False)
            )
            db.commit()
            return removed

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import String, Text, create_engine, delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from config import LOCAL_CACHE_DB_FILE
from db.models import UtcDateTime

DEFAULT_NAMESPACE = "wallet_tracker"


class LocalCacheBase(DeclarativeBase):
    pass


class KeyValueEntryOrm(LocalCacheBase):
    __tablename__ = "key_value_entries"

    namespace: Mapped[str] = mapped_column(String, primary_key=True)
    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)


class LocalCacheRepository:
    """Durable string key-value store, partitioned by namespace."""

    def __init__(self, session: Session, *, namespace: str = DEFAULT_NAMESPACE) -> None:
        if not namespace:
            msg = "namespace must be provided"
            raise ValueError(msg)
        self.session = session
        self.namespace = namespace

    def get(self, key: str) -> str | None:
        stmt = select(KeyValueEntryOrm.value).where(
            KeyValueEntryOrm.namespace == self.namespace,
            KeyValueEntryOrm.key == key,
        )
        return self.session.scalar(stmt)

    def set(self, key: str, value: str) -> None:
        stmt = sqlite_insert(KeyValueEntryOrm).values(
            namespace=self.namespace,
            key=key,
            value=value,
            updated_at=datetime.now(timezone.utc),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["namespace", "key"],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )
        self.session.execute(stmt)
        self.session.commit()

    def delete(self, key: str) -> None:
        stmt = delete(KeyValueEntryOrm).where(
            KeyValueEntryOrm.namespace == self.namespace,
            KeyValueEntryOrm.key == key,
        )
        self.session.execute(stmt)
        self.session.commit()


def init_local_cache_db(
    echo: bool = False, *, db_file: str | Path = LOCAL_CACHE_DB_FILE, reset: bool = False
) -> Session:
    path = Path(db_file)
    if reset and path.exists():
        path.unlink()
    path.parent.mkdir(parents=True, exist_ok=True)

    # The price refresh thread shares this store with the caller.
    engine = create_engine(f"sqlite:///{path}", echo=echo, connect_args={"check_same_thread": False})
    LocalCacheBase.metadata.create_all(engine)
    return sessionmaker(engine)()

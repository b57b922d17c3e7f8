"""SQLAlchemy-backed store for consolidated snapshot rows."""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, Iterator

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    distinct,
    func,
    insert,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from holdings_recon.config import SETTINGS, ensure_data_dir
from holdings_recon.domain import column_keys
from holdings_recon.domain.models import HoldingRecord, Identity, SnapshotValue
from holdings_recon.domain.streaming import SnapshotRow

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class HoldingSnapshotRow(Base):
    """One (identity, column key) snapshot; unique so re-imports cannot duplicate."""

    __tablename__ = "holding_snapshots"
    __table_args__ = (
        UniqueConstraint("depository_id", "client_id", "name", "column_key", name="uq_holding_snapshots_identity_key"),
        Index("ix_holding_snapshots_base_date", "base_date"),
        Index("ix_holding_snapshots_dpid_client", "depository_id", "client_id", "base_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    depository_id: Mapped[str] = mapped_column(String(100), nullable=False)
    client_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    column_key: Mapped[str] = mapped_column(String(50), nullable=False)
    base_date: Mapped[date] = mapped_column(Date, nullable=False)
    file_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False)
    bought: Mapped[int] = mapped_column(BigInteger, nullable=False)
    sold: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


def create_store_engine(database_url: str | None = None) -> Engine:
    url = database_url or SETTINGS.database_url
    if url == SETTINGS.database_url and url.startswith("sqlite:///"):
        ensure_data_dir()
    return create_engine(url, pool_pre_ping=True)


class SqlSnapshotStore:
    """Replace-all persistence plus a batched, ordered row stream."""

    def __init__(self, engine: Engine | None = None, batch_size: int | None = None) -> None:
        self._engine = engine or create_store_engine()
        self._batch_size = batch_size or SETTINGS.stream_batch_size
        self._session_factory = sessionmaker(bind=self._engine, class_=Session, expire_on_commit=False)
        Base.metadata.create_all(self._engine)

    def replace_all(self, records: Iterable[HoldingRecord]) -> int:
        rows: list[dict[str, object]] = []
        skipped = 0
        for record in records:
            for key, snapshot in record.snapshots.items():
                if key.base_date is None:
                    skipped += 1
                    continue
                rows.append(
                    {
                        "depository_id": record.depository_id,
                        "client_id": record.client_id,
                        "name": record.name,
                        "category": record.category or None,
                        "column_key": column_keys.encode(key),
                        "base_date": key.base_date,
                        "file_index": key.file_index,
                        "position": key.position,
                        "value": snapshot.value,
                        "bought": snapshot.bought,
                        "sold": snapshot.sold,
                    }
                )

        with self._session_factory() as session, session.begin():
            session.execute(delete(HoldingSnapshotRow))
            if rows:
                session.execute(insert(HoldingSnapshotRow), rows)

        if skipped:
            logger.warning("Skipped %d snapshots without a recoverable date", skipped)
        logger.info("Persisted %d snapshot rows", len(rows))
        return len(rows)

    def clear(self) -> None:
        with self._session_factory() as session, session.begin():
            session.execute(delete(HoldingSnapshotRow))
        logger.info("Cleared holding_snapshots")

    def column_keys(self) -> list[str]:
        with self._engine.connect() as conn:
            result = conn.execute(select(distinct(HoldingSnapshotRow.column_key)))
            return [row[0] for row in result]

    def stream_rows(self) -> Iterator[SnapshotRow]:
        table = HoldingSnapshotRow
        stmt = select(
            table.depository_id,
            table.client_id,
            table.name,
            table.category,
            table.column_key,
            table.value,
            table.bought,
            table.sold,
        ).order_by(table.base_date, table.column_key, table.depository_id, table.client_id, table.name)
        with self._engine.connect() as conn:
            result = conn.execution_options(yield_per=self._batch_size).execute(stmt)
            for row in result:
                yield SnapshotRow(
                    depository_id=row.depository_id,
                    client_id=row.client_id,
                    name=row.name,
                    category=row.category or "",
                    column_key=row.column_key,
                    value=int(row.value),
                    bought=int(row.bought),
                    sold=int(row.sold),
                )

    def stats(self) -> dict[str, int]:
        table = HoldingSnapshotRow
        stmt = select(
            func.count(table.id),
            func.coalesce(func.sum(table.value), 0),
            func.coalesce(func.sum(table.bought), 0),
            func.coalesce(func.sum(table.sold), 0),
            func.coalesce(func.max(table.value), 0),
            func.coalesce(func.max(table.bought), 0),
            func.coalesce(func.max(table.sold), 0),
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt).one()
        names = ("rows", "sum_value", "sum_bought", "sum_sold", "max_value", "max_bought", "max_sold")
        return {name: int(value) for name, value in zip(names, row)}

    def load_records(self) -> list[HoldingRecord]:
        records: dict[Identity, HoldingRecord] = {}
        for row in self.stream_rows():
            identity = row.identity
            record = records.get(identity)
            if record is None:
                record = HoldingRecord(identity=identity)
                records[identity] = record
            record.add_snapshot(
                column_keys.decode(row.column_key),
                SnapshotValue(value=row.value, bought=row.bought, sold=row.sold),
            )
            record.adopt_category(row.category)
        return list(records.values())

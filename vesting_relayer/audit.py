"""
Append-only audit trail of relay attempts.

One record per NewLock event, successful or not. Two sinks:
- CSV file (default): ./results.csv
- SQL table via SQLAlchemy: sqlite:///./results.db or postgresql://...
"""

import csv
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import urlparse

import structlog
from sqlalchemy import (
    BigInteger,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine

from .models import AUDIT_HEADER, AuditRecord

logger = structlog.get_logger()

# SQLAlchemy metadata. uint256 values are stored as decimal strings.
metadata = MetaData()

relay_results = Table(
    "relay_results",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("history_id", String(78), nullable=False),
    Column("ethereum_from", String(42), nullable=False),
    Column("personal_id", String(78), nullable=False),
    Column("amount", String(78), nullable=False),
    Column("cyber_to", String(100), nullable=False),
    Column("cyber_send_tx", String(66), nullable=False),
    Column("ethereum_proof_tx", String(66), nullable=False),
    Column("timestamp", BigInteger, nullable=False),
    Index("idx_history_id", "history_id"),
)


class AuditLog(Protocol):
    def append(self, record: AuditRecord) -> None: ...

    def close(self) -> None: ...


class CsvAuditLog:
    """CSV audit file; the header is written once when the file is new or empty."""

    def __init__(self, path: str | Path = "./results.csv"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists() or self.path.stat().st_size == 0:
            with self.path.open("w", newline="", encoding="utf-8") as f:
                csv.writer(f).writerow(AUDIT_HEADER)
        logger.info("audit_log_opened", backend="csv", path=str(self.path))

    def append(self, record: AuditRecord) -> None:
        with self.path.open("a", newline="", encoding="utf-8") as f:
            csv.writer(f).writerow(record.as_row())

        logger.info(
            "audit_record_written",
            history_id=record.history_id,
            cyber_send_tx=record.cyber_send_tx,
            ethereum_proof_tx=record.ethereum_proof_tx,
        )

    def read_all(self) -> list[dict[str, str]]:
        """Rows keyed by header title."""
        with self.path.open(newline="", encoding="utf-8") as f:
            return list(csv.DictReader(f))

    def close(self) -> None:
        return


def parse_database_url(url: str) -> str:
    """
    Normalize a database URL.

    postgres:// (Railway/Heroku format) is rewritten to postgresql://
    because SQLAlchemy only accepts the latter.
    """
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


class SqlAuditLog:
    """Audit records in a relay_results table (SQLite or PostgreSQL)."""

    def __init__(self, database_url: str = "sqlite:///./results.db"):
        self.database_url = parse_database_url(database_url)
        self._engine: Optional[Engine] = None
        self._init_db()

    def _get_engine(self) -> Engine:
        """Get or create database engine."""
        if self._engine is None:
            connect_args = {}
            if self.database_url.startswith("sqlite://"):
                connect_args["check_same_thread"] = False

            self._engine = create_engine(
                self.database_url,
                connect_args=connect_args,
                pool_pre_ping=True,
            )
        return self._engine

    def _init_db(self) -> None:
        metadata.create_all(self._get_engine())
        logger.info("audit_log_opened", backend="sql", url=self._mask_url(self.database_url))

    def _mask_url(self, url: str) -> str:
        """Mask password in URL for logging."""
        parsed = urlparse(url)
        if parsed.password:
            return url.replace(parsed.password, "***")
        return url

    def append(self, record: AuditRecord) -> None:
        with self._get_engine().begin() as conn:
            conn.execute(
                relay_results.insert().values(
                    history_id=str(record.history_id),
                    ethereum_from=record.ethereum_from,
                    personal_id=str(record.personal_id),
                    amount=str(record.amount),
                    cyber_to=record.cyber_to,
                    cyber_send_tx=record.cyber_send_tx,
                    ethereum_proof_tx=record.ethereum_proof_tx,
                    timestamp=record.timestamp,
                )
            )

        logger.info(
            "audit_record_written",
            history_id=record.history_id,
            cyber_send_tx=record.cyber_send_tx,
            ethereum_proof_tx=record.ethereum_proof_tx,
        )

    def read_all(self) -> list[AuditRecord]:
        with self._get_engine().connect() as conn:
            rows = conn.execute(select(relay_results).order_by(relay_results.c.id)).fetchall()
        return [
            AuditRecord(
                history_id=int(row.history_id),
                ethereum_from=row.ethereum_from,
                personal_id=int(row.personal_id),
                amount=int(row.amount),
                cyber_to=row.cyber_to,
                cyber_send_tx=row.cyber_send_tx,
                ethereum_proof_tx=row.ethereum_proof_tx,
                timestamp=row.timestamp,
            )
            for row in rows
        ]

    def close(self) -> None:
        """Close database connection."""
        if self._engine:
            self._engine.dispose()
            self._engine = None


def open_audit_log(target: str) -> AuditLog:
    """Pick the sink from the configured results target."""
    if target.startswith(("sqlite://", "postgresql://", "postgres://")):
        return SqlAuditLog(target)
    return CsvAuditLog(target)

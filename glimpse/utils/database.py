"""Database models and transaction utilities for the Glimpse matching service."""

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional, TypeVar

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Engine,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    text,
)
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from glimpse.utils.errors import ConfigurationError, DatabaseError, GlimpseError
from glimpse.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

SessionFactory = Callable[[], Session]

POSTGRES_DRIVER_SCHEME = "postgresql+psycopg2://"


def utcnow() -> datetime:
    """Naive UTC now; every timestamp column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    """Generate a primary key for a new row."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Declarative base shared by all tables."""

    pass


class UserDB(Base):
    """Profile row; ``credits`` funds likes for non-premium users."""

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),)

    id: Mapped[str] = mapped_column(String(50), primary_key=True, default=new_id)
    nickname: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    profile_image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    credits: Mapped[int] = mapped_column(Integer, default=0)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_active: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class GroupDB(Base):
    """Group database model."""

    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(50), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100))
    type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class GroupMembershipDB(Base):
    """Group membership database model."""

    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_group_members_user_group"),
        Index("ix_group_members_user_group_status", "user_id", "group_id", "status"),
        Index("ix_group_members_group_status", "group_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(50), ForeignKey("users.id"))
    group_id: Mapped[str] = mapped_column(String(50), ForeignKey("groups.id"))
    status: Mapped[str] = mapped_column(String(20), default="active")
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class LikeDB(Base):
    """Directed like database model."""

    __tablename__ = "likes"
    __table_args__ = (
        UniqueConstraint("from_user_id", "to_user_id", "group_id", name="uq_likes_from_to_group"),
        Index("ix_likes_from_created", "from_user_id", "created_at"),
        Index("ix_likes_to_user", "to_user_id"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True, default=new_id)
    from_user_id: Mapped[str] = mapped_column(String(50), ForeignKey("users.id"))
    to_user_id: Mapped[str] = mapped_column(String(50), ForeignKey("users.id"))
    group_id: Mapped[str] = mapped_column(String(50), ForeignKey("groups.id"))
    is_match: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class MatchDB(Base):
    """Match database model. ``user1_id`` is always the smaller id of the pair."""

    __tablename__ = "matches"
    __table_args__ = (
        Index(
            "uq_matches_open_pair",
            "user1_id",
            "user2_id",
            "group_id",
            unique=True,
            postgresql_where=text("status != 'deleted'"),
            sqlite_where=text("status != 'deleted'"),
        ),
        Index("ix_matches_status_created", "status", "created_at"),
        CheckConstraint("user1_id < user2_id", name="ck_matches_canonical_pair"),
    )

    id: Mapped[str] = mapped_column(String(50), primary_key=True, default=new_id)
    user1_id: Mapped[str] = mapped_column(String(50), ForeignKey("users.id"))
    user2_id: Mapped[str] = mapped_column(String(50), ForeignKey("users.id"))
    group_id: Mapped[str] = mapped_column(String(50), ForeignKey("groups.id"))
    status: Mapped[str] = mapped_column(String(20), default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    expired_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    extended_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def other_participant(self, user_id: str) -> str:
        """Return the counterpart of ``user_id`` in this match."""
        return self.user2_id if self.user1_id == user_id else self.user1_id


class MessageDB(Base):
    """Chat message database model (written by the chat service, read here)."""

    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_match_created", "match_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(50), primary_key=True, default=new_id)
    match_id: Mapped[str] = mapped_column(String(50), ForeignKey("matches.id"))
    sender_id: Mapped[str] = mapped_column(String(50), ForeignKey("users.id"))
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let pysqlite emit BEGIN itself so SAVEPOINT/ROLLBACK TO work."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    Pins driverless PostgreSQL URLs (including Heroku-style ``postgres://``)
    to psycopg2, and configures SQLite engines
    (in-memory databases share one connection) so nested transactions work.

    Args:
        database_url (str): SQLAlchemy database URL.
        echo (bool): Echo SQL statements.

    Returns:
        Engine: The configured engine.
    """
    for prefix in ("postgres://", "postgresql://"):
        if database_url.startswith(prefix):
            database_url = POSTGRES_DRIVER_SCHEME + database_url[len(prefix) :]
            break

    if database_url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
        _enable_sqlite_savepoints(engine)
        return engine

    return create_engine(database_url, pool_recycle=300, pool_pre_ping=True, echo=echo)


def _redact_url(database_url: str) -> str:
    safe_url = database_url
    if "@" in safe_url:
        try:
            part1, part2 = safe_url.rsplit("@", 1)
            if ":" in part1:
                scheme_user, _ = part1.rsplit(":", 1)
                safe_url = f"{scheme_user}:***@{part2}"
        except ValueError:
            safe_url = "REDACTED_MALFORMED_URL"
    return safe_url


class Database:
    """Lazily built engine and session factory shared by the process."""

    _engine: Optional[Engine] = None
    _session_factory: Optional[sessionmaker[Session]] = None

    @classmethod
    def get_engine(cls) -> Engine:
        """Return the engine, building it from ``DATABASE_URL`` on first call."""
        if cls._engine is None:
            from glimpse.config import get_settings

            settings = get_settings()
            database_url = settings.DATABASE_URL

            if not database_url:
                raise ConfigurationError("DATABASE_URL is not configured")

            try:
                cls._engine = create_db_engine(database_url, echo=settings.DEBUG)
                logger.info("Database engine created")
            except Exception as e:
                safe_url = _redact_url(database_url)
                logger.error("Failed to create database engine", error=str(e), url=safe_url)
                raise DatabaseError("Failed to connect to database", details={"error": str(e), "url": safe_url}) from e
        return cls._engine

    @classmethod
    def get_session_factory(cls) -> sessionmaker[Session]:
        """Return the ``sessionmaker`` bound to the engine."""
        if cls._session_factory is None:
            cls._session_factory = sessionmaker(bind=cls.get_engine(), expire_on_commit=False)
        return cls._session_factory

    @classmethod
    def create_tables(cls) -> None:
        """Create missing tables from the ORM metadata."""
        Base.metadata.create_all(cls.get_engine())
        logger.info("Database tables created")


def init_database() -> None:
    """Connect and make sure the schema exists."""
    Database.create_tables()


def _is_transient(error: SQLAlchemyError) -> bool:
    if isinstance(error, OperationalError):
        return True
    return isinstance(error, DBAPIError) and bool(error.connection_invalidated)


@contextmanager
def transaction(session_factory: SessionFactory) -> Iterator[Session]:
    """
    Run a unit of work in one database transaction.

    Commits when the block exits cleanly, rolls back otherwise. Business
    errors propagate unchanged; store failures are wrapped in ``DatabaseError``
    with ``details["retryable"]`` set for transient failures.

    Args:
        session_factory (SessionFactory): Factory producing new sessions.

    Yields:
        Session: The session bound to the open transaction.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except GlimpseError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Database transaction failed", error=str(e), error_type=e.__class__.__name__)
        raise DatabaseError(
            "Database transaction failed",
            details={"error": str(e), "retryable": _is_transient(e)},
        ) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def read_with_retry(session_factory: SessionFactory, operation: Callable[[Session], T]) -> T:
    """
    Run an idempotent read, retrying once on a transient store failure.

    Args:
        session_factory (SessionFactory): Factory producing new sessions.
        operation (Callable[[Session], T]): Read to run inside the transaction.

    Returns:
        T: Whatever ``operation`` returns.
    """
    try:
        with transaction(session_factory) as session:
            return operation(session)
    except DatabaseError as e:
        if not e.details.get("retryable"):
            raise
        logger.warning("Transient database failure on read, retrying once", error=e.details.get("error"))

    with transaction(session_factory) as session:
        return operation(session)

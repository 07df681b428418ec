"""Database wiring — async engine, session dependency, table metadata.

`goals` and `goal_measurements` are owned by this service. `days` (nutrition
day aggregates) and `profiles` are maintained elsewhere and only read here.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    Uuid,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fitgoals.config import settings

_raw_url = settings.database_url

if _raw_url.startswith("postgres://"):
    _raw_url = _raw_url.replace("postgres://", "postgresql+asyncpg://", 1)
elif _raw_url.startswith("postgresql://"):
    _raw_url = _raw_url.replace("postgresql://", "postgresql+asyncpg://", 1)

engine = create_async_engine(_raw_url, pool_pre_ping=True)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncSession:  # type: ignore[misc]
    async with async_session() as session:
        yield session


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

metadata = MetaData()

_json = JSON().with_variant(JSONB(), "postgresql")

goals = Table(
    "goals",
    metadata,
    Column("id", Uuid, primary_key=True, server_default=text("gen_random_uuid()")),
    Column("user_id", String, nullable=False, index=True),
    Column("type", String(32), nullable=False),
    Column("params", _json, nullable=False),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=False),
    Column("active", Boolean, nullable=False, server_default=text("true")),
    Column("status", String(16), nullable=False, server_default=text("'active'")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

# At most one active goal per (user, type). The lifecycle maps a violation of
# this index to ActiveGoalConflictError.
ONE_ACTIVE_PER_TYPE_INDEX = "uq_goals_one_active_per_type"
Index(
    ONE_ACTIVE_PER_TYPE_INDEX,
    goals.c.user_id,
    goals.c.type,
    unique=True,
    postgresql_where=goals.c.active,
    sqlite_where=goals.c.active,
)

goal_measurements = Table(
    "goal_measurements",
    metadata,
    Column("id", Uuid, primary_key=True, server_default=text("gen_random_uuid()")),
    Column("goal_id", Uuid, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("date", Date, nullable=False),
    Column("value", _json, nullable=False),
    Column("source", String(16), nullable=False, server_default=text("'manual'")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

days = Table(
    "days",
    metadata,
    Column("user_id", String, primary_key=True),
    Column("date", Date, primary_key=True),
    Column("total_calories", Float),
    Column("total_protein", Float),
    Column("total_carbs", Float),
    Column("total_fat", Float),
)

profiles = Table(
    "profiles",
    metadata,
    Column("id", String, primary_key=True),
    Column("tdee", Float),
)

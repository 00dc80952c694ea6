"""
Async Postgres store: profiles, dishes, orders, reviews, gamification.
Reads go straight to the pool; status changes run through PostgresStore.transaction(),
which locks the order row so the status write and gamification upsert commit together.
Connection loss and timeouts are raised as TransientError, never turned into empty results.
"""
import asyncio
import json
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime

import asyncpg
from asyncpg import exceptions as pg_exc

from hometaste.config import settings
from hometaste.domain import (
    Dish,
    GamificationDelta,
    GamificationRecord,
    Order,
    OrderStatus,
    Profile,
    Review,
    Role,
)
from hometaste.errors import NotFoundError, TransientError
from hometaste.gamification import apply_delta
from hometaste.metrics import store_transient_errors_total

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None

_TRANSIENT_ERRORS = (
    pg_exc.PostgresConnectionError,
    pg_exc.InterfaceError,
    pg_exc.CannotConnectNowError,
    pg_exc.TooManyConnectionsError,
    pg_exc.QueryCanceledError,
    pg_exc.DeadlockDetectedError,
    pg_exc.SerializationError,
    OSError,
    asyncio.TimeoutError,
)

# Column holding the user id for each role's view of the orders table
_ORDER_OWNER_COLUMN: dict[Role, str] = {
    Role.COOK: "cook_id",
    Role.CUSTOMER: "customer_id",
    Role.DELIVERY: "delivery_id",
}

_DISH_COLUMNS = """
    d.id, d.cook_id, p.full_name AS cook_name, d.name, d.description, d.price,
    d.category, d.is_active, d.accepts_eat_in, d.rating, d.total_reviews, d.created_at
"""


@asynccontextmanager
async def _store_errors() -> AsyncIterator[None]:
    try:
        yield
    except _TRANSIENT_ERRORS as e:
        store_transient_errors_total.labels(store="postgres").inc()
        logger.warning("Postgres unavailable: %s", e)
        raise TransientError(f"database unavailable: {e}") from e


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        async with _store_errors():
            _pool = await asyncpg.create_pool(
                settings.database_url,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                command_timeout=settings.db_command_timeout,
            )
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


async def init_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                id VARCHAR(255) PRIMARY KEY,
                email VARCHAR(255) NOT NULL DEFAULT '',
                full_name VARCHAR(255) NOT NULL DEFAULT '',
                role VARCHAR(20) NOT NULL CHECK (role IN ('cook', 'customer', 'delivery')),
                phone VARCHAR(50),
                avatar_url TEXT,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS dishes (
                id VARCHAR(255) PRIMARY KEY,
                cook_id VARCHAR(255) NOT NULL REFERENCES profiles(id),
                name VARCHAR(255) NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                price NUMERIC(10, 2) NOT NULL,
                category VARCHAR(100) NOT NULL DEFAULT '',
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                accepts_eat_in BOOLEAN NOT NULL DEFAULT FALSE,
                rating DOUBLE PRECISION NOT NULL DEFAULT 0,
                total_reviews INT NOT NULL DEFAULT 0,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS orders (
                id VARCHAR(255) PRIMARY KEY,
                customer_id VARCHAR(255) NOT NULL REFERENCES profiles(id),
                cook_id VARCHAR(255) NOT NULL REFERENCES profiles(id),
                delivery_id VARCHAR(255) REFERENCES profiles(id),
                dish_id VARCHAR(255) NOT NULL REFERENCES dishes(id),
                quantity INT NOT NULL DEFAULT 1 CHECK (quantity >= 1),
                total_price NUMERIC(10, 2) NOT NULL,
                delivery_type VARCHAR(20) NOT NULL,
                status VARCHAR(20) NOT NULL DEFAULT 'pending',
                delivery_address_id VARCHAR(255),
                scheduled_time TIMESTAMPTZ,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
        """)
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_orders_cook_id ON orders(cook_id);")
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_orders_customer_id ON orders(customer_id);")
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_orders_delivery_id ON orders(delivery_id);")
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_orders_status ON orders(status);")
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS reviews (
                id VARCHAR(255) PRIMARY KEY,
                order_id VARCHAR(255) NOT NULL REFERENCES orders(id),
                reviewer_id VARCHAR(255) NOT NULL REFERENCES profiles(id),
                reviewed_id VARCHAR(255) NOT NULL REFERENCES profiles(id),
                rating INT NOT NULL CHECK (rating BETWEEN 1 AND 5),
                comment TEXT,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_reviews_reviewed_id ON reviews(reviewed_id);")
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS gamification (
                user_id VARCHAR(255) PRIMARY KEY REFERENCES profiles(id),
                points INT NOT NULL DEFAULT 0,
                level INT NOT NULL DEFAULT 1,
                badges JSONB NOT NULL DEFAULT '[]',
                total_orders INT NOT NULL DEFAULT 0,
                total_earnings NUMERIC(16, 6) NOT NULL DEFAULT 0,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)


def _gamification_from_row(user_id: str, row) -> GamificationRecord:
    if row is None:
        return GamificationRecord(user_id=user_id)
    return GamificationRecord(
        user_id=user_id,
        points=row["points"],
        level=row["level"],
        badges=frozenset(json.loads(row["badges"])),
        total_orders=row["total_orders"],
        total_earnings=row["total_earnings"],
    )


def _orders(rows: Iterable) -> list[Order]:
    return [Order.model_validate(dict(r)) for r in rows]


class PostgresTransaction:
    """Writes available while a PostgresStore.transaction() is open."""

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    async def fetch_order_for_update(self, order_id: str) -> Order:
        row = await self.conn.fetchrow("SELECT * FROM orders WHERE id = $1 FOR UPDATE;", order_id)
        if row is None:
            raise NotFoundError("order", order_id)
        return Order.model_validate(dict(row))

    async def write_order_status(
        self,
        order_id: str,
        status: OrderStatus,
        delivery_id: str | None,
        updated_at: datetime,
    ) -> None:
        await self.conn.execute(
            """
            UPDATE orders SET status = $1, delivery_id = $2, updated_at = $3 WHERE id = $4;
            """,
            status.value,
            delivery_id,
            updated_at,
            order_id,
        )

    async def write_gamification(self, user_id: str, delta: GamificationDelta) -> GamificationRecord:
        """Lock (or start from the initial state) the user's record, add delta, upsert. Returns the new record."""
        row = await self.conn.fetchrow(
            "SELECT * FROM gamification WHERE user_id = $1 FOR UPDATE;",
            user_id,
        )
        record = apply_delta(_gamification_from_row(user_id, row), delta)
        await self.conn.execute(
            """
            INSERT INTO gamification (user_id, points, level, badges, total_orders, total_earnings, updated_at)
            VALUES ($1, $2, $3, $4::jsonb, $5, $6, NOW())
            ON CONFLICT (user_id) DO UPDATE SET
                points = EXCLUDED.points,
                level = EXCLUDED.level,
                badges = EXCLUDED.badges,
                total_orders = EXCLUDED.total_orders,
                total_earnings = EXCLUDED.total_earnings,
                updated_at = NOW();
            """,
            user_id,
            record.points,
            record.level,
            json.dumps(sorted(record.badges)),
            record.total_orders,
            record.total_earnings,
        )
        return record


class PostgresStore:
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresTransaction]:
        async with _store_errors():
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    yield PostgresTransaction(conn)

    async def fetch_order(self, order_id: str) -> Order:
        async with _store_errors():
            row = await self.pool.fetchrow("SELECT * FROM orders WHERE id = $1;", order_id)
        if row is None:
            raise NotFoundError("order", order_id)
        return Order.model_validate(dict(row))

    async def fetch_orders_by_role(
        self,
        user_id: str,
        role: Role,
        statuses: Iterable[OrderStatus] | None = None,
        limit: int | None = None,
    ) -> list[Order]:
        """Orders where user_id is the cook, customer or courier (per role), newest first."""
        column = _ORDER_OWNER_COLUMN[role]
        query = f"SELECT * FROM orders WHERE {column} = $1"
        args: list = [user_id]
        if statuses is not None:
            args.append([s.value for s in statuses])
            query += f" AND status = ANY(${len(args)}::varchar[])"
        query += " ORDER BY created_at DESC"
        if limit is not None:
            args.append(limit)
            query += f" LIMIT ${len(args)}"
        async with _store_errors():
            rows = await self.pool.fetch(query + ";", *args)
        return _orders(rows)

    async def fetch_available_deliveries(self, limit: int = 50) -> list[Order]:
        """Ready delivery orders no courier has taken yet, oldest first."""
        async with _store_errors():
            rows = await self.pool.fetch(
                """
                SELECT * FROM orders
                WHERE status = $1 AND delivery_type = 'delivery' AND delivery_id IS NULL
                ORDER BY created_at ASC
                LIMIT $2;
                """,
                OrderStatus.READY.value,
                limit,
            )
        return _orders(rows)

    async def fetch_reviews_for(self, user_id: str) -> list[Review]:
        async with _store_errors():
            rows = await self.pool.fetch(
                """
                SELECT id, order_id, reviewer_id, reviewed_id, rating, comment
                FROM reviews WHERE reviewed_id = $1 ORDER BY created_at DESC;
                """,
                user_id,
            )
        return [Review.model_validate(dict(r)) for r in rows]

    async def fetch_dishes_by_cook(self, cook_id: str) -> list[Dish]:
        async with _store_errors():
            rows = await self.pool.fetch(
                f"""
                SELECT {_DISH_COLUMNS}
                FROM dishes d LEFT JOIN profiles p ON p.id = d.cook_id
                WHERE d.cook_id = $1 ORDER BY d.created_at DESC;
                """,
                cook_id,
            )
        return [Dish.model_validate(dict(r)) for r in rows]

    async def fetch_active_dishes(self) -> list[Dish]:
        async with _store_errors():
            rows = await self.pool.fetch(
                f"""
                SELECT {_DISH_COLUMNS}
                FROM dishes d LEFT JOIN profiles p ON p.id = d.cook_id
                WHERE d.is_active ORDER BY d.created_at DESC;
                """
            )
        return [Dish.model_validate(dict(r)) for r in rows]

    async def fetch_profile(self, user_id: str) -> Profile | None:
        """None when the user has authenticated but has no profile row yet."""
        async with _store_errors():
            row = await self.pool.fetchrow(
                "SELECT id, role, full_name, email, phone, avatar_url FROM profiles WHERE id = $1;",
                user_id,
            )
        if row is None:
            return None
        return Profile.model_validate(dict(row))

    async def fetch_gamification(self, user_id: str) -> GamificationRecord:
        async with _store_errors():
            row = await self.pool.fetchrow("SELECT * FROM gamification WHERE user_id = $1;", user_id)
        return _gamification_from_row(user_id, row)

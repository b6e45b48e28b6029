"""
Order Repository

Data access layer for orders using an asyncpg pool. Each order is stored
as one JSONB document; the columns beside it exist for lookups and for the
optimistic-concurrency version check.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

import asyncpg

from core.config import InfraConfig
from .models import Order, OrderStatus
from .protocols import ConcurrentUpdateError, DuplicateOrderError

logger = logging.getLogger(__name__)


class OrderRepository:
    """
    Repository for order data operations

    Handles all database operations for orders using asyncpg.
    """

    def __init__(
        self,
        config: Optional[InfraConfig] = None,
        schema: str = "orders",
        pool: Optional[asyncpg.Pool] = None,
    ):
        """Initialize Order Repository; the pool is created lazily"""
        self.config = config or InfraConfig.from_env()
        self.schema = schema
        self.orders_table = "orders"
        self._pool = pool

        logger.info(
            f"OrderRepository initialized for {self.config.postgres_host}:{self.config.postgres_port}"
            f"/{self.config.postgres_db} schema={self.schema}"
        )

    @property
    def _table(self) -> str:
        return f'"{self.schema}".{self.orders_table}'

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.postgres_dsn,
                min_size=self.config.postgres_min_pool,
                max_size=self.config.postgres_max_pool,
            )
        return self._pool

    async def initialize(self) -> None:
        """Create schema, table and indexes if missing"""
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            await conn.execute(f'CREATE SCHEMA IF NOT EXISTS "{self.schema}"')
            await conn.execute(f'''
                CREATE TABLE IF NOT EXISTS {self._table} (
                    order_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    gateway_order_id TEXT UNIQUE,
                    transaction_id TEXT,
                    document JSONB NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
            ''')
            await conn.execute(
                f'CREATE INDEX IF NOT EXISTS idx_orders_user_created '
                f'ON {self._table} (user_id, created_at DESC)'
            )
            await conn.execute(
                f'CREATE INDEX IF NOT EXISTS idx_orders_status_created '
                f'ON {self._table} (status, created_at DESC)'
            )
            await conn.execute(
                f'CREATE INDEX IF NOT EXISTS idx_orders_transaction '
                f'ON {self._table} (transaction_id)'
            )
        logger.info(f"Order table ready: {self._table}")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def create_order(self, order: Order) -> Order:
        """Insert a new order"""
        query = f'''
            INSERT INTO {self._table}
                (order_id, user_id, status, gateway_order_id, transaction_id,
                 document, version, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7, $8, $9)
        '''
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    query,
                    order.order_id,
                    order.user_id,
                    order.status.value,
                    order.payment.gateway_order_id,
                    order.payment.transaction_id,
                    self._dump(order),
                    order.version,
                    order.created_at,
                    order.updated_at,
                )
        except asyncpg.UniqueViolationError as e:
            logger.error(f"Duplicate order {order.order_id}: {e}")
            raise DuplicateOrderError(f"Order already exists: {order.order_id}")

        return order

    async def get_order(self, order_id: str, user_id: Optional[str] = None) -> Optional[Order]:
        """Get order by ID, optionally scoped to the owner"""
        if user_id:
            return await self._fetch_one(
                f'SELECT document FROM {self._table} WHERE order_id = $1 AND user_id = $2',
                order_id, user_id,
            )
        return await self._fetch_one(
            f'SELECT document FROM {self._table} WHERE order_id = $1',
            order_id,
        )

    async def get_order_by_gateway_order_id(
        self,
        gateway_order_id: str,
        user_id: Optional[str] = None
    ) -> Optional[Order]:
        """Get order by gateway order id"""
        if user_id:
            return await self._fetch_one(
                f'SELECT document FROM {self._table} WHERE gateway_order_id = $1 AND user_id = $2',
                gateway_order_id, user_id,
            )
        return await self._fetch_one(
            f'SELECT document FROM {self._table} WHERE gateway_order_id = $1',
            gateway_order_id,
        )

    async def get_order_by_transaction_id(self, transaction_id: str) -> Optional[Order]:
        """Get order by captured payment id"""
        return await self._fetch_one(
            f'SELECT document FROM {self._table} WHERE transaction_id = $1',
            transaction_id,
        )

    async def save_order(self, order: Order) -> Order:
        """Whole-document overwrite guarded by the version column"""
        stored = order.model_copy(update={
            "version": order.version + 1,
            "updated_at": datetime.now(timezone.utc),
        })

        query = f'''
            UPDATE {self._table}
            SET document = $1::jsonb,
                status = $2,
                gateway_order_id = $3,
                transaction_id = $4,
                version = $5,
                updated_at = $6
            WHERE order_id = $7 AND version = $8
        '''
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            result = await conn.execute(
                query,
                self._dump(stored),
                stored.status.value,
                stored.payment.gateway_order_id,
                stored.payment.transaction_id,
                stored.version,
                stored.updated_at,
                order.order_id,
                order.version,
            )

        if self._affected(result) == 0:
            logger.warning(f"Version conflict saving order {order.order_id} at version {order.version}")
            raise ConcurrentUpdateError(
                f"Order {order.order_id} was modified concurrently. Please retry."
            )
        return stored

    async def list_orders(
        self,
        user_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 10,
        offset: int = 0
    ) -> List[Order]:
        """List orders newest first"""
        where, params = self._filters(user_id, status)
        params.extend([limit, offset])
        query = f'''
            SELECT document FROM {self._table}
            {where}
            ORDER BY created_at DESC
            LIMIT ${len(params) - 1} OFFSET ${len(params)}
        '''
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [self._load(row["document"]) for row in rows]

    async def count_orders(
        self,
        user_id: Optional[str] = None,
        status: Optional[OrderStatus] = None
    ) -> int:
        """Count orders matching the filter"""
        where, params = self._filters(user_id, status)
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            count = await conn.fetchval(f'SELECT COUNT(*) FROM {self._table} {where}', *params)
        return int(count or 0)

    # Private Helper Methods

    async def _fetch_one(self, query: str, *params: Any) -> Optional[Order]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(query, *params)
        if row is None:
            return None
        return self._load(row["document"])

    @staticmethod
    def _filters(user_id: Optional[str], status: Optional[OrderStatus]):
        clauses = []
        params: List[Any] = []
        if user_id:
            params.append(user_id)
            clauses.append(f"user_id = ${len(params)}")
        if status:
            params.append(status.value)
            clauses.append(f"status = ${len(params)}")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    @staticmethod
    def _dump(order: Order) -> str:
        return json.dumps(order.model_dump(mode="json"))

    @staticmethod
    def _load(document: Any) -> Order:
        if isinstance(document, str):
            document = json.loads(document)
        return Order.model_validate(document)

    @staticmethod
    def _affected(status: str) -> int:
        # asyncpg returns the command tag, e.g. "UPDATE 1"
        try:
            return int(status.split()[-1])
        except (AttributeError, IndexError, ValueError):
            return 0

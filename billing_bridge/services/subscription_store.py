"""Subscription store — reads and idempotent writes on the subscriptions table.

The owner foreign key was renamed from ``user_id`` to ``supabase_user_id``
during the product's life and both schemas are still deployed. The column
in use is probed once with the SQLAlchemy inspector and every statement is
built against a lightweight table clause carrying that name.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Uuid, column, inspect, select, table, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import NoSuchTableError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession
from sqlalchemy.sql.expression import TableClause

from billing_bridge.billing.entitlements import SubscriptionRecord
from billing_bridge.errors import ConfigurationFailure
from billing_bridge.models.subscription import LEGACY_OWNER_COLUMN, OWNER_COLUMN, Subscription

logger = logging.getLogger(__name__)

_TABLE_NAME = Subscription.__tablename__

# Dialects with INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def subscriptions_table(owner_column: str) -> TableClause:
    """Table clause for the subscriptions table with the given owner column name."""
    return table(
        _TABLE_NAME,
        column("id", Uuid),
        column(owner_column, String),
        column("plan", String),
        column("billing", String),
        column("status", String),
        column("current_period_end", DateTime(timezone=True)),
        column("stripe_customer_id", String),
        column("stripe_subscription_id", String),
        column("stripe_checkout_session_id", String),
        column("updated_at", DateTime(timezone=True)),
    )


async def detect_owner_column(conn: AsyncConnection) -> str:
    """Return which owner column the deployed schema has.

    Raises:
        ConfigurationFailure: If the table is missing or has neither column.
    """

    def _column_names(sync_conn) -> set[str]:
        return {c["name"] for c in inspect(sync_conn).get_columns(_TABLE_NAME)}

    try:
        names = await conn.run_sync(_column_names)
    except NoSuchTableError as e:
        raise ConfigurationFailure(f"Table '{_TABLE_NAME}' does not exist") from e

    if OWNER_COLUMN in names:
        return OWNER_COLUMN
    if LEGACY_OWNER_COLUMN in names:
        logger.info("Subscriptions table uses legacy owner column '%s'", LEGACY_OWNER_COLUMN)
        return LEGACY_OWNER_COLUMN
    raise ConfigurationFailure(
        f"Table '{_TABLE_NAME}' has no owner column",
        details={"expected_one_of": [OWNER_COLUMN, LEGACY_OWNER_COLUMN]},
    )


def _to_record(row) -> SubscriptionRecord:
    return SubscriptionRecord(
        plan=row.plan,
        billing=row.billing,
        status=row.status,
        current_period_end=row.current_period_end,
        stripe_customer_id=row.stripe_customer_id,
        stripe_subscription_id=row.stripe_subscription_id,
        updated_at=row.updated_at,
    )


class SubscriptionStore:
    """Data access for subscription rows of one request/session."""

    def __init__(self, db: AsyncSession, owner_column: str | None = None) -> None:
        self.db = db
        self._owner_column = owner_column

    async def owner_column(self) -> str:
        if self._owner_column is None:
            conn = await self.db.connection()
            self._owner_column = await detect_owner_column(conn)
        return self._owner_column

    async def _table(self) -> tuple[TableClause, str]:
        owner_column = await self.owner_column()
        return subscriptions_table(owner_column), owner_column

    async def list_for_owner(self, owner_id: str) -> list[SubscriptionRecord]:
        """All subscription rows for a user, in no particular order."""
        tbl, owner_column = await self._table()
        result = await self.db.execute(
            select(
                tbl.c.plan,
                tbl.c.billing,
                tbl.c.status,
                tbl.c.current_period_end,
                tbl.c.stripe_customer_id,
                tbl.c.stripe_subscription_id,
                tbl.c.updated_at,
            ).where(tbl.c[owner_column] == owner_id)
        )
        return [_to_record(row) for row in result]

    async def get_grant(self, owner_id: str, plan: str) -> SubscriptionRecord | None:
        """The row for one (user, plan) pair, if any."""
        for record in await self.list_for_owner(owner_id):
            if record.plan == plan:
                return record
        return None

    async def latest_customer_id(self, owner_id: str) -> str | None:
        """Stripe customer of the user's most recently expiring row.

        Lifetime rows (no period end) never expire and sort first.
        """
        tbl, owner_column = await self._table()
        result = await self.db.execute(
            select(tbl.c.stripe_customer_id)
            .where(
                tbl.c[owner_column] == owner_id,
                tbl.c.stripe_customer_id.is_not(None),
            )
            .order_by(
                tbl.c.current_period_end.desc().nulls_first(),
                tbl.c.updated_at.desc(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def upsert_grant(
        self,
        *,
        owner_id: str,
        plan: str,
        billing: str,
        status: str,
        current_period_end: datetime | None,
        stripe_customer_id: str | None,
        stripe_subscription_id: str | None,
        stripe_checkout_session_id: str | None,
    ) -> None:
        """Insert or overwrite the row for (owner, plan).

        Re-applying the same values leaves exactly one row with those values.
        """
        tbl, owner_column = await self._table()
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise ConfigurationFailure(f"Unsupported database dialect for upserts: {dialect}")

        changes = {
            "billing": billing,
            "status": status,
            "current_period_end": current_period_end,
            "stripe_customer_id": stripe_customer_id,
            "stripe_subscription_id": stripe_subscription_id,
            "stripe_checkout_session_id": stripe_checkout_session_id,
            "updated_at": datetime.now(timezone.utc),
        }
        stmt = (
            insert(tbl)
            .values(id=uuid.uuid4(), plan=plan, **{owner_column: owner_id}, **changes)
            .on_conflict_do_update(index_elements=[owner_column, "plan"], set_=changes)
        )
        await self.db.execute(stmt)
        logger.info(
            "Upserted subscription owner=%s plan=%s billing=%s status=%s",
            owner_id,
            plan,
            billing,
            status,
        )

    async def update_by_subscription_id(self, stripe_subscription_id: str, **changes) -> int:
        """Patch the row(s) holding a Stripe subscription ID. Returns rows matched."""
        tbl, _ = await self._table()
        changes["updated_at"] = datetime.now(timezone.utc)
        result = await self.db.execute(
            update(tbl)
            .where(tbl.c.stripe_subscription_id == stripe_subscription_id)
            .values(**changes)
        )
        return result.rowcount

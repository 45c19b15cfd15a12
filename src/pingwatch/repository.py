"""
Persistence for checks, pings and integrations.

Every method opens its own session from the injected factory, so one
repository instance can be shared by request handlers and background jobs.
"""
import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pingwatch.models.check import Check
from pingwatch.models.integration import Integration
from pingwatch.models.ping import Ping
from pingwatch.schedule import next_due, validate_cron_expression

logger = logging.getLogger("pingwatch.repository")

SCHEDULE_FIELDS = ("period", "cron_expression")


def apply_schedule_policy(fields: dict[str, Any]) -> dict[str, Any]:
    """Keep ``period`` and ``cron_expression`` mutually exclusive.

    A non-empty cron expression forces the period to 0; a positive period
    clears the cron expression. Raises InvalidScheduleError for a bad cron.
    """
    fields = dict(fields)
    if "cron_expression" in fields:
        expression = (fields["cron_expression"] or "").strip()
        if expression:
            fields["cron_expression"] = validate_cron_expression(expression)
            fields["period"] = 0
            return fields
        fields["cron_expression"] = None

    if fields.get("period", 0) > 0:
        fields["cron_expression"] = None
    return fields


class CheckRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, **fields: Any) -> Check:
        fields = apply_schedule_policy(fields)
        async with self._session_factory() as db:
            check = Check(**fields)
            db.add(check)
            await db.commit()
            await db.refresh(check)
        logger.info(f"Created check '{check.name}' ({check.id})")
        return check

    async def get(self, check_id: str) -> Optional[Check]:
        async with self._session_factory() as db:
            result = await db.execute(select(Check).where(Check.id == check_id))
            return result.scalar_one_or_none()

    async def list_checks(self) -> list[Check]:
        async with self._session_factory() as db:
            result = await db.execute(select(Check).order_by(Check.created_at.desc()))
            return list(result.scalars().all())

    async def update(self, check_id: str, **fields: Any) -> Optional[Check]:
        """Apply a partial update; returns None when the check does not exist."""
        schedule_changed = any(name in fields for name in SCHEDULE_FIELDS)
        if schedule_changed:
            fields = apply_schedule_policy(fields)

        async with self._session_factory() as db:
            result = await db.execute(select(Check).where(Check.id == check_id))
            check = result.scalar_one_or_none()
            if check is None:
                return None

            for field, value in fields.items():
                setattr(check, field, value)

            if schedule_changed and "next_ping_due" not in fields and check.last_ping:
                check.next_ping_due = next_due(check, check.last_ping)

            await db.commit()
            await db.refresh(check)
            return check

    async def delete(self, check_id: str) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(select(Check).where(Check.id == check_id))
            check = result.scalar_one_or_none()
            if check is None:
                return False
            await db.delete(check)
            await db.commit()
        logger.info(f"Deleted check {check_id}")
        return True

    async def list_pings(
        self, check_id: str, limit: int = 100, order: str = "desc"
    ) -> list[Ping]:
        ordering = Ping.timestamp.asc() if order == "asc" else Ping.timestamp.desc()
        async with self._session_factory() as db:
            result = await db.execute(
                select(Ping)
                .where(Ping.check_id == check_id)
                .order_by(ordering)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def insert_ping(self, **fields: Any) -> Ping:
        async with self._session_factory() as db:
            ping = Ping(**fields)
            db.add(ping)
            await db.commit()
            await db.refresh(ping)
            return ping


class IntegrationStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, **fields: Any) -> Integration:
        async with self._session_factory() as db:
            integration = Integration(**fields)
            db.add(integration)
            await db.commit()
            await db.refresh(integration)
            return integration

    async def get(self, integration_id: str) -> Optional[Integration]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Integration).where(Integration.id == integration_id)
            )
            return result.scalar_one_or_none()

    async def list_for_check(self, check_id: str) -> list[Integration]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Integration)
                .where(Integration.check_id == check_id)
                .order_by(Integration.created_at)
            )
            return list(result.scalars().all())

    async def list_enabled_for_check(self, check_id: str) -> list[Integration]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Integration).where(
                    Integration.check_id == check_id,
                    Integration.enabled == True,  # noqa: E712
                )
            )
            return list(result.scalars().all())

    async def update(self, integration_id: str, **fields: Any) -> Optional[Integration]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Integration).where(Integration.id == integration_id)
            )
            integration = result.scalar_one_or_none()
            if integration is None:
                return None
            for field, value in fields.items():
                setattr(integration, field, value)
            await db.commit()
            await db.refresh(integration)
            return integration

    async def delete(self, integration_id: str) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Integration).where(Integration.id == integration_id)
            )
            integration = result.scalar_one_or_none()
            if integration is None:
                return False
            await db.delete(integration)
            await db.commit()
            return True

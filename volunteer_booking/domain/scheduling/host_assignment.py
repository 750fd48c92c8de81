"""
Host Assignment Policy
Chooses the staff member who hosts a confirmed booking: least loaded host for
the booking date first, ties broken alphabetically so the choice is stable.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ... import config
from ...models import BOOKING_CONFIRMED, Booking, ServiceType, Slot
from .errors import NoHostsAvailable

logger = logging.getLogger(__name__)


def _normalize_pool(emails) -> list[str]:
    return sorted({email.strip().lower() for email in emails or [] if email and email.strip()})


class HostAssignmentPolicy:
    def __init__(
        self,
        db: Session,
        default_pool: Optional[list[str]] = None,
        service_pools: Optional[dict] = None,
        company_pools: Optional[dict] = None,
        max_per_day: Optional[int] = None,
    ):
        self.db = db
        self.default_pool = _normalize_pool(
            config.DEFAULT_HOST_POOL if default_pool is None else default_pool
        )
        self.service_pools = config.HOST_POOLS if service_pools is None else service_pools
        self.company_pools = config.COMPANY_HOST_POOLS if company_pools is None else company_pools
        self.max_per_day = config.MAX_BOOKINGS_PER_HOST_PER_DAY if max_per_day is None else max_per_day

    def pool_for(self, service_type_id: int, company_id: Optional[int] = None) -> list[str]:
        """Eligible hosts: company override, then service pool, then the default team"""
        if company_id is not None:
            company_pool = self.company_pools.get(str(company_id))
            if company_pool:
                return _normalize_pool(company_pool)

        service = self.db.get(ServiceType, service_type_id)
        if service is not None and service.slug in self.service_pools:
            return _normalize_pool(self.service_pools[service.slug])

        return list(self.default_pool)

    def team_members(self) -> list[str]:
        members = set(self.default_pool)
        for pool in list(self.service_pools.values()) + list(self.company_pools.values()):
            members.update(_normalize_pool(pool))
        return sorted(members)

    def host_loads(self, on_date: date, pool: list[str]) -> dict[str, int]:
        """Confirmed bookings per host on slots of the given date"""
        loads = {email: 0 for email in pool}
        if not pool:
            return loads

        rows = (
            self.db.query(Booking.host_email, func.count(Booking.id))
            .join(Slot, Booking.slot_id == Slot.id)
            .filter(
                Booking.status == BOOKING_CONFIRMED,
                Booking.host_email.in_(pool),
                Slot.date == on_date,
            )
            .group_by(Booking.host_email)
            .all()
        )
        for host_email, count in rows:
            loads[host_email] = count
        return loads

    def assign_host(self, service_type_id: int, on_date: date, company_id: Optional[int] = None) -> str:
        """
        Pick the host with the fewest confirmed bookings on the date.

        Raises NoHostsAvailable when the pool is empty or every host already
        reached the daily limit.
        """
        pool = self.pool_for(service_type_id, company_id)
        if not pool:
            logger.warning(f"⚠️ Empty host pool for service {service_type_id}, company {company_id}")
            raise NoHostsAvailable("No hosts are configured for this service")

        loads = self.host_loads(on_date, pool)
        candidates = [
            (count, email)
            for email, count in loads.items()
            if not self.max_per_day or count < self.max_per_day
        ]
        if not candidates:
            logger.warning(f"⚠️ All {len(pool)} hosts are fully booked on {on_date}")
            raise NoHostsAvailable()

        count, host_email = min(candidates)
        logger.info(f"👤 Assigned host {host_email} ({count} bookings on {on_date})")
        return host_email

from dataclasses import dataclass
from datetime import datetime, timedelta, UTC

import pytz

from ...helpers import COMPANY_FM, COMPANY_QF, ValidationError, normalize_text
from ..shopify.models import Address

CUTOFF_HOUR = 17
DELIVERY_HOUR = 12


@dataclass(frozen=True)
class ScheduleRule:
    timezone: str
    in_town: frozenset[str]

    def is_in_town(self, city: str, province_code: str) -> bool:
        return normalize_text(f"{city}, {province_code}") in self.in_town


def _cities(*cities: str) -> frozenset[str]:
    return frozenset(normalize_text(city) for city in cities)


SCHEDULE_RULES: dict[int, ScheduleRule] = {
    COMPANY_QF: ScheduleRule(
        timezone="Canada/Eastern",
        in_town=_cities(
            "Etobicoke, ON",
            "Markham, ON",
            "Missisauga, ON",
            "Richmond Hill, ON",
            "Scarborough, ON",
            "Toronto, ON",
            "Vaughan, ON",
        ),
    ),
    COMPANY_FM: ScheduleRule(
        timezone="Canada/Pacific",
        in_town=_cities("Burnaby, BC", "New Westminster, BC", "Richmond, BC", "Vancouver, BC"),
    ),
}


def days_until_delivery(weekday: int, after_cutoff: bool, in_town: bool) -> int:
    """``weekday`` is ISO numbered, Monday is 1 and Sunday is 7."""
    days_until_monday = 8 - weekday
    if (after_cutoff and weekday == 5) or weekday in (6, 7):
        return days_until_monday + 1 if in_town else days_until_monday
    if after_cutoff and weekday in (1, 2, 3):
        return 2 if in_town else 1
    if after_cutoff and weekday == 4:
        return days_until_monday if in_town else 1
    if in_town and weekday in (1, 2, 3, 4):
        return 1
    if in_town and weekday == 5:
        return days_until_monday
    return 0


def compute_scheduled_date(order_time: datetime, company_id: int, address: Address | None) -> datetime:
    rule = SCHEDULE_RULES.get(company_id)
    if rule is None:
        raise ValidationError(f"no delivery schedule configured for company {company_id}")
    if order_time.tzinfo is None:
        order_time = order_time.replace(tzinfo=UTC)

    timezone = pytz.timezone(rule.timezone)
    local_order_time = order_time.astimezone(timezone)
    in_town = bool(address) and rule.is_in_town(address.city or "", address.province_code())
    add_days = days_until_delivery(local_order_time.isoweekday(), local_order_time.hour >= CUTOFF_HOUR, in_town)

    scheduled_day = local_order_time.date() + timedelta(days=add_days)
    local_scheduled = timezone.localize(datetime(scheduled_day.year, scheduled_day.month, scheduled_day.day, DELIVERY_HOUR))
    return local_scheduled.astimezone(UTC)

import calendar
from datetime import date, datetime
from zoneinfo import ZoneInfo

from societyledger.exceptions import ValidationError
from societyledger.settings import settings

TENANT_TZ = ZoneInfo(settings.timezone)

MONTHS = {
    "01": "Jan",
    "02": "Feb",
    "03": "Mar",
    "04": "Apr",
    "05": "May",
    "06": "Jun",
    "07": "Jul",
    "08": "Aug",
    "09": "Sep",
    "10": "Oct",
    "11": "Nov",
    "12": "Dec",
}


def now() -> datetime:
    return datetime.now(TENANT_TZ)


def today() -> date:
    return now().date()


def format_month(ref: str) -> str:
    if not ref or "-" not in ref:
        return ref or ""
    year, month = ref.split("-")
    return f"{MONTHS.get(month, month)} {year}"


def parse_period(ref: str) -> tuple[int, int]:
    """Split a 'YYYY-MM' billing period into (year, month)."""
    if not ref or len(ref) != 7 or ref[4] != "-":
        raise ValidationError(f"Invalid billing period {ref!r}; expected YYYY-MM")
    try:
        year, month = int(ref[:4]), int(ref[5:])
    except ValueError:
        raise ValidationError(f"Invalid billing period {ref!r}; expected YYYY-MM") from None
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month in billing period {ref!r}")
    return year, month


def make_period(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def period_start(ref: str) -> date:
    year, month = parse_period(ref)
    return date(year, month, 1)


def day_in_month(year: int, month: int, day: int) -> date:
    """Return ``day`` of the month, clamped to the month's last day."""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last))


def financial_year(d: date) -> str:
    """Indian financial year label: 2025-05-01 -> 'FY2025-26'."""
    start = settings.financial_year_start_month
    first = d.year if d.month >= start else d.year - 1
    return f"FY{first}-{str(first + 1)[-2:]}"

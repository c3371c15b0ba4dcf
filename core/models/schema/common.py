from enum import Enum
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """Stored with snake_case keys, served with the camelCase keys consumers expect."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    @classmethod
    def highest(cls, *severities) -> "Severity":
        """Return the highest severity by ordinal LOW < MEDIUM < HIGH < CRITICAL."""
        return max((cls(s) for s in severities), key=lambda s: s.rank)


_SEVERITY_ORDER = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]


def to_naive_utc(value: datetime) -> datetime:
    # The record store keeps naive UTC datetimes
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

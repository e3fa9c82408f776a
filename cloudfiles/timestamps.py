# timestamps.py
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class Precision(str, Enum):
    """The finest time unit a backend preserves for modification times."""

    SECOND = "second"
    MILLISECOND = "millisecond"
    MICROSECOND = "microsecond"

    def coarser(self, other: "Precision") -> "Precision":
        order = list(Precision)
        return self if order.index(self) <= order.index(other) else other


class Timestamp(BaseModel):
    """
    A UTC instant tagged with the precision it is meaningful at.

    Conflict checks must go through `same_instant` / `is_after`, which compare
    at the coarser of both precisions. Plain `==` compares the raw values.
    """

    model_config = ConfigDict(frozen=True)

    value: datetime
    precision: Precision = Precision.SECOND

    @field_validator("value")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        # Naive datetimes (e.g. from the Dropbox SDK) are already UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def now(cls, precision: Precision = Precision.SECOND) -> "Timestamp":
        return cls(value=datetime.now(timezone.utc), precision=precision)

    @classmethod
    def parse_http_date(
        cls, text: str, precision: Precision = Precision.SECOND
    ) -> "Timestamp":
        """
        Parses an RFC 1123 date ("Mon, 12 Jan 1998 09:25:56 GMT") as found in
        WebDAV `getlastmodified`. ISO-8601 strings are accepted as well.

        :raises ValueError: If the text is neither.
        """
        text = text.strip()
        try:
            value = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            try:
                value = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                raise ValueError(f"Unrecognized date: {text!r}") from None
        return cls(value=value, precision=precision)

    def truncated(self, precision: Precision | None = None) -> "Timestamp":
        """Drops everything below `precision` (defaults to our own)."""
        precision = precision or self.precision
        micro = self.value.microsecond
        if precision is Precision.SECOND:
            micro = 0
        elif precision is Precision.MILLISECOND:
            micro -= micro % 1000
        return Timestamp(value=self.value.replace(microsecond=micro), precision=precision)

    def same_instant(self, other: "Timestamp") -> bool:
        precision = self.precision.coarser(other.precision)
        return self.truncated(precision).value == other.truncated(precision).value

    def is_after(self, other: "Timestamp") -> bool:
        precision = self.precision.coarser(other.precision)
        return self.truncated(precision).value > other.truncated(precision).value

    def to_iso_second(self) -> str:
        """Renders YYYY-MM-DDTHH:MM:SSZ, truncated to whole seconds."""
        return self.value.strftime("%Y-%m-%dT%H:%M:%SZ")

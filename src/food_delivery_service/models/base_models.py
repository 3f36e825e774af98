"""Shared pydantic building blocks.

Python code uses snake_case field names; the HTTP and WebSocket payloads use
camelCase, which is what the single-page frontend consumes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

# DynamoDB only accepts Decimal for numbers; clients expect JSON numbers.
Money = Annotated[
    Decimal,
    PlainSerializer(lambda value: float(value), return_type=float, when_used="json"),
]


class CamelModel(BaseModel):
    """Base model serialising to camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-compatible, camelCase representation."""
        return self.model_dump(mode="json", by_alias=True)


def to_decimal(value: float | int | Decimal) -> Decimal:
    """Convert a number to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp stored in DynamoDB."""
    return datetime.fromisoformat(value)

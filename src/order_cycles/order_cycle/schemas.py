"""Pydantic schemas for order cycle form parameters.

These are the external contract for saving an order cycle, separate from the
Protean aggregate. Ids arrive as strings or numbers and are normalised to
strings; blank ids are dropped. Fields left out of the payload stay unset, so
``model_dump(exclude_unset=True)`` tells "not supplied" apart from "empty".
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, field_validator


def _normalise_ids(value):
    if value is None:
        return value
    if isinstance(value, (str, int)):
        value = [value]
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


# ---------------------------------------------------------------------------
# Exchanges
# ---------------------------------------------------------------------------
class ExchangeParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enterprise_id: str
    variant_ids: list[str] = []
    pickup_time: str | None = None
    pickup_instructions: str | None = None
    receival_instructions: str | None = None

    @field_validator("enterprise_id", mode="before")
    @classmethod
    def enterprise_id_as_string(cls, value):
        return str(value).strip() if value is not None else value

    @field_validator("variant_ids", mode="before")
    @classmethod
    def variant_ids_as_strings(cls, value):
        return _normalise_ids(value) or []

    def details(self):
        """Exchange attributes that were supplied, without the enterprise id."""
        return self.model_dump(exclude_unset=True, exclude={"enterprise_id"})


# ---------------------------------------------------------------------------
# Order cycle
# ---------------------------------------------------------------------------
class OrderCycleParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    coordinator_id: str | None = None
    orders_open_at: datetime | None = None
    orders_close_at: datetime | None = None
    schedule_ids: list[str] | None = None
    selected_shipping_method_ids: list[str] | None = None
    incoming_exchanges: list[ExchangeParams] | None = None
    outgoing_exchanges: list[ExchangeParams] | None = None

    @field_validator("coordinator_id", mode="before")
    @classmethod
    def coordinator_id_as_string(cls, value):
        return str(value) if value is not None else value

    @field_validator("schedule_ids", "selected_shipping_method_ids", mode="before")
    @classmethod
    def ids_as_strings(cls, value):
        return _normalise_ids(value)

    @field_validator("orders_open_at", "orders_close_at")
    @classmethod
    def dates_in_utc(cls, value):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def attributes(self):
        """Top-level order cycle attributes that were supplied."""
        return self.model_dump(
            exclude_unset=True,
            include={"name", "coordinator_id", "orders_open_at", "orders_close_at"},
        )

    def supplied(self, field_name):
        return field_name in self.model_fields_set

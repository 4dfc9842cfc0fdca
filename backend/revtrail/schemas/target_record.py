"""Target record reference schema."""

from pydantic import BaseModel, ConfigDict


class TargetRecordRef(BaseModel):
    """A record whose history should be synced. Supplied by record ingestion."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    base_id: str
    table_id: str
    record_id: str

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Mapping, Optional


class ColumnDefinition(BaseModel):
    """One row of column metadata for a matched table."""

    model_config = ConfigDict(frozen=True)

    table_name : str = Field(..., min_length=1, description="Name of the table the column belongs to")
    column_name : str = Field(..., min_length=1, description="Name of the column")
    data_type : str = Field(..., min_length=1, description="Catalog data type, e.g. 'integer' or 'character varying'")

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Optional["ColumnDefinition"]:
        """Build from a catalog record; None when any of the three fields is missing or empty."""
        table_name = record.get("table_name")
        column_name = record.get("column_name")
        data_type = record.get("data_type")

        if not table_name or not column_name or not data_type:
            return None

        return cls(
            table_name=str(table_name),
            column_name=str(column_name),
            data_type=str(data_type),
        )

    def render(self) -> str:
        return f"{self.column_name} ({self.data_type})"

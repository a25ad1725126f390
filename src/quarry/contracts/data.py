"""Dataset schema contracts.

ColumnDef is declared by the ingestion collaborator, so it is validated with
Pydantic - this is a trust boundary (caller data entering the system).
"""

from pydantic import BaseModel, field_validator

from quarry.contracts.enums import ColumnType


class ColumnDef(BaseModel):
    """Declared name and type of one dataset column.

    Example:
        ColumnDef(name="fare", type=ColumnType.NUMERIC)
        ColumnDef(name="cabin", type="categorical", required=False)
    """

    model_config = {"frozen": True, "extra": "forbid"}

    name: str
    type: ColumnType
    required: bool = True

    @field_validator("name")
    @classmethod
    def validate_name_not_blank(cls, v: str) -> str:
        """Column names must contain a visible character."""
        if not v.strip():
            raise ValueError("column name cannot be blank")
        return v

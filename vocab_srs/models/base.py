"""
Base Models for Aggregate and Report Validation

Two base classes with different strictness:

    StrictModel (extra="forbid")  - values the engine writes back to storage
    ReportModel (extra="ignore")  - read-only summaries built from storage rows

Both enable from_attributes so SQLAlchemy rows convert directly:

    BookProgress.model_validate(db_row)
"""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """
    Base model for persisted values with strict validation.

    Features:
        - extra="forbid": Unknown fields raise ValidationError
        - validate_default=True: Validates default values
        - from_attributes=True: Allows ORM model conversion
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        from_attributes=True,
    )


class ReportModel(BaseModel):
    """
    Base model for read-only summaries.

    Features:
        - extra="ignore": Silently ignores extra fields
        - from_attributes=True: Allows ORM model conversion
    """

    model_config = ConfigDict(
        extra="ignore",
        from_attributes=True,
    )

"""Base model for all value models in the billing engine.

This module provides a base Pydantic model with common configuration
shared by client snapshots, time entry input and billing results.
"""

from pydantic import BaseModel, ConfigDict


class BaseDataModel(BaseModel):
    """Base class for all data models.

    Provides common configuration for:
    - Validation with type checking (Decimal, datetime)
    - Validation on assignment
    - Rejection of unknown fields
    - Building from ORM rows via ``model_validate(row)``

    Example:
        >>> class Rate(BaseDataModel):
        ...     amount: Decimal
        >>> Rate(amount="75").amount
        Decimal('75')
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        validate_assignment=True,
        strict=False,
        extra="forbid",
        frozen=False,
        # Allow model_validate() on SQLAlchemy rows
        from_attributes=True,
    )

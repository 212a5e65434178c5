"""Base Pydantic model configuration for jwkfetch models.

All jwkfetch models inherit from JWKFetchBaseModel to ensure consistent behavior:
- Immutability (frozen=True) so models can be shared across tasks
- Strict validation (extra="forbid") to catch typos in provider files
- Flexible field naming (populate_by_name=True) for alias support
"""

from pydantic import BaseModel, ConfigDict


class JWKFetchBaseModel(BaseModel):
    """Base model for all jwkfetch entities.

    Example:
        >>> class MyModel(JWKFetchBaseModel):
        ...     name: str
        >>> obj = MyModel(name="test")
        >>> obj.name
        'test'
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        validate_default=True,
    )

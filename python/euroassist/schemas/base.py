"""Shared Pydantic base model.

Responses use camelCase JSON keys while Python code keeps snake_case
attribute names. Request bodies accept either spelling.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every request/response schema exposed over HTTP."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_json(self, exclude_none: bool = False) -> dict:
        """Dump using the public (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)

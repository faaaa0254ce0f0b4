"""Shared Pydantic configuration for API-facing models.

The REST contract uses camelCase keys (``publicationYear``, ``checkedOutBy``)
while the Python side keeps snake_case attribute names. Models accept either
spelling on input and serialize with the camelCase alias.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing to camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

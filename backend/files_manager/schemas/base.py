"""camelCase wire format for API schemas.

Python attributes stay snake_case (is_public); request and response JSON use
camelCase (isPublic). Both spellings are accepted on input.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for request schemas."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CamelORMModel(CamelModel):
    """Base for response schemas built from SQLAlchemy rows."""
    model_config = ConfigDict(from_attributes=True)

"""Shared request model base for the API."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request body accepting camelCase (as the web UI sends) or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# backend/schemas/base.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# Base configuration for ORM compatibility; camelCase on the wire, snake_case in Python
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, alias_generator=to_camel)


# Pagination and sort parameters echoed back with every list response
class PageMeta(ORMBase):
    total: int
    page: int
    perpage: int
    pages: int
    sort: str
    order: str

from pydantic import BaseModel, Field
from typing import Generic, List, NamedTuple, TypeVar

T = TypeVar("T")

class PaginationParams(BaseModel):
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)

class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    limit: int
    offset: int

class PageResult(NamedTuple):
    """One page of ORM rows as returned by the services, before serialisation."""
    items: list
    total: int

class ErrorResponse(BaseModel):
    code: str
    message: str

"""
Standard API Response Models

Provides the success envelope shared by all endpoints. Errors use the
matching envelope built in ``core.exceptions``.
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginationMeta(BaseModel):
    """Standard pagination metadata"""

    current_page: int = Field(description="Current page number (1-indexed)")
    per_page: int = Field(description="Number of items per page")
    total: int = Field(description="Total number of items")
    total_pages: int = Field(description="Total number of pages")
    has_next: bool = Field(description="Whether there is a next page")
    has_prev: bool = Field(description="Whether there is a previous page")

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> "PaginationMeta":
        total_pages = (total + per_page - 1) // per_page
        return cls(
            current_page=page,
            per_page=per_page,
            total=total,
            total_pages=total_pages,
            has_next=page * per_page < total,
            has_prev=page > 1,
        )


class StandardResponse(BaseModel, Generic[T]):
    """
    Standard response envelope for all API endpoints

    Usage:
        return StandardResponse.ok(data=review, message="Review created")
    """

    success: bool = Field(description="Whether the request was successful")
    message: Optional[str] = Field(None, description="Optional status message")
    data: Optional[T] = Field(None, description="Response payload")

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "StandardResponse":
        return cls(success=True, data=data, message=message)

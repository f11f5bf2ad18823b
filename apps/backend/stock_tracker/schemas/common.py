"""
共用 Schema 定義

包含分頁、API 回應包裝等通用結構。
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """統一 API 回應格式"""
    success: bool = True
    data: T | None = None
    message: str = "OK"


class PaginatedResponse(BaseModel, Generic[T]):
    """分頁回應"""
    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next_page: bool = False
    has_prev_page: bool = False

    @classmethod
    def build(cls, items: list, total: int, page: int, page_size: int):
        total_pages = (total + page_size - 1) // page_size
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )

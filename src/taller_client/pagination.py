"""Client-side paging window over a fetched list."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from math import ceil
from typing import TypeVar

from taller_client.forms import PAGE_SIZES

T = TypeVar("T")


@dataclass(frozen=True)
class PageWindow:
    """One page of ``total`` rows; ``page`` is 1-based."""

    total: int
    page: int = 1
    page_size: int = PAGE_SIZES[0]

    def __post_init__(self) -> None:
        if self.total < 0:
            raise ValueError("total must be >= 0")
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.page_size)

    @property
    def start(self) -> int:
        if self.total == 0:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def end(self) -> int:
        return min(self.page * self.page_size, self.total)

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def slice(self, rows: Sequence[T]) -> list[T]:
        offset = (self.page - 1) * self.page_size
        return list(rows[offset : offset + self.page_size])

    def summary(self) -> str:
        return f"Mostrando {self.start}-{self.end} de {self.total} resultados"

"""
Sort and pagination utilities for ReviewHub queries
Page numbers are 1-indexed; malformed input falls back to defaults.
"""
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import config

logger = logging.getLogger(__name__)


class SortOption(Enum):
    """Canonical sort labels and the store sort they map to"""
    LATEST = 'latest'
    OLDEST = 'oldest'
    HIGHEST_RATING = 'highestRating'
    LOWEST_RATING = 'lowestRating'

    @property
    def sort_spec(self) -> Dict[str, int]:
        field_name, direction = _SORT_FIELDS[self]
        # _id keeps page boundaries stable between equal keys
        return {field_name: direction, '_id': 1}


_SORT_FIELDS = {
    SortOption.LATEST: ('createdAt', -1),
    SortOption.OLDEST: ('createdAt', 1),
    SortOption.HIGHEST_RATING: ('rating', -1),
    SortOption.LOWEST_RATING: ('rating', 1),
}

SORT_ALIASES = {
    '최신순': SortOption.LATEST,
    '오래된순': SortOption.OLDEST,
    '평점높은순': SortOption.HIGHEST_RATING,
    '평점낮은순': SortOption.LOWEST_RATING,
}

DEFAULT_SORT = SortOption.LATEST


def resolve_sort(label: Optional[str]) -> SortOption:
    """Map a sort label (English or Korean) to a SortOption, default latest"""
    if not label:
        return DEFAULT_SORT
    label = str(label).strip()
    try:
        return SortOption(label)
    except ValueError:
        pass
    if label in SORT_ALIASES:
        return SORT_ALIASES[label]
    logger.debug(f"Unknown sort label {label!r}, using {DEFAULT_SORT.value}")
    return DEFAULT_SORT


def _parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_page(value: Any) -> int:
    """1-indexed page number; anything unusable becomes page 1"""
    page = _parse_int(value)
    if page is None or page < 1:
        return 1
    return page


def parse_page_size(value: Any, default: Optional[int] = None) -> int:
    """Page size clamped to [1, MAX_PAGE_SIZE]"""
    default = default or config.DEFAULT_PAGE_SIZE
    page_size = _parse_int(value)
    if page_size is None or page_size < 1:
        return default
    return min(page_size, config.MAX_PAGE_SIZE)


def total_pages(total_count: int, page_size: int) -> int:
    return math.ceil(total_count / page_size) if total_count > 0 else 0


@dataclass(frozen=True)
class PageWindow:
    """The [offset, offset + page_size) slice of a result set"""
    page: int
    page_size: int

    @classmethod
    def from_params(cls, page: Any, page_size: Any = None) -> 'PageWindow':
        return cls(parse_page(page), parse_page_size(page_size))

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


@dataclass
class PaginationResult:
    """Standardized pagination result structure"""
    items: List[Dict[str, Any]]
    total_count: int
    page: int = 1
    page_size: int = 20

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_count, self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self, items_key: str = 'items') -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        return {
            items_key: self.items,
            'totalCount': self.total_count,
            'totalPages': self.total_pages,
            'currentPage': self.page,
            'pageSize': self.page_size,
            'hasNext': self.has_next,
            'hasPrevious': self.has_prev
        }

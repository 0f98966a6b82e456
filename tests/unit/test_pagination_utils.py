"""
Unit tests for sort resolution and pagination helpers
"""
import math

import pytest

from reviewhub.shared.pagination_utils import (
    DEFAULT_SORT,
    PageWindow,
    PaginationResult,
    SortOption,
    parse_page,
    parse_page_size,
    resolve_sort,
    total_pages
)


class TestSortResolution:
    """One canonical label set with Korean aliases and a single fallback"""

    @pytest.mark.parametrize('label,expected', [
        ('latest', SortOption.LATEST),
        ('oldest', SortOption.OLDEST),
        ('highestRating', SortOption.HIGHEST_RATING),
        ('lowestRating', SortOption.LOWEST_RATING),
        ('최신순', SortOption.LATEST),
        ('오래된순', SortOption.OLDEST),
        ('평점높은순', SortOption.HIGHEST_RATING),
        ('평점낮은순', SortOption.LOWEST_RATING),
    ])
    def test_known_labels(self, label, expected):
        assert resolve_sort(label) is expected

    @pytest.mark.parametrize('label', [None, '', 'newest', 'rating'])
    def test_unknown_labels_fall_back_to_latest(self, label):
        assert resolve_sort(label) is DEFAULT_SORT is SortOption.LATEST

    def test_sort_specs(self):
        assert SortOption.LATEST.sort_spec == {'createdAt': -1, '_id': 1}
        assert SortOption.OLDEST.sort_spec == {'createdAt': 1, '_id': 1}
        assert SortOption.HIGHEST_RATING.sort_spec == {'rating': -1, '_id': 1}
        assert SortOption.LOWEST_RATING.sort_spec == {'rating': 1, '_id': 1}


class TestPageParsing:
    """Malformed paging input falls back to defaults"""

    @pytest.mark.parametrize('value,expected', [
        (None, 1), ('', 1), ('abc', 1), (0, 1), (-3, 1), ('2', 2), (7, 7), (True, 1),
    ])
    def test_parse_page(self, value, expected):
        assert parse_page(value) == expected

    @pytest.mark.parametrize('value,expected', [
        (None, 20), ('x', 20), (0, 20), ('10', 10), (500, 100),
    ])
    def test_parse_page_size(self, value, expected):
        assert parse_page_size(value) == expected

    def test_window_offsets(self):
        window = PageWindow(page=2, page_size=20)

        assert window.skip == 20
        assert window.limit == 20
        assert PageWindow.from_params('3', '5').skip == 10


class TestTotalPages:
    """totalPages == ceil(totalMatches / pageSize)"""

    def test_ceil_for_all_counts(self):
        for page_size in (1, 3, 7, 20, 100):
            for total in range(0, 250):
                assert total_pages(total, page_size) == math.ceil(total / page_size)

    def test_pagination_result(self):
        result = PaginationResult(items=[{'a': 1}], total_count=45, page=2, page_size=20)

        assert result.to_dict('products') == {
            'products': [{'a': 1}],
            'totalCount': 45,
            'totalPages': 3,
            'currentPage': 2,
            'pageSize': 20,
            'hasNext': True,
            'hasPrevious': True
        }

    def test_page_past_the_end(self):
        result = PaginationResult(items=[], total_count=45, page=9, page_size=20)

        assert result.total_pages == 3
        assert result.has_next is False
        assert result.to_dict()['items'] == []

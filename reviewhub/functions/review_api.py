"""
Review API Lambda function for ReviewHub
Handles filtered review search and per-author review listing
"""
import asyncio
import logging
import time
from typing import Any, Dict

from ..shared.api_utils import ApiRequest, match_route, parse_event, route, success_response
from ..shared.config import config
from ..shared.database import RecordStore, open_record_store
from ..shared.error_handling import (
    ENDPOINT_NOT_FOUND_ERROR,
    ValidationError,
    create_error_response,
    handle_request_errors,
    not_found,
    require_path_parameter
)
from ..shared.filters import ReviewFilter, ReviewFilterBuilder, ReviewSearchRequest, build_review_pipeline
from ..shared.models import format_review_row
from ..shared.monitoring import lambda_monitor, log_api_call
from ..shared.pagination_utils import PageWindow, PaginationResult, SortOption, resolve_sort

# Configure logging
logger = logging.getLogger()
logger.setLevel(getattr(logging, config.LOG_LEVEL))


class ReviewAPI:
    """Review API handler class"""

    def __init__(self, store: RecordStore):
        self.store = store

    async def _paginated_reviews(self, review_filter: ReviewFilter, sort: SortOption,
                                 window: PageWindow, author_stats: bool) -> PaginationResult:
        pipeline, tail = build_review_pipeline(review_filter, author_stats=author_stats)
        rows, total_count = await self.store.aggregate_reviews_with_pagination(
            pipeline, window.skip, window.limit, sort=sort.sort_spec, tail=tail
        )
        return PaginationResult(
            items=[format_review_row(row) for row in rows],
            total_count=total_count,
            page=window.page,
            page_size=window.page_size
        )

    @handle_request_errors
    async def search_reviews(self, request: ApiRequest) -> Dict[str, Any]:
        """
        Search reviews joined with their products.

        Body (every filter optional, empty means unconstrained):
        - keywords: review text contains any of them
        - platforms, authors, brands, productNames: exact match of any
        - ratings: 1-5 star values
        - createdDate: 'within 24h' | 'within 1 week' | 'within 1 month'
        - sort: latest | oldest | highestRating | lowestRating
        - page, pageSize
        """
        body = request.body
        search = ReviewSearchRequest.from_body(body)
        review_filter = ReviewFilterBuilder.from_request(search)
        sort = resolve_sort(body.get('sort'))
        window = PageWindow.from_params(body.get('page'), body.get('pageSize'))

        result = await self._paginated_reviews(review_filter, sort, window,
                                               author_stats=bool(search.authors))
        if result.total_count == 0:
            raise not_found('No reviews found')

        logger.info(f"Review search: {result.total_count} matches, "
                    f"page {window.page}/{result.total_pages}, sort {sort.value}")
        response = result.to_dict('reviews')
        response['sort'] = sort.value
        return success_response(response)

    @handle_request_errors
    async def get_reviews_by_username(self, request: ApiRequest) -> Dict[str, Any]:
        """All reviews written by one author, with that author's review stats"""
        username = require_path_parameter(request.path_params, 'username')
        params = request.query_params
        sort = resolve_sort(params.get('sort'))
        window = PageWindow.from_params(params.get('page'), params.get('pageSize'))

        review_filter = ReviewFilterBuilder().author(username).build()
        result = await self._paginated_reviews(review_filter, sort, window, author_stats=True)
        if result.total_count == 0:
            raise not_found('No reviews found for the username')

        response = result.to_dict('reviews')
        response['sort'] = sort.value
        return success_response(response)


ROUTES = [
    route('POST', r'/reviews/search/?$', 'search_reviews'),
    route('GET', r'/reviews/username/(?P<username>[^/]+)/?$', 'get_reviews_by_username'),
]


async def dispatch(event: Dict[str, Any], store: RecordStore) -> Dict[str, Any]:
    """Route one API Gateway event to a ReviewAPI handler"""
    start_time = time.time()
    try:
        request = parse_event(event)
    except ValidationError as e:
        return create_error_response(e)

    handler_name = match_route(ROUTES, request)
    if handler_name is None:
        result = create_error_response(ENDPOINT_NOT_FOUND_ERROR)
    else:
        result = await getattr(ReviewAPI(store), handler_name)(request)

    log_api_call('review-api', request.path, request.http_method,
                 result['statusCode'], (time.time() - start_time) * 1000)
    return result


async def _handle(event: Dict[str, Any]) -> Dict[str, Any]:
    async with open_record_store() as store:
        return await dispatch(event, store)


@lambda_monitor(service_name='review-api', environment=config.ENVIRONMENT)
def lambda_handler(event, context):
    """Main Lambda handler"""
    return asyncio.run(_handle(event))

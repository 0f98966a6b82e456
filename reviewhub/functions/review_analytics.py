"""
Review Analytics Lambda function for ReviewHub
Handles monthly review trends and word cloud data
"""
import asyncio
import logging
import time
from typing import Any, Dict, Optional

from ..shared.api_utils import ApiRequest, match_route, parse_event, route, success_response
from ..shared.cache_manager import CacheManager
from ..shared.calendar_utils import month_key, utc_now
from ..shared.config import config
from ..shared.database import RecordStore, open_record_store
from ..shared.error_handling import (
    ENDPOINT_NOT_FOUND_ERROR,
    ValidationError,
    create_error_response,
    handle_request_errors,
    require_path_parameter
)
from ..shared.monitoring import lambda_monitor, log_api_call
from ..shared.trends import TrendScope, compute_trend
from ..shared.word_frequency import summarize_word_frequencies

# Configure logging
logger = logging.getLogger()
logger.setLevel(getattr(logging, config.LOG_LEVEL))


class ReviewAnalytics:
    """Review Analytics handler class"""

    def __init__(self, store: RecordStore, cache: Optional[CacheManager] = None):
        self.store = store
        self.cache = cache

    async def _cached(self, cache_type: str, identifier: str, compute):
        if self.cache is None:
            return await compute()
        return await self.cache.get_or_compute(cache_type, identifier, compute)

    async def _trend(self, scope: TrendScope, identifier: str) -> Dict[str, Any]:
        now = utc_now()
        # The window moves with the calendar month, so the month is part of the key
        cache_id = f"{scope.name.lower()}:{identifier}:{month_key(now)}"
        trend = await self._cached(
            'review_trend', cache_id,
            lambda: compute_trend(self.store, scope, identifier, now=now)
        )
        return success_response(trend)

    @handle_request_errors
    async def get_product_trend(self, request: ApiRequest) -> Dict[str, Any]:
        """Reviews per month for a product over the trailing window"""
        product_id = require_path_parameter(request.path_params, 'productId')
        return await self._trend(TrendScope.PRODUCT, product_id)

    @handle_request_errors
    async def get_author_trend(self, request: ApiRequest) -> Dict[str, Any]:
        """Reviews per month written by an author over the trailing window"""
        username = require_path_parameter(request.path_params, 'username')
        return await self._trend(TrendScope.AUTHOR, username)

    @handle_request_errors
    async def generate_word_cloud(self, request: ApiRequest) -> Dict[str, Any]:
        """Word frequencies across all reviews of a product"""
        product_id = require_path_parameter(request.path_params, 'productId')
        words = await self._cached(
            'word_cloud', product_id,
            lambda: summarize_word_frequencies(self.store, product_id)
        )
        return success_response(words)


ROUTES = [
    route('GET', r'/analytics/products/(?P<productId>[^/]+)/trend/?$', 'get_product_trend'),
    route('GET', r'/analytics/authors/(?P<username>[^/]+)/trend/?$', 'get_author_trend'),
    route('GET', r'/analytics/products/(?P<productId>[^/]+)/wordcloud/?$', 'generate_word_cloud'),
]


async def dispatch(event: Dict[str, Any], store: RecordStore,
                   cache: Optional[CacheManager] = None) -> Dict[str, Any]:
    """Route one API Gateway event to a ReviewAnalytics handler"""
    start_time = time.time()
    try:
        request = parse_event(event)
    except ValidationError as e:
        return create_error_response(e)

    handler_name = match_route(ROUTES, request)
    if handler_name is None:
        result = create_error_response(ENDPOINT_NOT_FOUND_ERROR)
    else:
        result = await getattr(ReviewAnalytics(store, cache), handler_name)(request)

    log_api_call('review-analytics', request.path, request.http_method,
                 result['statusCode'], (time.time() - start_time) * 1000)
    return result


async def _handle(event: Dict[str, Any]) -> Dict[str, Any]:
    cache = CacheManager()
    try:
        async with open_record_store() as store:
            return await dispatch(event, store, cache)
    finally:
        await cache.close()


@lambda_monitor(service_name='review-analytics', environment=config.ENVIRONMENT)
def lambda_handler(event, context):
    """Main Lambda handler"""
    return asyncio.run(_handle(event))

"""
Product API Lambda function for ReviewHub
Handles product search, product lookup by name and per-product review listing
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
    ErrorCode,
    ValidationError,
    create_error_response,
    handle_request_errors,
    not_found,
    require_path_parameter
)
from ..shared.filters import ProductFilterBuilder, ReviewFilterBuilder, build_review_pipeline
from ..shared.models import Product, format_review_row
from ..shared.monitoring import lambda_monitor, log_api_call
from ..shared.pagination_utils import PageWindow, PaginationResult, parse_page, resolve_sort

# Configure logging
logger = logging.getLogger()
logger.setLevel(getattr(logging, config.LOG_LEVEL))

PRODUCT_PROJECTION = {
    '_id': 1,
    'name': 1,          # product name
    'platform': 1,      # sales channel
    'brand': 1,
    'price': 1,
    'reviewCount': 1,
    'averageRating': 1,
    'breadcrumbs': 1,   # category path
    'images': 1,
    'evaluations': 1,
}


class ProductAPI:
    """Product API handler class"""

    def __init__(self, store: RecordStore):
        self.store = store

    @handle_request_errors
    async def search_products(self, request: ApiRequest) -> Dict[str, Any]:
        """
        Search products by name, optionally restricted to one storefront.

        Body:
        - productName: case-insensitive substring of the product name
        - platform: storefront label (e.g. 쿠팡); unknown labels are ignored
        - page: page number (default: 1); page size is fixed
        """
        body = request.body
        window = PageWindow(parse_page(body.get('page')), config.DEFAULT_PAGE_SIZE)

        query = (ProductFilterBuilder()
                 .name_contains(body.get('productName'))
                 .platform_label(body.get('platform'))
                 .build()
                 .to_query())

        # Count the full match first so totalPages is right for every page
        total_count = await self.store.count_products(query)
        if total_count == 0:
            raise not_found('Products not found', ErrorCode.PRODUCT_NOT_FOUND)

        products = []
        if window.skip < total_count:
            products = await self.store.find_products(
                query, PRODUCT_PROJECTION, skip=window.skip, limit=window.limit
            )

        result = PaginationResult(
            items=[Product.from_document(doc).to_dict() for doc in products],
            total_count=total_count,
            page=window.page,
            page_size=window.page_size
        )
        logger.info(f"Product search {body.get('productName')!r}: {total_count} matches, "
                    f"page {window.page}/{result.total_pages}")
        return success_response(result.to_dict('products'))

    @handle_request_errors
    async def get_product_by_name(self, request: ApiRequest) -> Dict[str, Any]:
        """Exact-name lookup of a branded product"""
        # GET carries the name in the path, POST in the body
        product_name = require_path_parameter({**request.body, **request.path_params}, 'productName')

        query = ProductFilterBuilder().name_equals(product_name).build().to_query()
        product = await self.store.find_one_product(query, PRODUCT_PROJECTION)
        if not product:
            raise not_found('Product not found', ErrorCode.PRODUCT_NOT_FOUND)

        return success_response(Product.from_document(product).to_dict())

    @handle_request_errors
    async def get_reviews_by_product_name(self, request: ApiRequest) -> Dict[str, Any]:
        """Reviews of the product with this exact name, joined with product data"""
        product_name = require_path_parameter(request.path_params, 'productName')
        params = request.query_params
        sort = resolve_sort(params.get('sort'))
        window = PageWindow.from_params(params.get('page'), params.get('pageSize'))

        review_filter = ReviewFilterBuilder().product_name(product_name).build()
        pipeline, tail = build_review_pipeline(review_filter)
        rows, total_count = await self.store.aggregate_reviews_with_pagination(
            pipeline, window.skip, window.limit, sort=sort.sort_spec, tail=tail
        )
        if total_count == 0:
            raise not_found('No reviews found for the product name')

        result = PaginationResult([format_review_row(row) for row in rows],
                                  total_count, window.page, window.page_size)
        response = result.to_dict('reviews')
        response['sort'] = sort.value
        return success_response(response)


ROUTES = [
    route('POST', r'/products/search/?$', 'search_products'),
    route('GET', r'/products/info/(?P<productName>[^/]+)/?$', 'get_product_by_name'),
    route('POST', r'/products/info/?$', 'get_product_by_name'),
    route('GET', r'/products/(?P<productName>[^/]+)/reviews/?$', 'get_reviews_by_product_name'),
]


async def dispatch(event: Dict[str, Any], store: RecordStore) -> Dict[str, Any]:
    """Route one API Gateway event to a ProductAPI handler"""
    start_time = time.time()
    try:
        request = parse_event(event)
    except ValidationError as e:
        return create_error_response(e)

    handler_name = match_route(ROUTES, request)
    if handler_name is None:
        result = create_error_response(ENDPOINT_NOT_FOUND_ERROR)
    else:
        result = await getattr(ProductAPI(store), handler_name)(request)

    log_api_call('product-api', request.path, request.http_method,
                 result['statusCode'], (time.time() - start_time) * 1000)
    return result


async def _handle(event: Dict[str, Any]) -> Dict[str, Any]:
    async with open_record_store() as store:
        return await dispatch(event, store)


@lambda_monitor(service_name='product-api', environment=config.ENVIRONMENT)
def lambda_handler(event, context):
    """Main Lambda handler"""
    return asyncio.run(_handle(event))

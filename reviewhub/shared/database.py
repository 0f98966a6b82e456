"""
Document store access for the ReviewHub backend.
Wraps the Product and Review collections behind an async record store.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from pymongo import AsyncMongoClient, ReadPreference
from pymongo.errors import PyMongoError

from .config import config
from .error_handling import store_failure
from .monitoring import log_database_operation

logger = logging.getLogger(__name__)

SortSpec = Sequence[Tuple[str, int]]


def create_client(uri: Optional[str] = None) -> AsyncMongoClient:
    """Create a DocumentDB client with pool and timeout settings"""
    return AsyncMongoClient(
        uri or config.mongodb_uri(),
        read_preference=ReadPreference.SECONDARY_PREFERRED,
        # Connection pool settings
        maxPoolSize=50,
        minPoolSize=0,
        maxIdleTimeMS=30000,
        # Timeout settings
        serverSelectionTimeoutMS=5000,
        connectTimeoutMS=10000,
        socketTimeoutMS=20000,
        tz_aware=True
    )


class RecordStore:
    """Read access to the Product and Review collections.

    Every method is a coroutine and every driver error surfaces as a
    StoreFailure. Nothing here retries.
    """

    def __init__(self, database, product_collection: str = None,
                 review_collection: str = None):
        self.database = database
        self.product_collection_name = product_collection or config.PRODUCT_COLLECTION
        self.review_collection_name = review_collection or config.REVIEW_COLLECTION
        self.products = database[self.product_collection_name]
        self.reviews = database[self.review_collection_name]

    async def _run(self, operation: str, collection: str, call):
        start_time = time.time()
        try:
            result = await call()
        except PyMongoError as e:
            log_database_operation(operation, collection, (time.time() - start_time) * 1000, False)
            raise store_failure(operation, collection, e) from e

        item_count = len(result) if isinstance(result, list) else 1
        log_database_operation(operation, collection, (time.time() - start_time) * 1000, True, item_count)
        return result

    @staticmethod
    def _cursor(collection, predicate: Dict, projection: Optional[Dict],
                skip: int, limit: int, sort: Optional[SortSpec]):
        cursor = collection.find(predicate or {}, projection)
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return cursor

    # Products

    async def find_products(self, predicate: Dict, projection: Optional[Dict] = None,
                            skip: int = 0, limit: int = 0,
                            sort: Optional[SortSpec] = None) -> List[Dict[str, Any]]:
        cursor = self._cursor(self.products, predicate, projection, skip, limit, sort)
        return await self._run('find', self.product_collection_name, cursor.to_list)

    async def find_one_product(self, predicate: Dict,
                               projection: Optional[Dict] = None) -> Optional[Dict[str, Any]]:
        return await self._run(
            'find_one', self.product_collection_name,
            lambda: self.products.find_one(predicate or {}, projection)
        )

    async def count_products(self, predicate: Dict) -> int:
        return await self._run(
            'count', self.product_collection_name,
            lambda: self.products.count_documents(predicate or {})
        )

    # Reviews

    async def find_reviews(self, predicate: Dict, skip: int = 0, limit: int = 0,
                           projection: Optional[Dict] = None,
                           sort: Optional[SortSpec] = None) -> List[Dict[str, Any]]:
        cursor = self._cursor(self.reviews, predicate, projection, skip, limit, sort)
        return await self._run('find', self.review_collection_name, cursor.to_list)

    async def count_reviews(self, predicate: Dict) -> int:
        return await self._run(
            'count', self.review_collection_name,
            lambda: self.reviews.count_documents(predicate or {})
        )

    async def aggregate_reviews(self, pipeline: List[Dict]) -> List[Dict[str, Any]]:
        """Run a match/join/group/sort/project pipeline over reviews"""
        async def call():
            cursor = await self.reviews.aggregate(pipeline)
            return await cursor.to_list()

        return await self._run('aggregate', self.review_collection_name, call)

    async def aggregate_reviews_with_pagination(self, pipeline: List[Dict], skip: int, limit: int,
                                                sort: Optional[Dict[str, int]] = None,
                                                tail: Sequence[Dict] = ()) -> Tuple[List[Dict[str, Any]], int]:
        """Aggregation with pagination.

        The total is counted over the pipeline as given, before sort and
        window are applied, so it is the same for every page. ``tail`` stages
        (enrichment, projection) only run over the rows of the window.
        """
        count_result = await self.aggregate_reviews(pipeline + [{'$count': 'total'}])
        total_count = count_result[0]['total'] if count_result else 0

        if skip >= total_count:
            return [], total_count

        paginated_pipeline = list(pipeline)
        if sort:
            paginated_pipeline.append({'$sort': sort})
        paginated_pipeline.extend([{'$skip': skip}, {'$limit': limit}])
        paginated_pipeline.extend(tail)

        return await self.aggregate_reviews(paginated_pipeline), total_count


@asynccontextmanager
async def open_record_store(uri: Optional[str] = None) -> AsyncIterator[RecordStore]:
    """Record store bound to a client that lives for one request scope"""
    client = create_client(uri)
    try:
        yield RecordStore(client[config.DOCUMENTDB_DATABASE])
    finally:
        await client.close()

"""
Filter and pipeline builders for Product and Review queries.

Filters are built from typed clauses rather than loose dicts. Each clause
renders itself to a document-store query and a Predicate ANDs them together.
Builders only add a clause when its input is non-empty, so a missing or empty
dimension never narrows the result.
"""
import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .calendar_utils import ensure_utc, shift_months, utc_now
from .config import config
from .models import to_storage_rating

logger = logging.getLogger(__name__)

# Storefront labels used by the frontend -> platform domain stored on records
PLATFORM_DOMAINS = {
    '쿠팡': 'coupang.com',
    '네이버': 'brand.naver.com',
    '올리브영': 'oliveyoung.co.kr',
}


def resolve_platform(label: Optional[str]) -> Optional[str]:
    """Canonical platform domain for a label, or None when unknown"""
    if not label:
        return None
    label = str(label).strip()
    if label in PLATFORM_DOMAINS:
        return PLATFORM_DOMAINS[label]
    if label in PLATFORM_DOMAINS.values():
        return label
    return None


class DateBucket(Enum):
    """Relative creation-date windows with no upper bound"""
    LAST_24_HOURS = 'within 24h'
    LAST_WEEK = 'within 1 week'
    LAST_MONTH = 'within 1 month'

    def lower_bound(self, now: datetime) -> datetime:
        if self is DateBucket.LAST_24_HOURS:
            return now - timedelta(hours=24)
        if self is DateBucket.LAST_WEEK:
            return now - timedelta(weeks=1)
        return shift_months(now, -1)


DATE_BUCKET_ALIASES = {
    '24시간 이내': DateBucket.LAST_24_HOURS,
    '1주일 이내': DateBucket.LAST_WEEK,
    '1개월 이내': DateBucket.LAST_MONTH,
}


def resolve_date_bucket(label: Optional[str]) -> Optional[DateBucket]:
    """DateBucket for a label; unknown labels apply no date filter"""
    if not label:
        return None
    label = str(label).strip()
    try:
        return DateBucket(label)
    except ValueError:
        pass
    bucket = DATE_BUCKET_ALIASES.get(label)
    if bucket is None:
        logger.debug(f"Ignoring unknown date bucket {label!r}")
    return bucket


# Clause variants

@dataclass(frozen=True)
class EqualsClause:
    field: str
    value: Any

    def to_query(self) -> Dict[str, Any]:
        return {self.field: self.value}


@dataclass(frozen=True)
class SubstringClause:
    """Case-insensitive match of any of the terms, taken literally"""
    field: str
    terms: Tuple[str, ...]

    def to_query(self) -> Dict[str, Any]:
        pattern = '|'.join(re.escape(term) for term in self.terms)
        return {self.field: {'$regex': pattern, '$options': 'i'}}


@dataclass(frozen=True)
class SetMembershipClause:
    field: str
    values: Tuple[Any, ...]

    def to_query(self) -> Dict[str, Any]:
        return {self.field: {'$in': list(self.values)}}


@dataclass(frozen=True)
class RangeClause:
    field: str
    lower: Any = None
    upper: Any = None

    def to_query(self) -> Dict[str, Any]:
        bounds = {}
        if self.lower is not None:
            bounds['$gte'] = self.lower
        if self.upper is not None:
            bounds['$lte'] = self.upper
        return {self.field: bounds}


@dataclass(frozen=True)
class DateBucketClause:
    field: str
    bucket: DateBucket
    now: datetime

    def to_query(self) -> Dict[str, Any]:
        return RangeClause(self.field, lower=self.bucket.lower_bound(self.now)).to_query()


@dataclass(frozen=True)
class ExistsClause:
    field: str
    exists: bool = True

    def to_query(self) -> Dict[str, Any]:
        return {self.field: {'$exists': self.exists}}


FilterClause = Union[EqualsClause, SubstringClause, SetMembershipClause,
                     RangeClause, DateBucketClause, ExistsClause]


@dataclass(frozen=True)
class Predicate:
    """Conjunction of clauses"""
    clauses: Tuple[FilterClause, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.clauses)

    def __len__(self) -> int:
        return len(self.clauses)

    def with_clause(self, clause: FilterClause) -> 'Predicate':
        return Predicate(self.clauses + (clause,))

    def prefixed(self, prefix: str) -> 'Predicate':
        """Same clauses addressed to an embedded document (after a join)"""
        return Predicate(tuple(replace(c, field=f"{prefix}.{c.field}") for c in self.clauses))

    def to_query(self) -> Dict[str, Any]:
        parts = [clause.to_query() for clause in self.clauses]
        query: Dict[str, Any] = {}
        for part in parts:
            if query.keys() & part.keys():
                return {'$and': parts}
            query.update(part)
        return query


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def _clean_values(values: Any) -> List[Any]:
    """Accept a scalar or a list of scalars, drop blanks, duplicates and
    anything that is not a string or a number, keep order"""
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        values = [values]
    cleaned = []
    for value in values:
        if not _is_scalar(value):
            logger.debug(f"Ignoring filter value {value!r}")
            continue
        if isinstance(value, str):
            value = value.strip()
        if value == '' or value in cleaned:
            continue
        cleaned.append(value)
    return cleaned


def _clean_strings(values: Any) -> List[str]:
    """_clean_values for text dimensions; numbers are matched as their text"""
    cleaned = []
    for value in _clean_values(values):
        text = str(value)
        if text not in cleaned:
            cleaned.append(text)
    return cleaned


def _parse_ratings(values: Any) -> List[float]:
    ratings = []
    for value in _clean_values(values):
        try:
            rating = float(value)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric rating {value!r}")
            continue
        if 1 <= rating <= 5:
            ratings.append(to_storage_rating(rating))
    return ratings


# Products

class ProductFilterBuilder:
    """Product search filter. Listings without a brand are never returned."""

    def __init__(self):
        self._predicate = Predicate((ExistsClause('brand'),))

    def name_contains(self, name: Optional[str]) -> 'ProductFilterBuilder':
        terms = _clean_strings(name if isinstance(name, str) else None)
        if terms:
            self._predicate = self._predicate.with_clause(SubstringClause('name', tuple(terms)))
        return self

    def name_equals(self, name: Optional[str]) -> 'ProductFilterBuilder':
        if name:
            self._predicate = self._predicate.with_clause(EqualsClause('name', name))
        return self

    def platform_label(self, label: Optional[str]) -> 'ProductFilterBuilder':
        domain = resolve_platform(label)
        if domain:
            self._predicate = self._predicate.with_clause(SubstringClause('platform', (domain,)))
        return self

    def build(self) -> Predicate:
        return self._predicate


# Reviews

@dataclass
class ReviewSearchRequest:
    """Review search input as sent by the frontend"""
    keywords: List[str] = field(default_factory=list)
    platforms: List[str] = field(default_factory=list)
    ratings: List[Any] = field(default_factory=list)
    created_date: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    brands: List[str] = field(default_factory=list)
    product_names: List[str] = field(default_factory=list)

    @classmethod
    def from_body(cls, body: Dict[str, Any]) -> 'ReviewSearchRequest':
        body = body or {}
        created_date = body.get('createdDate')
        return cls(
            keywords=_clean_strings(body.get('keywords')),
            platforms=_clean_strings(body.get('platforms')),
            ratings=_clean_values(body.get('ratings')),
            created_date=created_date if isinstance(created_date, str) else None,
            authors=_clean_strings(body.get('authors')),
            brands=_clean_strings(body.get('brands')),
            product_names=_clean_strings(body.get('productNames'))
        )


@dataclass(frozen=True)
class ReviewFilter:
    """Review-field clauses applied before the Product join, and Product-field
    clauses that can only be applied after it"""
    review: Predicate = Predicate()
    product: Predicate = Predicate()

    def pre_join_query(self) -> Dict[str, Any]:
        return self.review.to_query()

    def post_join_query(self) -> Dict[str, Any]:
        return self.product.prefixed('product').to_query()


class ReviewFilterBuilder:
    """Builds a ReviewFilter, one dimension at a time"""

    def __init__(self, now: Optional[datetime] = None):
        self.now = ensure_utc(now) if now else utc_now()
        self._review = Predicate()
        self._product = Predicate()

    def _add(self, clause: FilterClause):
        self._review = self._review.with_clause(clause)

    def keywords(self, keywords: Iterable[str]) -> 'ReviewFilterBuilder':
        terms = _clean_strings(keywords)
        if terms:
            self._add(SubstringClause('content', tuple(terms)))
        return self

    def platforms(self, platforms: Iterable[str]) -> 'ReviewFilterBuilder':
        domains = _clean_strings([PLATFORM_DOMAINS.get(p, p) for p in _clean_strings(platforms)])
        if domains:
            self._add(SetMembershipClause('platform', tuple(domains)))
        return self

    def ratings(self, ratings: Iterable[Any]) -> 'ReviewFilterBuilder':
        stored = _parse_ratings(ratings)
        if stored:
            self._add(SetMembershipClause('rating', tuple(stored)))
        return self

    def created_within(self, label: Optional[str]) -> 'ReviewFilterBuilder':
        bucket = resolve_date_bucket(label)
        if bucket:
            self._add(DateBucketClause('createdAt', bucket, self.now))
        return self

    def authors(self, usernames: Iterable[str]) -> 'ReviewFilterBuilder':
        usernames = _clean_strings(usernames)
        if usernames:
            self._add(SetMembershipClause('author.username', tuple(usernames)))
        return self

    def author(self, username: str) -> 'ReviewFilterBuilder':
        self._add(EqualsClause('author.username', username))
        return self

    def brands(self, brands: Iterable[str]) -> 'ReviewFilterBuilder':
        brands = _clean_strings(brands)
        if brands:
            self._product = self._product.with_clause(SetMembershipClause('brand', tuple(brands)))
        return self

    def product_names(self, names: Iterable[str]) -> 'ReviewFilterBuilder':
        names = _clean_strings(names)
        if names:
            self._product = self._product.with_clause(SetMembershipClause('name', tuple(names)))
        return self

    def product_name(self, name: str) -> 'ReviewFilterBuilder':
        self._product = self._product.with_clause(EqualsClause('name', name))
        return self

    def build(self) -> ReviewFilter:
        return ReviewFilter(review=self._review, product=self._product)

    @classmethod
    def from_request(cls, request: ReviewSearchRequest,
                     now: Optional[datetime] = None) -> ReviewFilter:
        return (cls(now)
                .keywords(request.keywords)
                .platforms(request.platforms)
                .ratings(request.ratings)
                .created_within(request.created_date)
                .authors(request.authors)
                .brands(request.brands)
                .product_names(request.product_names)
                .build())


# Join & enrichment stages

def product_join_stages() -> List[Dict[str, Any]]:
    """Inner join of each review with its product; orphans are dropped"""
    return [
        {'$lookup': {
            'from': config.PRODUCT_COLLECTION,
            'localField': 'productId',
            'foreignField': '_id',
            'as': 'product'
        }},
        {'$unwind': '$product'}
    ]


def author_stats_stages() -> List[Dict[str, Any]]:
    """Attach review count and mean rating across all of the author's reviews"""
    return [
        {'$lookup': {
            'from': config.REVIEW_COLLECTION,
            'let': {'username': '$author.username'},
            'pipeline': [
                {'$match': {'$expr': {'$eq': ['$author.username', '$$username']}}},
                {'$group': {
                    '_id': None,
                    'totalReviews': {'$sum': 1},
                    'averageRating': {'$avg': '$rating'}
                }}
            ],
            'as': 'authorStats'
        }},
        {'$unwind': {'path': '$authorStats', 'preserveNullAndEmptyArrays': True}}
    ]


def review_row_projection(author_stats: bool = False) -> Dict[str, Any]:
    projection = {
        '_id': 0,
        'reviewId': '$_id',
        'username': '$author.username',
        'avatar': {'$ifNull': ['$author.avatar', config.DEFAULT_AVATAR_URL]},
        'rating': '$rating',
        'content': '$content',
        'createdAt': '$createdAt',
        'platform': '$platform',
        'productId': '$productId',
        'likeCount': {'$ifNull': ['$likeCount', 0]},
        'tags': {'$ifNull': ['$tags', []]},
        'images': {'$ifNull': ['$images', []]},
        'sentiment': {'$ifNull': ['$sentiment', 'positive']},
        'productName': '$product.name',
        'productBrand': '$product.brand',
        'productAverageRating': '$product.averageRating',
        'productReviewCount': '$product.reviewCount'
    }
    if author_stats:
        projection['userTotalReviews'] = {'$ifNull': ['$authorStats.totalReviews', 0]}
        projection['userAverageRating'] = {'$ifNull': ['$authorStats.averageRating', 0]}
    return projection


def build_review_pipeline(review_filter: ReviewFilter,
                          author_stats: bool = False) -> Tuple[List[Dict], List[Dict]]:
    """Split a joined review query into (match pipeline, enrichment tail).

    The match pipeline decides which rows exist and is what gets counted.
    The tail only reshapes rows and runs after sort and pagination.
    """
    pipeline: List[Dict[str, Any]] = []
    pre_join = review_filter.pre_join_query()
    if pre_join:
        pipeline.append({'$match': pre_join})
    pipeline.extend(product_join_stages())
    post_join = review_filter.post_join_query()
    if post_join:
        pipeline.append({'$match': post_join})

    tail: List[Dict[str, Any]] = []
    if author_stats:
        tail.extend(author_stats_stages())
    tail.append({'$project': review_row_projection(author_stats)})
    return pipeline, tail

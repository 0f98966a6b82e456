"""
Unit tests for the filter builders and review pipeline composition
"""
from datetime import datetime, timezone

import pytest

from reviewhub.shared.config import config
from reviewhub.shared.filters import (
    DateBucket,
    EqualsClause,
    Predicate,
    ProductFilterBuilder,
    RangeClause,
    ReviewFilterBuilder,
    ReviewSearchRequest,
    SetMembershipClause,
    SubstringClause,
    build_review_pipeline,
    resolve_date_bucket,
    resolve_platform
)

NOW = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)


class TestPredicate:
    """Clause rendering and conjunction"""

    def test_empty_predicate_is_unconstrained(self):
        """No clauses means an empty query, never a match-nothing query"""
        assert Predicate().to_query() == {}
        assert not Predicate()

    def test_clauses_on_different_fields_merge(self):
        predicate = Predicate((
            EqualsClause('productId', 'p1'),
            SetMembershipClause('platform', ('coupang.com',)),
        ))

        assert predicate.to_query() == {
            'productId': 'p1',
            'platform': {'$in': ['coupang.com']}
        }

    def test_clauses_on_same_field_use_and(self):
        predicate = Predicate((
            RangeClause('createdAt', lower=1),
            RangeClause('createdAt', upper=5),
        ))

        assert predicate.to_query() == {'$and': [
            {'createdAt': {'$gte': 1}},
            {'createdAt': {'$lte': 5}},
        ]}

    def test_substring_terms_are_literal(self):
        """Regex metacharacters in user input do not change the match"""
        clause = SubstringClause('content', ('1+1', 'a.b'))

        assert clause.to_query() == {'content': {'$regex': r'1\+1|a\.b', '$options': 'i'}}

    def test_prefixed_addresses_joined_document(self):
        predicate = Predicate((SetMembershipClause('brand', ('A',)),)).prefixed('product')

        assert predicate.to_query() == {'product.brand': {'$in': ['A']}}


class TestProductFilterBuilder:
    """Product search filters"""

    def test_no_input_still_requires_brand(self):
        assert ProductFilterBuilder().build().to_query() == {'brand': {'$exists': True}}

    def test_name_and_mapped_platform(self):
        """Storefront label is mapped to its domain before matching"""
        query = ProductFilterBuilder().name_contains('세럼').platform_label('쿠팡').build().to_query()

        assert query == {
            'brand': {'$exists': True},
            'name': {'$regex': '세럼', '$options': 'i'},
            'platform': {'$regex': r'coupang\.com', '$options': 'i'}
        }

    @pytest.mark.parametrize('label,domain', [
        ('쿠팡', 'coupang.com'),
        ('네이버', 'brand.naver.com'),
        ('올리브영', 'oliveyoung.co.kr'),
        ('oliveyoung.co.kr', 'oliveyoung.co.kr'),
    ])
    def test_platform_lookup(self, label, domain):
        assert resolve_platform(label) == domain

    def test_unknown_platform_is_ignored(self):
        query = ProductFilterBuilder().platform_label('11번가').build().to_query()

        assert 'platform' not in query
        assert resolve_platform('11번가') is None

    def test_blank_name_adds_no_clause(self):
        query = ProductFilterBuilder().name_contains('  ').build().to_query()

        assert query == {'brand': {'$exists': True}}

    def test_exact_name(self):
        query = ProductFilterBuilder().name_equals('수분 세럼 50ml').build().to_query()

        assert query == {'brand': {'$exists': True}, 'name': '수분 세럼 50ml'}


class TestReviewFilterBuilder:
    """Review search filters"""

    def test_empty_request_has_no_constraints(self):
        review_filter = ReviewFilterBuilder.from_request(ReviewSearchRequest.from_body({}), now=NOW)

        assert review_filter.pre_join_query() == {}
        assert review_filter.post_join_query() == {}

    def test_empty_lists_have_no_constraints(self):
        body = {'keywords': [], 'platforms': [], 'ratings': [], 'authors': [],
                'brands': [], 'productNames': [], 'createdDate': ''}
        review_filter = ReviewFilterBuilder.from_request(ReviewSearchRequest.from_body(body), now=NOW)

        assert review_filter.pre_join_query() == {}
        assert review_filter.post_join_query() == {}

    def test_keywords_match_any(self):
        query = ReviewFilterBuilder(NOW).keywords(['촉촉', '향']).build().pre_join_query()

        assert query == {'content': {'$regex': '촉촉|향', '$options': 'i'}}

    @pytest.mark.parametrize('rating,stored', [(1, 0.2), (2, 0.4), (3, 0.6), (4, 0.8), (5, 1.0)])
    def test_rating_converted_to_storage_scale(self, rating, stored):
        query = ReviewFilterBuilder(NOW).ratings([rating]).build().pre_join_query()

        assert query == {'rating': {'$in': [stored]}}
        assert query['rating']['$in'][0] == rating / 5

    def test_rating_strings_and_junk(self):
        query = ReviewFilterBuilder(NOW).ratings(['3', 'abc', 9, None]).build().pre_join_query()

        assert query == {'rating': {'$in': [0.6]}}

    def test_only_invalid_ratings_means_no_filter(self):
        query = ReviewFilterBuilder(NOW).ratings(['abc', 0, 6]).build().pre_join_query()

        assert query == {}

    def test_platforms_exact_membership(self):
        query = ReviewFilterBuilder(NOW).platforms(['쿠팡', 'coupang.com', 'brand.naver.com']).build().pre_join_query()

        assert query == {'platform': {'$in': ['coupang.com', 'brand.naver.com']}}

    def test_authors_exact_membership(self):
        query = ReviewFilterBuilder(NOW).authors(['alice', 'bob']).build().pre_join_query()

        assert query == {'author.username': {'$in': ['alice', 'bob']}}

    @pytest.mark.parametrize('label,lower', [
        ('within 24h', datetime(2024, 3, 30, 12, 0, tzinfo=timezone.utc)),
        ('within 1 week', datetime(2024, 3, 24, 12, 0, tzinfo=timezone.utc)),
        ('within 1 month', datetime(2024, 2, 29, 12, 0, tzinfo=timezone.utc)),
        ('24시간 이내', datetime(2024, 3, 30, 12, 0, tzinfo=timezone.utc)),
        ('1주일 이내', datetime(2024, 3, 24, 12, 0, tzinfo=timezone.utc)),
        ('1개월 이내', datetime(2024, 2, 29, 12, 0, tzinfo=timezone.utc)),
    ])
    def test_created_date_bucket_lower_bound(self, label, lower):
        """Buckets set a lower bound only"""
        query = ReviewFilterBuilder(NOW).created_within(label).build().pre_join_query()

        assert query == {'createdAt': {'$gte': lower}}

    def test_unknown_date_bucket_is_ignored(self):
        query = ReviewFilterBuilder(NOW).created_within('within 1 year').build().pre_join_query()

        assert query == {}
        assert resolve_date_bucket('within 1 year') is None
        assert resolve_date_bucket('within 1 week') is DateBucket.LAST_WEEK

    def test_brand_and_product_name_apply_after_join(self):
        review_filter = ReviewFilterBuilder(NOW).brands(['라운드랩']).product_names(['독도 토너']).build()

        assert review_filter.pre_join_query() == {}
        assert review_filter.post_join_query() == {
            'product.brand': {'$in': ['라운드랩']},
            'product.name': {'$in': ['독도 토너']}
        }

    def test_scalar_inputs_are_accepted(self):
        request = ReviewSearchRequest.from_body({'keywords': '보습', 'authors': 'alice'})

        assert request.keywords == ['보습']
        assert request.authors == ['alice']

    @pytest.mark.parametrize('key', ['keywords', 'platforms', 'authors', 'brands', 'productNames'])
    @pytest.mark.parametrize('junk', [
        [True], [False], [None], [['coupang.com']], [{'a': 1}], {'a': 1}, True, [[], {}],
    ])
    def test_non_text_values_add_no_clause(self, key, junk):
        """Lists, objects and booleans in a text dimension are ignored"""
        review_filter = ReviewFilterBuilder.from_request(ReviewSearchRequest.from_body({key: junk}), now=NOW)

        assert review_filter.pre_join_query() == {}
        assert review_filter.post_join_query() == {}

    def test_numbers_in_text_dimensions_match_as_text(self):
        body = {'keywords': [5, ' 5 ', 1.5], 'authors': [42, {'id': 1}], 'platforms': [7, ['x']]}
        query = ReviewFilterBuilder.from_request(ReviewSearchRequest.from_body(body), now=NOW).pre_join_query()

        assert query == {
            'content': {'$regex': r'5|1\.5', '$options': 'i'},
            'platform': {'$in': ['7']},
            'author.username': {'$in': ['42']}
        }

    def test_junk_mixed_with_valid_values(self):
        body = {'platforms': [['coupang.com'], '쿠팡', {'a': 1}], 'ratings': [True, [5], 4]}
        query = ReviewFilterBuilder.from_request(ReviewSearchRequest.from_body(body), now=NOW).pre_join_query()

        assert query == {
            'platform': {'$in': ['coupang.com']},
            'rating': {'$in': [0.8]}
        }

    @pytest.mark.parametrize('body', [
        {'createdDate': ['within 24h']},
        {'createdDate': 5},
        {'ratings': {'min': 1}},
        {'keywords': None, 'ratings': None},
    ])
    def test_malformed_scalar_dimensions(self, body):
        review_filter = ReviewFilterBuilder.from_request(ReviewSearchRequest.from_body(body), now=NOW)

        assert review_filter.pre_join_query() == {}


class TestReviewPipeline:
    """Join and enrichment stage composition"""

    def test_unfiltered_pipeline_starts_with_join(self):
        pipeline, tail = build_review_pipeline(ReviewFilterBuilder(NOW).build())

        assert pipeline[0] == {'$lookup': {
            'from': 'Product',
            'localField': 'productId',
            'foreignField': '_id',
            'as': 'product'
        }}
        assert pipeline[1] == {'$unwind': '$product'}
        assert len(pipeline) == 2
        assert list(tail[-1].keys()) == ['$project']

    def test_match_join_match_order(self):
        review_filter = ReviewFilterBuilder(NOW).authors(['alice']).brands(['A']).build()
        pipeline, _ = build_review_pipeline(review_filter)

        stages = [list(stage.keys())[0] for stage in pipeline]
        assert stages == ['$match', '$lookup', '$unwind', '$match']
        assert pipeline[0]['$match'] == {'author.username': {'$in': ['alice']}}
        assert pipeline[3]['$match'] == {'product.brand': {'$in': ['A']}}

    def test_projection_flattens_product_fields(self):
        _, tail = build_review_pipeline(ReviewFilterBuilder(NOW).build())
        projection = tail[-1]['$project']

        assert projection['productName'] == '$product.name'
        assert projection['productAverageRating'] == '$product.averageRating'
        assert projection['productReviewCount'] == '$product.reviewCount'
        assert projection['likeCount'] == {'$ifNull': ['$likeCount', 0]}
        assert projection['avatar'] == {'$ifNull': ['$author.avatar', config.DEFAULT_AVATAR_URL]}
        assert projection['sentiment'] == {'$ifNull': ['$sentiment', 'positive']}
        assert 'userTotalReviews' not in projection

    def test_author_stats_default_to_zero(self):
        _, tail = build_review_pipeline(ReviewFilterBuilder(NOW).build(), author_stats=True)
        stages = [list(stage.keys())[0] for stage in tail]
        projection = tail[-1]['$project']

        assert stages == ['$lookup', '$unwind', '$project']
        assert tail[0]['$lookup']['from'] == 'Review'
        assert tail[1]['$unwind']['preserveNullAndEmptyArrays'] is True
        assert projection['userTotalReviews'] == {'$ifNull': ['$authorStats.totalReviews', 0]}
        assert projection['userAverageRating'] == {'$ifNull': ['$authorStats.averageRating', 0]}

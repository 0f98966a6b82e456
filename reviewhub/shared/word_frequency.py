"""
Word frequencies over a product's reviews, for the word cloud view.

Reviews are read in fixed-size batches and each batch is folded into the
running counts, so the result does not depend on the batch size.
"""
import logging
import re
from collections import Counter
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from .config import config

logger = logging.getLogger(__name__)

# Unicode aware: Hangul and other letters are kept, punctuation is removed
_NON_WORD = re.compile(r'[^\w\s]')


def normalize_token(token: str) -> str:
    return _NON_WORD.sub('', token.lower())


def tokenize(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return text.split()


def count_tokens(reviews: Iterable[Dict[str, Any]], drop_empty: bool = False) -> Counter:
    """Token counts for one batch of review documents"""
    counts = Counter()
    for review in reviews:
        for token in tokenize(review.get('content')):
            word = normalize_token(token)
            if drop_empty and not word:
                continue
            counts[word] += 1
    return counts


async def iter_review_batches(store, predicate: Dict[str, Any],
                              batch_size: int) -> AsyncIterator[List[Dict[str, Any]]]:
    """Yield batches until one comes back shorter than batch_size"""
    skip = 0
    while True:
        batch = await store.find_reviews(
            predicate,
            skip=skip,
            limit=batch_size,
            projection={'content': 1},
            sort=[('_id', 1)]
        )
        if batch:
            yield batch
        if len(batch) < batch_size:
            return
        skip += batch_size


def to_word_cloud(counts: Counter) -> List[Dict[str, Any]]:
    return [{'text': word, 'value': value} for word, value in counts.items()]


async def summarize_word_frequencies(store, product_id: str,
                                     batch_size: Optional[int] = None,
                                     drop_empty: Optional[bool] = None) -> List[Dict[str, Any]]:
    batch_size = batch_size or config.WORD_CLOUD_BATCH_SIZE
    if drop_empty is None:
        drop_empty = config.WORD_CLOUD_DROP_EMPTY_TOKENS

    counts = Counter()
    batches = 0
    async for batch in iter_review_batches(store, {'productId': product_id}, batch_size):
        counts = counts + count_tokens(batch, drop_empty)
        batches += 1

    logger.info(f"Word cloud for {product_id}: {len(counts)} words from {batches} batches")
    return to_word_cloud(counts)

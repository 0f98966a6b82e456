"""
Product records and joined review rows as read from the store.

Ratings are kept on a 0-1 scale in the store and shown on a 1-5 scale.
to_storage_rating and to_display_rating are the only conversions between
the two, used for every rating crossing the API boundary.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

RATING_SCALE = 5


def to_storage_rating(rating: float) -> float:
    """1-5 user rating to the 0-1 stored value"""
    return rating / RATING_SCALE


def to_display_rating(rating: Optional[float]) -> Optional[float]:
    """0-1 stored value to the 1-5 user rating"""
    if rating is None:
        return None
    return round(rating * RATING_SCALE, 2)


def isoformat(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass
class Evaluation:
    name: str
    value: str

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'Evaluation':
        return cls(name=doc.get('name', ''), value=doc.get('value', ''))

    def to_dict(self) -> Dict[str, str]:
        return {'name': self.name, 'value': self.value}


@dataclass
class Product:
    """A scraped listing. reviewCount and averageRating are caches owned by
    ingestion and may lag behind the Review collection."""
    id: str
    name: str
    platform: str
    brand: Optional[str] = None
    price: Optional[float] = None
    review_count: int = 0
    average_rating: Optional[float] = None
    breadcrumbs: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    evaluations: List[Evaluation] = field(default_factory=list)

    @property
    def external_sku(self) -> str:
        """SKU part of the composite ``platform:sku`` identifier"""
        return self.id.split(':', 1)[-1]

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'Product':
        return cls(
            id=str(doc.get('_id')),
            name=doc.get('name', ''),
            platform=doc.get('platform', ''),
            brand=doc.get('brand'),
            price=doc.get('price'),
            review_count=doc.get('reviewCount') or 0,
            average_rating=doc.get('averageRating'),
            breadcrumbs=list(doc.get('breadcrumbs') or []),
            images=list(doc.get('images') or []),
            evaluations=[Evaluation.from_document(e) for e in doc.get('evaluations') or []]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            '_id': self.id,
            'name': self.name,
            'platform': self.platform,
            'brand': self.brand,
            'price': self.price,
            'reviewCount': self.review_count,
            'averageRating': to_display_rating(self.average_rating),
            'breadCrumb': self.breadcrumbs,
            'images': self.images,
            'evaluations': [e.to_dict() for e in self.evaluations]
        }


# Flattened join rows produced by the review pipelines
RATING_ROW_FIELDS = ('rating', 'productAverageRating', 'userAverageRating')


def format_review_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Render a joined review row for the API: display ratings, ISO dates."""
    formatted = dict(row)
    document_id = formatted.pop('_id', '')
    formatted['reviewId'] = str(formatted.get('reviewId', document_id))
    for key in RATING_ROW_FIELDS:
        if key in formatted:
            formatted[key] = to_display_rating(formatted[key])
    formatted['createdAt'] = isoformat(formatted.get('createdAt'))
    return formatted

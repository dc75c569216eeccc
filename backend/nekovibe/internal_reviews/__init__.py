"""Internal (non-public) reviews uploaded as CSV exports."""

from .chat import InternalReviewsChat
from .csv_parser import CsvFormatError, parse_internal_reviews_csv, review_hash
from .service import InternalReviewService

__all__ = [
    "CsvFormatError",
    "InternalReviewService",
    "InternalReviewsChat",
    "parse_internal_reviews_csv",
    "review_hash",
]

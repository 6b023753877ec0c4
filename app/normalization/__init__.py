"""
app/normalization package marker.
"""

from app.normalization.row_normalizer import RawRow, RowNormalizer, iter_text_lines, normalize_header

__all__ = [
    "RawRow",
    "RowNormalizer",
    "iter_text_lines",
    "normalize_header",
]

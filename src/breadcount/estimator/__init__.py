"""Vision-model bread counting."""

from .counting import COUNT_INSTRUCTION, BreadCountEstimator, parse_count, strip_data_uri

__all__ = [
    "COUNT_INSTRUCTION",
    "BreadCountEstimator",
    "parse_count",
    "strip_data_uri",
]

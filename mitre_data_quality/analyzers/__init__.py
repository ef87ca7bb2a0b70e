"""Taxonomy building and data quality scoring functions."""

from mitre_data_quality.analyzers.quality_dimensions import (
    calculate_consistency,
    calculate_data_field_completeness,
    calculate_device_completeness,
    calculate_next_execution,
    calculate_quality_score,
    calculate_retention,
    calculate_timeliness,
)
from mitre_data_quality.analyzers.taxonomy_builder import (
    build_matrix,
    convert_to_techniques,
    link_detection_strategies_to_techniques,
)

__all__ = [
    "build_matrix",
    "convert_to_techniques",
    "link_detection_strategies_to_techniques",
    "calculate_consistency",
    "calculate_data_field_completeness",
    "calculate_device_completeness",
    "calculate_next_execution",
    "calculate_quality_score",
    "calculate_retention",
    "calculate_timeliness",
]

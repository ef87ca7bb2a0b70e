"""STIX bundle parsers."""

from mitre_data_quality.parsers.stix_bundle_parser import (
    BundleObjects,
    load_bundle,
    parse_bundle,
)

__all__ = ["BundleObjects", "load_bundle", "parse_bundle"]

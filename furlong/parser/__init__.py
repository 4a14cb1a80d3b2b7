"""DRF file parsing: validation, field decoding and race assembly."""

from furlong.parser.drf import parse_drf_file
from furlong.parser.quality import audit_parsed_file
from furlong.parser.schema import get_schema, validate_anchor_fields

__all__ = ["parse_drf_file", "audit_parsed_file", "get_schema", "validate_anchor_fields"]

"""Lowest-level CLDF utilities.

Dependency direction rules:
- cldf.core must not import cldf.models, cldf.protocol or cldf.clid
"""

from cldf.core.config import DEFAULT_CONFIG, LENIENT, STRICT, CodecConfig
from cldf.core.hash import digest_hex, is_hex_digest
from cldf.core.json_canon import canonical_json_bytes, parse_json_bytes
from cldf.core.schema import SchemaIssue, validate_schema
from cldf.core.time import format_timestamp, parse_timestamp

__all__ = [
	"DEFAULT_CONFIG",
	"LENIENT",
	"STRICT",
	"CodecConfig",
	"SchemaIssue",
	"canonical_json_bytes",
	"digest_hex",
	"format_timestamp",
	"is_hex_digest",
	"parse_json_bytes",
	"parse_timestamp",
	"validate_schema",
]

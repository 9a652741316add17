"""Analysis output parsing."""

from __future__ import annotations

from visitwise.parsing.response_parser import extract_payload, parse

__all__ = ["extract_payload", "parse"]

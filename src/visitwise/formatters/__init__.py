"""Output formatters."""

from __future__ import annotations

from visitwise.formatters.summary import SECTION_HEADINGS, render_summary

__all__ = ["SECTION_HEADINGS", "render_summary"]

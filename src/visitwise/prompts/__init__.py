"""Instruction templates for the analysis job."""

from __future__ import annotations

from visitwise.prompts.visit_analysis import build_instructions

__all__ = ["build_instructions"]

# ai/prompts/__init__.py
from ai.prompts.report_system import ADVISER_SYSTEM, BASE_SYSTEM, CLIENT_SYSTEM
from ai.prompts.report_instructions import (
    ADVISER_INSTRUCTIONS,
    ANALYSIS_RULES,
    CLIENT_INSTRUCTIONS,
)
from ai.prompts.segment_summary import SEGMENT_SUMMARY_PROMPT, SEGMENT_SUMMARY_SYSTEM

__all__ = [
    "ADVISER_SYSTEM",
    "BASE_SYSTEM",
    "CLIENT_SYSTEM",
    "ADVISER_INSTRUCTIONS",
    "ANALYSIS_RULES",
    "CLIENT_INSTRUCTIONS",
    "SEGMENT_SUMMARY_PROMPT",
    "SEGMENT_SUMMARY_SYSTEM",
]

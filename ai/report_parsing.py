# ai/report_parsing.py
"""
Recovers structured JSON from free-text model output.

Each step is a plain str -> str rewrite; the chain tries json.loads
after every step and stops at the first success. When every step
fails the raw text is kept under a parse_error marker.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable

logger = logging.getLogger(__name__)

# Hebrew abbreviations written with a plain double quote as gershayim
HEBREW_ABBREVIATIONS = (
    'תב"ע',
    'ח"כ',
    'מ"מ',
    'ר"מ',
    'מ"ד',
    'ת"א',
    'י"ש',
    'ע"י',
    'ב"כ',
    'נדל"ן',
)

SUMMARY_ARRAY_FIELDS = ("key_topics", "decisions", "client_concerns", "advisor_guidance")

_FENCED = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_DOUBLE_INNER = re.compile(r':\s*"([^"\n]*)"([^",\]\}\n]*)"([^",\]\}\n]*?)"')
_KEY_VALUE_LINE = re.compile(r'^(\s*"[^"\n]+"\s*:\s*")(.*)("\s*,?\s*)$')
_ARRAY_ITEM_LINE = re.compile(r'^(\s*")(.*)("\s*,?\s*)$')
_UNESCAPED_QUOTE = re.compile(r'(?<!\\)"')


def try_parse(text: str) -> Any | None:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None


def strip_fences(text: str) -> str:
    m = _FENCED.search(text)
    if m:
        return m.group(1)
    return re.sub(r"```\s*$", "", re.sub(r"^\s*```(?:json)?\s*", "", text)).strip()


def escape_abbreviation_quotes(text: str) -> str:
    for abbr in HEBREW_ABBREVIATIONS:
        text = text.replace(abbr, abbr.replace('"', '\\"'))
    return text


def _escape_line(line: str) -> str:
    for pattern in (_KEY_VALUE_LINE, _ARRAY_ITEM_LINE):
        m = pattern.match(line)
        if m:
            head, body, tail = m.groups()
            return head + _UNESCAPED_QUOTE.sub('\\\\"', body) + tail
    return line


def escape_inner_quotes(text: str) -> str:
    """
    Escapes stray quotes inside string values, one line at a time.
    Only works on one-value-per-line output, which is what models emit.
    """
    return "\n".join(_escape_line(line) for line in text.split("\n"))


def repair_structure(text: str) -> str:
    text = _TRAILING_COMMA.sub(r"\1", text)
    return _DOUBLE_INNER.sub(lambda m: f': "{m.group(1)}\\"{m.group(2)}\\"{m.group(3)}"', text)


REPORT_REPAIRS: tuple[Callable[[str], str], ...] = (
    strip_fences,
    escape_abbreviation_quotes,
    escape_inner_quotes,
    repair_structure,
)


def recover_json(raw: str, repairs=REPORT_REPAIRS) -> dict | None:
    """Applies repairs cumulatively until the text parses to an object."""
    parsed = try_parse(raw)
    if isinstance(parsed, dict):
        return parsed

    text = raw
    for step in repairs:
        text = step(text)
        parsed = try_parse(text)
        if isinstance(parsed, dict):
            logger.info("Recovered JSON after %s", step.__name__)
            return parsed

    return None


def parse_report_json(raw: str) -> dict:
    """Report content as a dict, or the raw text under a parse_error marker."""
    parsed = recover_json(raw or "")
    if parsed is not None:
        return parsed

    logger.error("All JSON recovery attempts failed (%d chars)", len(raw or ""))
    return {"raw_content": raw, "parse_error": True}


def extract_array_field(raw: str, field: str) -> list[str]:
    m = re.search(rf'"{re.escape(field)}"\s*:\s*\[(.*?)\]', raw, re.DOTALL)
    if not m:
        return []
    return [item.strip() for item in re.findall(r'"([^"]*)"', m.group(1)) if item.strip()]


def parse_segment_summary(raw: str) -> dict:
    """
    Per-segment summaries never fail: when the text will not parse,
    array fields are pulled out by regex and the rest becomes the summary.
    """
    parsed = recover_json(raw or "", repairs=(strip_fences, repair_structure))
    if parsed is not None:
        return parsed

    logger.warning("Segment summary JSON unparseable, using regex fallback")
    summary = {field: extract_array_field(raw or "", field) for field in SUMMARY_ARRAY_FIELDS}
    summary["summary"] = re.sub(r'[{}"\[\]]', "", raw or "").strip()[:200]
    return summary

# ai/prompt_builder.py
"""
Assembles report prompts from session context, adviser notes,
language hints and either the transcript or aggregated segment summaries.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ai.prompts.report_instructions import ADVISER_INSTRUCTIONS, ANALYSIS_RULES, CLIENT_INSTRUCTIONS
from ai.prompts.report_system import ADVISER_SYSTEM, BASE_SYSTEM, CLIENT_SYSTEM
from ai.prompts.segment_summary import SEGMENT_SUMMARY_PROMPT

SUMMARY_FIELDS = ("key_topics", "decisions", "client_concerns", "advisor_guidance")


def normalize_report_type(report_type: str) -> str:
    """'advisor' is accepted as a spelling of 'adviser'."""
    t = (report_type or "").strip().lower()
    return "adviser" if t == "advisor" else t


@dataclass
class ReportContext:
    client_name: str | None = None
    client_email: str | None = None
    business_domain: str | None = None
    adviser_name: str | None = None
    adviser_email: str | None = None
    session_title: str | None = None
    session_date: datetime | None = None
    duration_seconds: int | None = None
    file_name: str | None = None
    language: str | None = None
    notes: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_session(cls, session, notes: str | None = None, language: str | None = None) -> "ReportContext":
        ctx = dict(session.context or {})
        return cls(
            client_name=ctx.pop("client_name", None),
            client_email=ctx.pop("client_email", None),
            business_domain=ctx.pop("business_domain", None),
            adviser_name=ctx.pop("adviser_name", None),
            adviser_email=ctx.pop("adviser_email", None),
            session_title=session.title,
            session_date=session.created_at,
            duration_seconds=session.duration,
            file_name=session.file_name,
            language=language or session.language,
            notes=notes,
            extra=ctx,
        )


def _format_duration(seconds: int | None) -> str:
    if not seconds:
        return "Unknown"
    return f"{seconds // 60}:{seconds % 60:02d}"


def _session_block(ctx: ReportContext) -> str:
    date = ctx.session_date.strftime("%d/%m/%Y") if ctx.session_date else "Unknown"
    return (
        "Session Information:\n"
        f"- Meeting Date: {date}\n"
        f"- Client Name: {ctx.client_name or 'Not provided'}\n"
        f"- Client Email: {ctx.client_email or 'Not provided'}\n"
        f"- Business Domain: {ctx.business_domain or 'Not specified'}\n"
        f"- Adviser Name: {ctx.adviser_name or 'Not provided'}\n"
        f"- Adviser Email: {ctx.adviser_email or 'Not provided'}\n"
        f"- Session Title: {ctx.session_title or 'Untitled'}\n"
        f"- Meeting Duration: {_format_duration(ctx.duration_seconds)}\n"
        f"- Audio File: {ctx.file_name or 'Unknown'}"
    )


def _language_block(ctx: ReportContext) -> str:
    if ctx.notes and ctx.notes.strip():
        return (
            f"SPECIAL INSTRUCTIONS FROM ADVISER:\n{ctx.notes.strip()}\n\n"
            "Take these instructions into account. Unless they ask for a different "
            "language, write ALL content in the language of the conversation."
        )

    if ctx.language:
        detected = f"DETECTED TRANSCRIPT LANGUAGE: {ctx.language.upper()}"
    else:
        detected = "Determine the language from the conversation itself, not the session metadata."

    return (
        "LANGUAGE REQUIREMENT:\n"
        f"- {detected}\n"
        "- JSON field names stay in English; all content values match the transcript language."
    )


def build_system_prompt(report_type: str) -> str:
    t = normalize_report_type(report_type)
    if t == "adviser":
        return ADVISER_SYSTEM
    if t == "client":
        return CLIENT_SYSTEM
    return BASE_SYSTEM


def build_report_prompt(transcript: str, report_type: str, ctx: ReportContext) -> str:
    """User prompt for the single-call path: full transcript plus type instructions."""
    t = normalize_report_type(report_type)
    sections: list[str] = [
        f"Analyze the following transcript and generate a comprehensive {t} report.",
        _session_block(ctx),
        _language_block(ctx),
        f"Transcript:\n{transcript}",
        ANALYSIS_RULES,
    ]

    if t == "adviser":
        sections.append(ADVISER_INSTRUCTIONS)
    elif t == "client":
        sections.append(CLIENT_INSTRUCTIONS)

    return "\n\n".join(sections)


def build_segment_summary_prompt(segment: str) -> str:
    return SEGMENT_SUMMARY_PROMPT.format(segment=segment)


def build_synthesis_prompt(aggregated: dict, report_type: str, ctx: ReportContext) -> str:
    """User prompt for the final call of the chunked path, built from merged segment summaries."""
    t = normalize_report_type(report_type)
    sections: list[str] = [
        f"Based on the following aggregated insights from a business consultation "
        f"meeting, generate a comprehensive {t} report.",
        _session_block(ctx),
    ]

    headings = {
        "key_topics": "KEY TOPICS DISCUSSED",
        "decisions": "DECISIONS MADE",
        "client_concerns": "CLIENT CONCERNS",
        "advisor_guidance": "ADVISER GUIDANCE",
    }
    insights = ["AGGREGATED INSIGHTS:"]
    for key in SUMMARY_FIELDS:
        items = aggregated.get(key) or []
        if items:
            insights.append(f"{headings[key]}:\n" + "\n".join(f"- {i}" for i in items))
    summaries = aggregated.get("summaries") or []
    if summaries:
        insights.append("SEGMENT SUMMARIES:\n" + "\n".join(f"- {s}" for s in summaries))
    sections.append("\n\n".join(insights))

    sections.append(_language_block(ctx))

    if t == "adviser":
        sections.append(ADVISER_INSTRUCTIONS)
    elif t == "client":
        sections.append(CLIENT_INSTRUCTIONS)

    sections.append(f"Generate the structured {t} report from these insights. Respond with JSON only.")
    return "\n\n".join(sections)

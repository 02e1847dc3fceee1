# ai/prompts/segment_summary.py
"""Prompts for the per-segment pass of long-transcript report generation."""

SEGMENT_SUMMARY_SYSTEM = (
    "You are an expert business consultation analyst. "
    "Provide structured summaries in JSON format."
)

SEGMENT_SUMMARY_PROMPT = """Analyze this portion of a business consultation meeting and extract key insights.

TRANSCRIPT SEGMENT:
{segment}

Focus on:
1. Key business topics discussed
2. Important decisions or recommendations
3. Client concerns or questions
4. Adviser guidance provided

Respond in JSON format:
{{
  "key_topics": ["topic1", "topic2"],
  "decisions": ["decision1", "decision2"],
  "client_concerns": ["concern1", "concern2"],
  "advisor_guidance": ["guidance1", "guidance2"],
  "summary": "Brief overall summary"
}}"""

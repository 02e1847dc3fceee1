# ai/prompts/report_instructions.py
"""Type-specific instructions appended to the report user prompt."""

ANALYSIS_RULES = """IMPORTANT ANALYSIS INSTRUCTIONS:
- Respond ONLY with valid JSON. No markdown fences, no text outside the JSON object.
- Use the session information above. Never emit [Insert X] placeholders.
- Identify speakers from context: names mentioned, who asks and who answers, changes in topic.
- If speakers cannot be told apart, do your best and acknowledge the limitation.
- Note whether this is a monologue, a dialogue or a multi-participant meeting.
"""

ADVISER_INSTRUCTIONS = """Generate a structured ADVISER report. It evaluates the adviser's
performance so they can improve.

1. TOPICS: 3-7 main topics, each with sub_topics and an estimated time_percentage.
2. TOPICS_COVERED: percentage of time on introducing the adviser, introducing the
   organization, opening/rapport, collecting information, and actual advisory content.
3. CLIENT_READINESS_SCORE (0-100), 25 points each for: business maturity and clarity
   of needs; engagement; receptiveness to advice; interest in continuing.
4. QUALITY METRICS, each with score (0-5), description and a supporting_quote
   taken verbatim from the transcript:
   - listening: asking good questions, building trust, drawing out challenges and needs
   - clarity: reflecting and framing without judgement, turning insight into practical direction
   - continuation: describing relevant services in the client's own words and motivating next steps
5. THINGS_TO_PRESERVE: 3-5 strengths with concrete evidence.
6. NEEDS_IMPROVEMENT: 3-5 areas with constructive suggestions.

Base every score on evidence from the conversation, not assumptions."""

CLIENT_INSTRUCTIONS = """Generate a CLIENT report. It is sent to the client, so keep the tone
positive and helpful.

- general_summary: overview of the conversation and the client's business.
- target_summary: short actionable synthesis of key insights and next steps, no quotes.
- key_insights: 3-5 items. category must be exactly one of
  "what we learned about the clients business", "decisions made",
  "opportunities/risks or concerns that came up". Include supporting_quotes.
- action_items: only tasks explicitly discussed or agreed. owner is "client",
  "adviser" or a named entity. deadline is null when not stated.
  status is "open", "in progress" or "completed".

Extract strictly from the transcript. Use null for missing values and [] when
nothing was found."""

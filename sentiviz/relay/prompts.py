"""Prompt templates for sentiment and keyword extraction."""

from typing import Dict, List

SYSTEM_PROMPT = "You output only JSON following the requested schema."

ANALYSIS_PROMPT = """You are a sentiment and keyword analysis service.

Analyze the following text and return STRICT JSON with this exact schema:
{{
"sentimentScore": number between -1 and 1,
"keywords": string[]
}}

Text:
\"\"\"{text}\"\"\""""


def build_analysis_messages(text: str) -> List[Dict[str, str]]:
    """Build the system+user chat messages for one analysis request."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": ANALYSIS_PROMPT.format(text=text)},
    ]

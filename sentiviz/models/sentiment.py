"""Sentiment result model and the coercion policy for model output."""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List

DEFAULT_SCORE = 0.0
SCORE_RANGE = (-1.0, 1.0)


@dataclass
class SentimentResult:
    """Normalized sentiment analysis of one final utterance."""
    score: float = DEFAULT_SCORE
    keywords: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """Wire shape returned by the relay endpoint."""
        return {"sentimentScore": self.score, "keywords": list(self.keywords)}


def coerce_score(value: Any) -> float:
    """Coerce a model-provided score to a finite float.

    Numbers and numeric strings are accepted. Missing values, booleans,
    other types, NaN and infinities all fall back to DEFAULT_SCORE.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_SCORE
    if isinstance(value, (int, float)):
        try:
            score = float(value)
        except OverflowError:
            return DEFAULT_SCORE
    elif isinstance(value, str):
        try:
            score = float(value.strip())
        except ValueError:
            return DEFAULT_SCORE
    else:
        return DEFAULT_SCORE
    if not math.isfinite(score):
        return DEFAULT_SCORE
    return score


def coerce_keywords(value: Any) -> List[str]:
    """Coerce a model-provided keyword list to a list of strings.

    Anything that is not a list yields an empty list. Scalar items are
    stringified in order; null and nested objects/arrays are dropped.
    """
    if not isinstance(value, list):
        return []
    keywords = []
    for item in value:
        if isinstance(item, str):
            keywords.append(item)
        elif isinstance(item, bool):
            keywords.append("true" if item else "false")
        elif isinstance(item, (int, float)):
            keywords.append(str(item))
    return keywords


def clamp_score(score: float) -> float:
    low, high = SCORE_RANGE
    return max(low, min(high, score))


def parse_sentiment_payload(payload: Any, clamp: bool = False) -> SentimentResult:
    """Turn decoded model JSON into a SentimentResult.

    Args:
        payload: Value produced by json.loads on the model answer. Values
            that are not objects are treated as an empty object.
        clamp: Clamp the score into [-1, 1]. Off by default, scores outside
            the range are passed through.

    Returns:
        SentimentResult with defaults applied field by field
    """
    if not isinstance(payload, dict):
        payload = {}

    score = coerce_score(payload.get("sentimentScore"))
    if clamp:
        score = clamp_score(score)

    return SentimentResult(
        score=score,
        keywords=coerce_keywords(payload.get("keywords")),
    )

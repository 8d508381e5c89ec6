"""Narrative summary of an aggregation result via an OpenAI-compatible API.

The summary is decoration: every failure path returns a fixed fallback
string and the numeric results are never touched.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Any

from openai import OpenAI

from social_pulse.models import AggregationResult

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
API_KEY_ENV = "OPENAI_API_KEY"
TOP_PAGES_IN_PROMPT = 5

UNCONFIGURED_TEXT = "Configure your API Key to enable AI insights."
UNAVAILABLE_TEXT = "AI Insights temporarily unavailable."
EMPTY_TEXT = "Could not generate insights."

_MARKDOWN_RE = re.compile(r"\*\*|###")


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def build_prompt(result: AggregationResult) -> str:
    """Fixed-shape analyst prompt: totals, platform breakdown, top 5 pages."""
    platform_lines = "\n".join(
        f"- {p.platform}: {_fmt(p.followers)} followers, {_fmt(p.reach)} reach"
        for p in result.platform_breakdown
    )
    page_lines = "\n".join(
        f"- {r.page_name} ({r.platform}): +{_fmt(r.follower_growth)} growth"
        for r in result.ranked_pages[:TOP_PAGES_IN_PROMPT]
    )
    return (
        "Act as a senior social media analyst. Analyze the following summary "
        "data for a monthly report.\n\n"
        f"Total Followers: {_fmt(result.total_followers)}\n"
        f"Total Reach: {_fmt(result.total_reach)}\n"
        f"Net Follower Growth: {_fmt(result.total_growth)}\n\n"
        f"Platform Breakdown:\n{platform_lines}\n\n"
        f"Top {TOP_PAGES_IN_PROMPT} Performing Pages:\n{page_lines}\n\n"
        "Provide a concise 3-bullet point executive summary highlighting:\n"
        "1. Overall health and main growth driver.\n"
        "2. Which platform is dominating in Reach vs Followers.\n"
        "3. A brief strategic recommendation for the underperforming platform.\n\n"
        "Keep it professional, encouraging, and under 150 words."
    )


def clean_response(text: str) -> str:
    """Strip bold and heading markers the model tends to emit."""
    return _MARKDOWN_RE.sub("", text)


def generate_insights(
    result: AggregationResult,
    *,
    api_key: str | None = None,
    model: str = DEFAULT_MODEL,
    client: Any | None = None,
) -> str:
    """Return a short narrative for *result*, or a fallback string.

    *api_key* defaults to ``$OPENAI_API_KEY``; *client* may be any object
    exposing ``chat.completions.create`` and bypasses key lookup.  Errors are
    logged and never retried.
    """
    if client is None:
        resolved_key = api_key or os.environ.get(API_KEY_ENV, "")
        if not resolved_key:
            logger.warning("No API key configured for insights (%s)", API_KEY_ENV)
            return UNCONFIGURED_TEXT
        client = OpenAI(api_key=resolved_key)

    try:
        response = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": build_prompt(result)}],
        )
        content = response.choices[0].message.content
    except Exception as exc:
        logger.warning("Insights request failed: %s", exc)
        return UNAVAILABLE_TEXT

    if not content or not content.strip():
        return EMPTY_TEXT
    return clean_response(content).strip()

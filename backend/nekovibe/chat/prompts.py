"""Prompt templates for the feedback chat."""

from typing import Any, Dict, Sequence

ARTICLES_SYSTEM_PROMPT = """You are Nekovibe, an expert analyst specializing in market intelligence and media analysis for Neko Health.

CRITICAL RULES:
- Answer the user's SPECIFIC question directly and precisely
- Extract ONLY the relevant information from the web search insights that directly relates to the question
- Do NOT provide generic summaries - focus on what the question is asking
- If the question asks about recent news, prioritize the "Latest 7 Days" insights
- If the question asks about overall market position, use the "Comprehensive" insights
- If the question is about a specific topic (e.g., "partnerships", "expansion", "technology"), extract only that relevant information
- Be specific, quantitative, and cite sources when possible
- If the insights don't contain information relevant to the question, say so explicitly
- Do NOT invent facts that are not in the insights"""

FEEDBACK_SYSTEM_PROMPT = """You are Nekovibe, an expert analyst summarizing what people say about Neko Health based on reviews, articles, and social posts.

CRITICAL RULES:
- Only use the provided summaries and snippets as ground truth
- Do NOT invent details that are not in the data
- Lead with quantified findings (counts, proportions, ratings) when the data supports them
- Use summaries to describe overall patterns and trends
- Use snippets as concrete examples (you can quote/paraphrase)
- If the question is very specific and there is little or no data, say that explicitly
- If the question targets one clinic, focus on that clinic first, then compare to others only if clearly present in data
- NEVER make medical claims; you are only reflecting user feedback and public mentions
- Be honest and balanced - mention both positive and negative feedback when present
- Keep the answer under 300 words"""

ARTICLES_USER_PROMPT = """Question: "{prompt}"

Context - Web Search Market Intelligence (comprehensive web analysis):
{insights}

IMPORTANT INSTRUCTIONS:
- Answer the SPECIFIC question: "{prompt}"
- Extract ONLY the information from the insights above that directly answers this question
- Do NOT provide a generic summary - focus on what the question is asking
- If the question asks about recent events/news, prioritize information from "Latest 7 Days" insights
- If the question asks about overall market position/trends, use "Comprehensive" insights
- Do NOT reference reviews, customer feedback, or any other sources
- Be specific, quantitative, and cite sources when relevant
- If the insights don't contain information relevant to this specific question, say so explicitly"""

FEEDBACK_USER_PROMPT = """Question: "{prompt}"

Context - Summaries (overall patterns):
{summaries}

Context - Web Search Market Intelligence (comprehensive web analysis):
{insights}

Context - Example Snippets (concrete examples):
{snippets}

Instructions:
- Answer the question using ONLY the summaries and snippets above
- Use summaries to describe overall patterns and trends
- Use snippets as concrete examples (you can quote/paraphrase)
- If the question targets specific clinics ({clinics}), prioritize those clinics
- Be specific and quantitative when possible
- If there's insufficient data, say so explicitly"""

ARTICLES_TEMPERATURE = 0.5
FEEDBACK_TEMPERATURE = 0.3


def format_summaries(summaries: Sequence[Dict[str, Any]]) -> str:
    return "\n\n---\n\n".join(f"{s['label']}\n{s['summary_text']}" for s in summaries)


def format_snippets(snippets: Sequence[Dict[str, Any]]) -> str:
    blocks = []
    for idx, item in enumerate(snippets, start=1):
        parts = [f"[{idx}]"]
        if item.get("clinic_id"):
            parts.append(f"Clinic: {item['clinic_id']}")
        if item.get("source_type"):
            parts.append(f"Source: {item['source_type']}")
        if item.get("rating"):
            parts.append(f"Rating: {item['rating']}/5")
        if item.get("author"):
            parts.append(f"Author: {item['author']}")
        if item.get("date"):
            parts.append(f"Date: {item['date']}")
        parts.append(f"Content: {item.get('text') or ''}")
        blocks.append("\n".join(parts))
    return "\n\n".join(blocks)


def build_articles_prompt(prompt: str, insights_text: str) -> str:
    return ARTICLES_USER_PROMPT.format(
        prompt=prompt, insights=insights_text or "No web search insights available."
    )


def build_feedback_prompt(
    prompt: str,
    summaries: Sequence[Dict[str, Any]],
    snippets: Sequence[Dict[str, Any]],
    insights_text: str,
    clinics: Sequence[str],
) -> str:
    return FEEDBACK_USER_PROMPT.format(
        prompt=prompt,
        summaries=format_summaries(summaries) or "No summaries available.",
        insights=insights_text or "No web search insights available.",
        snippets=format_snippets(snippets) or "No specific examples found.",
        clinics=", ".join(clinics) if clinics else "all clinics",
    )

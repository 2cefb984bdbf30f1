"""
Enrichment Modes

Prompt templates for the LLM enrichment pass and the per-language
response instructions appended to them.
"""

from enum import Enum
from typing import Optional


class EnrichmentMode(str, Enum):
    """Supported enrichment modes."""
    CLEAN_TRANSCRIPT = "clean-transcript"
    SUMMARIZE = "summarize"
    ACTION_ITEMS = "action-items"
    MEETING_NOTES = "meeting-notes"


MODE_PROMPTS = {
    EnrichmentMode.CLEAN_TRANSCRIPT: (
        "Clean up the following transcript. Remove filler words, fix grammar "
        "and format the text into readable paragraphs. Keep the original meaning."
    ),
    EnrichmentMode.SUMMARIZE: (
        "Summarize the following text concisely. Keep the most important points."
    ),
    EnrichmentMode.ACTION_ITEMS: (
        "Extract all tasks and action items from the text as a list."
    ),
    EnrichmentMode.MEETING_NOTES: (
        "Format the text as structured meeting notes with headings, participants "
        "if mentioned, agenda items and decisions."
    ),
}

LANGUAGE_INSTRUCTIONS = {
    "de": "Antworte auf Deutsch.",
    "en": "Respond in English.",
    "fr": "Réponds en français.",
    "es": "Responde en español.",
    "it": "Rispondi in italiano.",
    "pt": "Responda em português.",
    "nl": "Antwoord in het Nederlands.",
    "pl": "Odpowiedz po polsku.",
    "ru": "Отвечай на русском.",
    "ja": "日本語で回答してください。",
    "zh": "请用中文回答。",
    "ko": "한국어로 답변해 주세요.",
}

SAME_LANGUAGE_INSTRUCTION = "Respond in the same language as the input."


def parse_mode(mode: Optional[str]) -> EnrichmentMode:
    """Unknown or missing modes fall back to clean-transcript."""
    try:
        return EnrichmentMode(mode)
    except ValueError:
        return EnrichmentMode.CLEAN_TRANSCRIPT


def language_instruction(language: Optional[str]) -> str:
    if not language or language == "auto":
        return SAME_LANGUAGE_INSTRUCTION
    return LANGUAGE_INSTRUCTIONS.get(language, "")


def build_mode_prompt(mode: Optional[str]) -> str:
    """System prompt for a mode, without the language instruction."""
    return MODE_PROMPTS[parse_mode(mode)]

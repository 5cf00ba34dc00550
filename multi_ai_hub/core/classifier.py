"""
Prompt classification.

Maps free-text prompts to a coarse category used for model routing.
"""

from enum import Enum


class PromptCategory(Enum):
    """Coarse prompt categories used for routing."""
    QUICK = "quick"
    LONG = "long"
    TECHNICAL = "technical"
    CREATIVE = "creative"


SHORT_PROMPT_LENGTH = 20
LONG_PROMPT_LENGTH = 200
KEYWORDLESS_LONG_LENGTH = 100

TECHNICAL_KEYWORDS = ("code", "debug", "error", "function", "api", "database", "algorithm")
CREATIVE_KEYWORDS = ("story", "poem", "creative", "imagine", "design", "art")


def classify_prompt(prompt: str) -> PromptCategory:
    """Classify a prompt by length and keyword presence.

    Rules, applied in order:
    1. Shorter than 20 characters -> QUICK
    2. Longer than 200 characters -> LONG
    3. Any technical keyword -> TECHNICAL (wins over creative)
    4. Any creative keyword -> CREATIVE
    5. Otherwise LONG above 100 characters, QUICK below

    Args:
        prompt: Raw prompt text

    Returns:
        PromptCategory for the prompt; every string maps to exactly one
    """
    length = len(prompt)
    if length < SHORT_PROMPT_LENGTH:
        return PromptCategory.QUICK
    if length > LONG_PROMPT_LENGTH:
        return PromptCategory.LONG

    lower = prompt.lower()
    if any(keyword in lower for keyword in TECHNICAL_KEYWORDS):
        return PromptCategory.TECHNICAL
    if any(keyword in lower for keyword in CREATIVE_KEYWORDS):
        return PromptCategory.CREATIVE

    return PromptCategory.LONG if length > KEYWORDLESS_LONG_LENGTH else PromptCategory.QUICK

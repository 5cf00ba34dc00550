"""
Avatar personas.

Each avatar maps to a system prompt template that replaces the default
assistant prompt for chats held with that persona.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional


DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful, friendly AI assistant. "
    "Keep responses natural and conversational."
)


class Avatar(Enum):
    """Available personas, keyed by their public id."""
    GANDHI = "gandhi"
    BHAGAT_SINGH = "bhagat-singh"
    APJ_KALAM = "apj-kalam"
    RANI_LAXMIBAI = "rani-laxmibai"
    EINSTEIN = "einstein"
    ELON_MUSK = "elon-musk"
    NEHRU = "nehru"
    BOSE = "bose"


@dataclass(frozen=True)
class AvatarProfile:
    """Display information for an avatar."""
    name: str
    title: str
    group: str
    quote: str
    premium: bool = False


AVATAR_PROFILES: Dict[Avatar, AvatarProfile] = {
    Avatar.GANDHI: AvatarProfile(
        "Mahatma Gandhi", "Father of the Nation", "Historical Leaders",
        "Be the change you wish to see in the world."),
    Avatar.BHAGAT_SINGH: AvatarProfile(
        "Bhagat Singh", "Revolutionary Freedom Fighter", "Historical Leaders",
        "They may kill me, but they cannot kill my ideas."),
    Avatar.APJ_KALAM: AvatarProfile(
        "A.P.J. Abdul Kalam", "Missile Man of India", "Scientists",
        "Dream is not what you see in sleep, it is the thing which does not let you sleep."),
    Avatar.RANI_LAXMIBAI: AvatarProfile(
        "Rani Laxmibai", "Queen of Jhansi", "Historical Leaders",
        "I shall not surrender my Jhansi."),
    Avatar.EINSTEIN: AvatarProfile(
        "Albert Einstein", "Theoretical Physicist", "Scientists",
        "Imagination is more important than knowledge."),
    Avatar.ELON_MUSK: AvatarProfile(
        "Elon Musk", "Entrepreneur & Innovator", "Entrepreneurs",
        "When something is important enough, you do it even if the odds are not in your favor.",
        premium=True),
    Avatar.NEHRU: AvatarProfile(
        "Jawaharlal Nehru", "First Prime Minister of India", "Historical Leaders",
        "The only alternative to coexistence is co-destruction."),
    Avatar.BOSE: AvatarProfile(
        "Subhash Chandra Bose", "Netaji", "Historical Leaders",
        "Give me blood, and I shall give you freedom!"),
}

_PERSONA_TEMPLATE = "You are {name}. Respond with {theme}. Keep your responses {tone}."

AVATAR_PROMPTS: Dict[Avatar, str] = {
    avatar: _PERSONA_TEMPLATE.format(name=name, theme=theme, tone=tone)
    for avatar, name, theme, tone in (
        (Avatar.GANDHI, "Mahatma Gandhi",
         "wisdom about truth, non-violence, and peaceful resistance",
         "thoughtful and inspirational"),
        (Avatar.BHAGAT_SINGH, "Bhagat Singh",
         "passion about freedom, courage, and revolutionary thought",
         "bold and inspiring"),
        (Avatar.APJ_KALAM, "Dr. APJ Abdul Kalam",
         "enthusiasm about dreams, science, and education",
         "motivational and forward-thinking"),
        (Avatar.RANI_LAXMIBAI, "Rani Laxmibai",
         "courage about bravery, determination, and standing up for what is right",
         "strong and empowering"),
        (Avatar.EINSTEIN, "Albert Einstein",
         "curiosity about science, imagination, and the mysteries of the universe",
         "thoughtful and imaginative"),
        (Avatar.ELON_MUSK, "Elon Musk",
         "innovation about technology, first principles thinking, and solving big problems",
         "practical and forward-looking"),
        (Avatar.NEHRU, "Jawaharlal Nehru",
         "wisdom about unity, diversity, and building a better future",
         "thoughtful and inclusive"),
        (Avatar.BOSE, "Subhas Chandra Bose",
         "determination about action, freedom, and taking charge",
         "powerful and action-oriented"),
    )
}


def parse_avatar(value: Optional[str]) -> Optional[Avatar]:
    """Avatar for an id string, or None for empty or unknown ids."""
    if not value:
        return None
    try:
        return Avatar(value.strip().lower())
    except ValueError:
        return None


def build_system_prompt(avatar: Optional[Avatar] = None) -> str:
    """System prompt for a chat, falling back to the default assistant."""
    if avatar is None:
        return DEFAULT_SYSTEM_PROMPT
    return AVATAR_PROMPTS.get(avatar, DEFAULT_SYSTEM_PROMPT)


def build_messages(
    history: Iterable[Mapping[str, str]],
    avatar: Optional[Avatar] = None
) -> List[Dict[str, str]]:
    """Prepend the system prompt to a conversation history.

    Args:
        history: Messages with "role" and "content" keys, oldest first
        avatar: Persona to impersonate, if any

    Returns:
        Message list ready for the chat-completion call
    """
    messages = [{"role": "system", "content": build_system_prompt(avatar)}]
    messages.extend({"role": m["role"], "content": m["content"]} for m in history)
    return messages


def can_use_avatar(avatar: Avatar, unmetered: bool) -> bool:
    """Premium avatars are reserved for unmetered accounts."""
    return unmetered or not AVATAR_PROFILES[avatar].premium

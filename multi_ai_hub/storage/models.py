"""
Data models for storage layer.

Defines user accounts, chat threads, and chat messages.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class SubscriptionTier(Enum):
    """Subscription levels. Only FREE is subject to the daily quota."""
    FREE = "free"
    PREMIUM = "premium"
    ANNUAL = "annual"

    @property
    def metered(self) -> bool:
        return self is SubscriptionTier.FREE


FREE_DAILY_PROMPTS = 10
UNMETERED_PROMPTS_LIMIT = 999999


def default_prompts_limit(
    tier: SubscriptionTier,
    free_daily_prompts: int = FREE_DAILY_PROMPTS,
    unmetered_limit: int = UNMETERED_PROMPTS_LIMIT
) -> int:
    """Prompt limit assigned to a tier at signup or on plan change."""
    return free_daily_prompts if tier.metered else unmetered_limit


@dataclass
class UserAccount:
    """A user's identity, plan, and daily prompt usage.

    Usage fields are only mutated by the usage limiter and by explicit
    admin operations (plan change, refill).
    """
    id: str
    email: str
    name: str
    tier: SubscriptionTier = SubscriptionTier.FREE
    prompts_used: Optional[int] = 0
    prompts_limit: Optional[int] = FREE_DAILY_PROMPTS
    last_reset: datetime = field(default_factory=datetime.now)
    created_at: datetime = field(default_factory=datetime.now)


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatMessage:
    """A single message in a chat thread."""
    id: str
    role: MessageRole
    content: str
    timestamp: datetime
    model: Optional[str] = None  # Model id that produced an assistant message

    def to_gateway(self) -> dict:
        """Message in the chat-completion wire shape."""
        return {"role": self.role.value, "content": self.content}


@dataclass
class ChatThread:
    """A user's conversation, optionally held with an avatar persona."""
    id: str
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime
    messages: List[ChatMessage] = field(default_factory=list)
    pinned: bool = False
    avatar_id: Optional[str] = None

"""
Chat-completion gateway client.

Forwards conversation history to an OpenAI-compatible LLM gateway after the
daily quota check, model routing, and the avatar system prompt swap.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import openai
from openai import OpenAI

from ..config.loader import HubConfig
from ..core.avatars import AVATAR_PROFILES, Avatar, build_messages, can_use_avatar, parse_avatar
from ..core.model_selector import RoutingDecision, route_prompt
from ..core.usage_limiter import UsageLimiter
from ..storage.models import ChatMessage, ChatThread, MessageRole, UserAccount
from ..storage.repository import AccountRepository, ChatRepository

logger = logging.getLogger(__name__)

CHAT_TITLE_LENGTH = 50
MAX_COMPARISON_MODELS = 3


class GatewayConfigError(RuntimeError):
    """Raised when the gateway cannot be configured, e.g. a missing API key."""


class PromptQuotaExceeded(Exception):
    """Raised when an account has no prompts left today."""
    def __init__(self, message: str, remaining: float = 0):
        super().__init__(message)
        self.remaining = remaining


class PremiumAvatarRequired(PermissionError):
    """Raised when a metered account starts a chat with a premium avatar."""


class GatewayError(Exception):
    """Raised when the upstream chat-completion call fails."""
    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class GatewayRateLimited(GatewayError):
    """Upstream returned 429."""


class GatewayPaymentRequired(GatewayError):
    """Upstream returned 402."""


@dataclass(frozen=True)
class ChatReply:
    """Result of sending a message in a chat."""
    chat: ChatThread
    message: ChatMessage
    routing: RoutingDecision
    remaining: float


@dataclass(frozen=True)
class ComparisonReply:
    """Result of sending one prompt to several models."""
    chat: ChatThread
    messages: Tuple[ChatMessage, ...]
    remaining: float


class GatewayChatClient:
    """Prompt submission path for user chats.

    Quota is consumed before the gateway is called; a failed upstream call
    does not refund the prompt.
    """

    def __init__(
        self,
        accounts: AccountRepository,
        chats: ChatRepository,
        config: Optional[HubConfig] = None,
        limiter: Optional[UsageLimiter] = None
    ):
        """Initialize the gateway client.

        Args:
            accounts: Account store
            chats: Chat-thread store
            config: Hub configuration (defaults to HubConfig.default())
            limiter: Usage limiter (defaults to one over the account store)

        Raises:
            GatewayConfigError: If the gateway API key is not set
        """
        self.accounts = accounts
        self.chats = chats
        self.config = config or HubConfig.default()
        self.limiter = limiter or UsageLimiter(accounts, admin_emails=self.config.admin_emails)

        gateway = self.config.gateway
        api_key = os.environ.get(gateway.api_key_env)
        if not api_key:
            raise GatewayConfigError(f"{gateway.api_key_env} is not configured")

        self.client = OpenAI(
            api_key=api_key,
            base_url=gateway.base_url,
            timeout=gateway.timeout_seconds
        )

    def complete(
        self,
        history: List[Dict[str, str]],
        model: str,
        avatar: Optional[Avatar] = None,
        **kwargs: Any
    ) -> str:
        """Send a conversation to the gateway and return the reply text.

        Args:
            history: Messages with "role" and "content", oldest first
            model: Model id for the request
            avatar: Persona whose system prompt replaces the default
            **kwargs: Additional chat-completion parameters

        Returns:
            Assistant reply content

        Raises:
            ValueError: If history is empty
            GatewayError: If the upstream call fails
        """
        if not history:
            raise ValueError("history is required and cannot be empty")

        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=build_messages(history, avatar),
                stream=False,
                **kwargs
            )
        except openai.APIStatusError as e:
            raise _map_status_error(e) from e
        except openai.APIError as e:
            logger.error("AI gateway unreachable: %s", e)
            raise GatewayError("AI service error") from e

        if not response.choices:
            raise GatewayError("AI gateway returned no choices")
        return response.choices[0].message.content or ""

    def start_chat(self, user_id: str, avatar_id: Optional[str] = None) -> ChatThread:
        """Create a chat for a user, optionally held with an avatar.

        Raises:
            AccountNotFoundError: If the user doesn't exist
            ValueError: If avatar_id is not a known avatar
            PremiumAvatarRequired: If a metered account picks a premium avatar
        """
        account = self.accounts.load(user_id)
        if not avatar_id:
            return self.chats.create_chat(user_id)

        avatar = parse_avatar(avatar_id)
        if avatar is None:
            raise ValueError(f"Unknown avatar: {avatar_id}")
        if not can_use_avatar(avatar, self.limiter.is_unmetered(account)):
            raise PremiumAvatarRequired(
                f"{AVATAR_PROFILES[avatar].name} is available on paid plans only"
            )
        return self.chats.create_chat(
            user_id, avatar_id=avatar.value, avatar_name=AVATAR_PROFILES[avatar].name
        )

    def send_message(
        self,
        user_id: str,
        chat_id: str,
        content: str,
        pinned_model: Optional[str] = None
    ) -> ChatReply:
        """Submit a prompt in a chat and record the reply.

        The user message is persisted before the gateway call so it survives
        an upstream failure.

        Args:
            user_id: Account submitting the prompt
            chat_id: Chat the prompt belongs to
            content: Prompt text
            pinned_model: Model id that bypasses automatic routing

        Returns:
            ChatReply with the updated chat and the assistant message

        Raises:
            ValueError: If content is empty or the pinned model is unknown
            PromptQuotaExceeded: If the daily quota is used up
            GatewayError: If the upstream call fails
        """
        _require_content(content)

        account = self.accounts.load(user_id)
        chat = self.chats.get_chat(user_id, chat_id)
        routing = route_prompt(content, self.config.catalog, pinned_model)

        self._consume_prompt(account)
        self._append_user_message(chat, content)

        reply_text = self.complete(
            [m.to_gateway() for m in chat.messages],
            model=routing.model.id,
            avatar=parse_avatar(chat.avatar_id)
        )

        reply = _assistant_message(reply_text, routing.model.id)
        chat.messages.append(reply)
        chat.updated_at = reply.timestamp
        self.chats.save_chat(chat)

        return ChatReply(
            chat=chat,
            message=reply,
            routing=routing,
            remaining=self.limiter.remaining(account)
        )

    def send_comparison(
        self,
        user_id: str,
        chat_id: str,
        content: str,
        model_ids: Sequence[str]
    ) -> ComparisonReply:
        """Submit one prompt to several models side by side.

        A comparison costs a single prompt. Each model sees the same history,
        and its reply is appended in the order the models were given. If any
        model fails, no replies are recorded.

        Args:
            user_id: Account submitting the prompt
            chat_id: Chat the prompt belongs to
            content: Prompt text
            model_ids: Catalog ids to compare, at most MAX_COMPARISON_MODELS

        Returns:
            ComparisonReply with the updated chat and one message per model

        Raises:
            ValueError: If content is empty, no models or too many are given,
                or a model id is unknown
            PromptQuotaExceeded: If the daily quota is used up
            GatewayError: If an upstream call fails
        """
        _require_content(content)
        if not model_ids:
            raise ValueError("at least one model is required for a comparison")
        if len(model_ids) > MAX_COMPARISON_MODELS:
            raise ValueError(f"at most {MAX_COMPARISON_MODELS} models can be compared")
        models = [self.config.catalog.get_model(model_id) for model_id in model_ids]

        account = self.accounts.load(user_id)
        chat = self.chats.get_chat(user_id, chat_id)

        self._consume_prompt(account)
        self._append_user_message(chat, content)

        history = [m.to_gateway() for m in chat.messages]
        avatar = parse_avatar(chat.avatar_id)
        replies = [
            _assistant_message(self.complete(history, model=model.id, avatar=avatar), model.id)
            for model in models
        ]

        chat.messages.extend(replies)
        chat.updated_at = replies[-1].timestamp
        self.chats.save_chat(chat)
        logger.debug("Compared %d models in chat %s", len(models), chat.id)

        return ComparisonReply(
            chat=chat,
            messages=tuple(replies),
            remaining=self.limiter.remaining(account)
        )

    def _consume_prompt(self, account: UserAccount) -> None:
        if not self.limiter.check_and_consume(account):
            raise PromptQuotaExceeded(
                "You have used all your prompts for today. "
                "Upgrade to Premium for unlimited access."
            )

    def _append_user_message(self, chat: ChatThread, content: str) -> None:
        now = datetime.now()
        # An empty chat takes its title from the first prompt
        if not chat.messages:
            chat.title = content[:CHAT_TITLE_LENGTH]
        chat.messages.append(ChatMessage(
            id=str(uuid.uuid4()),
            role=MessageRole.USER,
            content=content,
            timestamp=now
        ))
        chat.updated_at = now
        self.chats.save_chat(chat)


def _require_content(content: str) -> None:
    if not content or not content.strip():
        raise ValueError("content is required and cannot be empty")


def _assistant_message(content: str, model_id: str) -> ChatMessage:
    return ChatMessage(
        id=str(uuid.uuid4()),
        role=MessageRole.ASSISTANT,
        content=content,
        timestamp=datetime.now(),
        model=model_id
    )


def _map_status_error(error: openai.APIStatusError) -> GatewayError:
    """Translate an upstream HTTP error into the gateway error taxonomy."""
    if error.status_code == 429:
        return GatewayRateLimited("Rate limit exceeded. Please try again later.", 429)
    if error.status_code == 402:
        return GatewayPaymentRequired("Payment required. Please add credits to your workspace.", 402)

    logger.error("AI gateway error: %s %s", error.status_code, error.message)
    return GatewayError("AI service error", 500)

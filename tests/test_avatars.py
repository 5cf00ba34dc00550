"""
Tests for avatar personas and system prompt building.
"""
import pytest

from multi_ai_hub.core.avatars import (
    AVATAR_PROFILES,
    AVATAR_PROMPTS,
    DEFAULT_SYSTEM_PROMPT,
    Avatar,
    build_messages,
    build_system_prompt,
    can_use_avatar,
    parse_avatar,
)


class TestSystemPrompt:
    """Test the avatar-to-template mapping."""

    def test_default_prompt_without_avatar(self):
        assert build_system_prompt() == DEFAULT_SYSTEM_PROMPT
        assert build_system_prompt(None) == DEFAULT_SYSTEM_PROMPT

    def test_every_avatar_has_profile_and_prompt(self):
        assert set(AVATAR_PROMPTS) == set(Avatar)
        assert set(AVATAR_PROFILES) == set(Avatar)

    @pytest.mark.parametrize("avatar", list(Avatar))
    def test_avatar_prompt_replaces_default(self, avatar):
        prompt = build_system_prompt(avatar)
        assert prompt == AVATAR_PROMPTS[avatar]
        assert prompt.startswith("You are ")
        assert prompt != DEFAULT_SYSTEM_PROMPT

    def test_gandhi_prompt(self):
        assert build_system_prompt(Avatar.GANDHI) == (
            "You are Mahatma Gandhi. Respond with wisdom about truth, non-violence, "
            "and peaceful resistance. Keep your responses thoughtful and inspirational."
        )


class TestParseAvatar:
    """Test avatar id parsing."""

    def test_known_id(self):
        assert parse_avatar("apj-kalam") == Avatar.APJ_KALAM

    def test_id_is_normalized(self):
        assert parse_avatar("  Einstein ") == Avatar.EINSTEIN

    @pytest.mark.parametrize("value", [None, "", "napoleon"])
    def test_unknown_or_empty_id(self, value):
        assert parse_avatar(value) is None

    def test_unknown_id_falls_back_to_default_prompt(self):
        assert build_system_prompt(parse_avatar("napoleon")) == DEFAULT_SYSTEM_PROMPT


class TestBuildMessages:
    """Test system message injection."""

    def test_system_message_comes_first(self):
        history = [
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi!"},
            {"role": "user", "content": "What is truth?"},
        ]
        messages = build_messages(history, Avatar.GANDHI)

        assert messages[0] == {"role": "system", "content": AVATAR_PROMPTS[Avatar.GANDHI]}
        assert messages[1:] == history

    def test_extra_keys_are_dropped(self):
        messages = build_messages([{"role": "user", "content": "Hi", "id": "m1"}])
        assert messages[1] == {"role": "user", "content": "Hi"}


class TestAvatarAccess:
    """Test premium avatar gating."""

    def test_premium_avatar_requires_unmetered_account(self):
        assert AVATAR_PROFILES[Avatar.ELON_MUSK].premium
        assert not can_use_avatar(Avatar.ELON_MUSK, unmetered=False)
        assert can_use_avatar(Avatar.ELON_MUSK, unmetered=True)

    def test_free_avatar_is_open_to_everyone(self):
        assert can_use_avatar(Avatar.NEHRU, unmetered=False)

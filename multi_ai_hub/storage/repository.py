"""
Repository pattern for data access.

Account and chat-thread persistence plus the admin dashboard queries.
"""

import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from .db import DEFAULT_DB_PATH, get_connection, transaction
from .models import (
    ChatMessage,
    ChatThread,
    FREE_DAILY_PROMPTS,
    MessageRole,
    SubscriptionTier,
    UNMETERED_PROMPTS_LIMIT,
    UserAccount,
    default_prompts_limit,
)

logger = logging.getLogger(__name__)

NEW_CHAT_TITLE = "New Chat"


class AccountNotFoundError(LookupError):
    """Raised when no account matches the requested id or email."""


class AccountExistsError(ValueError):
    """Raised on signup with an email that is already registered."""


class ChatNotFoundError(LookupError):
    """Raised when a chat does not exist or belongs to another user."""


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the account and chat tables if they don't exist.

    Args:
        db_path: Path to SQLite database file
    """
    with transaction(db_path) as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS user_account (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                name TEXT NOT NULL,
                tier TEXT NOT NULL,
                prompts_used INTEGER NOT NULL DEFAULT 0,
                prompts_limit INTEGER NOT NULL,
                last_reset TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS chat_thread (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL REFERENCES user_account(id) ON DELETE CASCADE,
                title TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                pinned INTEGER NOT NULL DEFAULT 0,
                avatar_id TEXT
            );

            CREATE TABLE IF NOT EXISTS chat_message (
                id TEXT PRIMARY KEY,
                chat_id TEXT NOT NULL REFERENCES chat_thread(id) ON DELETE CASCADE,
                position INTEGER NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                model TEXT,
                timestamp TEXT NOT NULL
            );
        """)
    logger.debug("Schema initialized at %s", db_path)


def _row_to_account(row: sqlite3.Row) -> UserAccount:
    return UserAccount(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        tier=SubscriptionTier(row["tier"]),
        prompts_used=row["prompts_used"],
        prompts_limit=row["prompts_limit"],
        last_reset=datetime.fromisoformat(row["last_reset"]),
        created_at=datetime.fromisoformat(row["created_at"])
    )


class AccountRepository:
    """SQLite-backed account store.

    Implements the load/save boundary used by the usage limiter, plus
    signup and the admin operations on accounts.
    """

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        free_daily_prompts: int = FREE_DAILY_PROMPTS,
        unmetered_prompts_limit: int = UNMETERED_PROMPTS_LIMIT
    ):
        self.db_path = db_path
        self.free_daily_prompts = free_daily_prompts
        self.unmetered_prompts_limit = unmetered_prompts_limit

    def _tier_limit(self, tier: SubscriptionTier) -> int:
        return default_prompts_limit(tier, self.free_daily_prompts, self.unmetered_prompts_limit)

    def load(self, user_id: str) -> UserAccount:
        """Load an account by id.

        Raises:
            AccountNotFoundError: If no account has this id
        """
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT * FROM user_account WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise AccountNotFoundError(f"No account with id {user_id}")
        return _row_to_account(row)

    def find_by_email(self, email: str) -> Optional[UserAccount]:
        """Account registered under an email, if any."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT * FROM user_account WHERE lower(email) = lower(?)", (email,)
            ).fetchone()
        finally:
            conn.close()
        return _row_to_account(row) if row else None

    def save(self, account: UserAccount) -> None:
        """Insert or update an account record."""
        with transaction(self.db_path) as conn:
            conn.execute("""
                INSERT INTO user_account
                (id, email, name, tier, prompts_used, prompts_limit, last_reset, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email = excluded.email,
                    name = excluded.name,
                    tier = excluded.tier,
                    prompts_used = excluded.prompts_used,
                    prompts_limit = excluded.prompts_limit,
                    last_reset = excluded.last_reset
            """, (
                account.id,
                account.email,
                account.name,
                account.tier.value,
                account.prompts_used or 0,
                account.prompts_limit or 0,
                account.last_reset.isoformat(),
                account.created_at.isoformat()
            ))

    def create_account(
        self,
        name: str,
        email: str,
        tier: SubscriptionTier = SubscriptionTier.FREE,
        now: Optional[datetime] = None
    ) -> UserAccount:
        """Register a new account with an empty usage counter.

        Raises:
            ValueError: If name or email is empty
            AccountExistsError: If the email is already registered
        """
        if not name or not name.strip():
            raise ValueError("name is required and cannot be empty")
        if not email or not email.strip():
            raise ValueError("email is required and cannot be empty")
        if self.find_by_email(email.strip()) is not None:
            raise AccountExistsError("Email already exists")

        now = now or datetime.now()
        account = UserAccount(
            id=str(uuid.uuid4()),
            email=email.strip(),
            name=name.strip(),
            tier=tier,
            prompts_used=0,
            prompts_limit=self._tier_limit(tier),
            last_reset=now,
            created_at=now
        )
        self.save(account)
        logger.info("Created %s account %s", tier.value, account.id)
        return account

    def list_accounts(self) -> List[UserAccount]:
        """All accounts, newest first."""
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("SELECT * FROM user_account ORDER BY created_at DESC").fetchall()
        finally:
            conn.close()
        return [_row_to_account(row) for row in rows]

    def change_tier(self, user_id: str, tier: SubscriptionTier) -> UserAccount:
        """Move an account to another plan, resetting its usage."""
        account = self.load(user_id)
        account.tier = tier
        account.prompts_limit = self._tier_limit(tier)
        account.prompts_used = 0
        self.save(account)
        return account

    def refill_prompts(self, user_id: str) -> UserAccount:
        """Reset an account's usage counter without touching its plan."""
        account = self.load(user_id)
        account.prompts_used = 0
        self.save(account)
        return account

    def update_profile(
        self,
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None
    ) -> UserAccount:
        """Change an account's display name and/or email.

        Raises:
            AccountNotFoundError: If no account has this id
            ValueError: If a given name or email is blank
            AccountExistsError: If the email belongs to another account
        """
        account = self.load(user_id)
        if name is not None:
            if not name.strip():
                raise ValueError("name cannot be empty")
            account.name = name.strip()
        if email is not None:
            if not email.strip():
                raise ValueError("email cannot be empty")
            owner = self.find_by_email(email.strip())
            if owner is not None and owner.id != user_id:
                raise AccountExistsError("Email already exists")
            account.email = email.strip()
        self.save(account)
        logger.info("Updated profile for account %s", user_id)
        return account

    def delete_account(self, user_id: str) -> None:
        """Delete an account together with its chats.

        Raises:
            AccountNotFoundError: If no account has this id
        """
        with transaction(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM user_account WHERE id = ?", (user_id,))
            if cursor.rowcount == 0:
                raise AccountNotFoundError(f"No account with id {user_id}")


class ChatRepository:
    """SQLite-backed chat-thread store, scoped per user."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path

    def _load_messages(self, conn: sqlite3.Connection, chat_id: str) -> List[ChatMessage]:
        rows = conn.execute(
            "SELECT * FROM chat_message WHERE chat_id = ? ORDER BY position", (chat_id,)
        ).fetchall()
        return [
            ChatMessage(
                id=row["id"],
                role=MessageRole(row["role"]),
                content=row["content"],
                timestamp=datetime.fromisoformat(row["timestamp"]),
                model=row["model"]
            )
            for row in rows
        ]

    def _row_to_chat(self, conn: sqlite3.Connection, row: sqlite3.Row) -> ChatThread:
        return ChatThread(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            messages=self._load_messages(conn, row["id"]),
            pinned=bool(row["pinned"]),
            avatar_id=row["avatar_id"]
        )

    def list_chats(self, user_id: str) -> List[ChatThread]:
        """A user's chats, pinned first, then most recently updated."""
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("""
                SELECT * FROM chat_thread WHERE user_id = ?
                ORDER BY pinned DESC, updated_at DESC
            """, (user_id,)).fetchall()
            return [self._row_to_chat(conn, row) for row in rows]
        finally:
            conn.close()

    def search_chats(self, user_id: str, query: str) -> List[ChatThread]:
        """A user's chats whose title contains the query, case-insensitively."""
        needle = query.lower()
        return [chat for chat in self.list_chats(user_id) if needle in chat.title.lower()]

    def get_chat(self, user_id: str, chat_id: str) -> ChatThread:
        """Load one of a user's chats.

        Raises:
            ChatNotFoundError: If the chat doesn't exist or isn't the user's
        """
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT * FROM chat_thread WHERE id = ? AND user_id = ?", (chat_id, user_id)
            ).fetchone()
            if row is None:
                raise ChatNotFoundError(f"No chat {chat_id} for user {user_id}")
            return self._row_to_chat(conn, row)
        finally:
            conn.close()

    def save_chat(self, chat: ChatThread) -> None:
        """Insert or replace a chat thread and all of its messages atomically."""
        with transaction(self.db_path) as conn:
            conn.execute("""
                INSERT INTO chat_thread
                (id, user_id, title, created_at, updated_at, pinned, avatar_id)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    updated_at = excluded.updated_at,
                    pinned = excluded.pinned,
                    avatar_id = excluded.avatar_id
            """, (
                chat.id,
                chat.user_id,
                chat.title,
                chat.created_at.isoformat(),
                chat.updated_at.isoformat(),
                int(chat.pinned),
                chat.avatar_id
            ))
            conn.execute("DELETE FROM chat_message WHERE chat_id = ?", (chat.id,))
            conn.executemany("""
                INSERT INTO chat_message (id, chat_id, position, role, content, model, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, [
                (m.id, chat.id, position, m.role.value, m.content, m.model, m.timestamp.isoformat())
                for position, m in enumerate(chat.messages)
            ])

    def create_chat(
        self,
        user_id: str,
        avatar_id: Optional[str] = None,
        avatar_name: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ChatThread:
        """Start an empty chat, optionally held with an avatar."""
        now = now or datetime.now()
        chat = ChatThread(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=f"Chat with {avatar_name}" if avatar_name else NEW_CHAT_TITLE,
            created_at=now,
            updated_at=now,
            avatar_id=avatar_id
        )
        self.save_chat(chat)
        return chat

    def set_pinned(self, user_id: str, chat_id: str, pinned: bool) -> ChatThread:
        chat = self.get_chat(user_id, chat_id)
        chat.pinned = pinned
        self.save_chat(chat)
        return chat

    def delete_chat(self, user_id: str, chat_id: str) -> None:
        """Delete one of a user's chats.

        Raises:
            ChatNotFoundError: If the chat doesn't exist or isn't the user's
        """
        with transaction(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM chat_thread WHERE id = ? AND user_id = ?", (chat_id, user_id)
            )
            if cursor.rowcount == 0:
                raise ChatNotFoundError(f"No chat {chat_id} for user {user_id}")


def _account_to_dict(account: UserAccount) -> Dict[str, Any]:
    return {
        "id": account.id,
        "email": account.email,
        "name": account.name,
        "tier": account.tier.value,
        "prompts_used": account.prompts_used,
        "prompts_limit": account.prompts_limit,
        "last_reset": account.last_reset.isoformat(),
        "created_at": account.created_at.isoformat(),
    }


def _chat_to_dict(chat: ChatThread) -> Dict[str, Any]:
    return {
        "id": chat.id,
        "title": chat.title,
        "created_at": chat.created_at.isoformat(),
        "updated_at": chat.updated_at.isoformat(),
        "pinned": chat.pinned,
        "avatar_id": chat.avatar_id,
        "messages": [
            {
                "id": m.id,
                "role": m.role.value,
                "content": m.content,
                "model": m.model,
                "timestamp": m.timestamp.isoformat(),
            }
            for m in chat.messages
        ],
    }


def export_user_data(
    user_id: str,
    db_path: str = DEFAULT_DB_PATH,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Collect an account and all of its chats as JSON-serializable data.

    Raises:
        AccountNotFoundError: If no account has this id
    """
    account = AccountRepository(db_path).load(user_id)
    threads = ChatRepository(db_path).list_chats(user_id)
    return {
        "user": _account_to_dict(account),
        "chats": [_chat_to_dict(chat) for chat in threads],
        "exportDate": (now or datetime.now()).isoformat(),
    }


@dataclass(frozen=True)
class UserActivity:
    """Per-user chat figures for the admin users table."""
    chat_count: int
    last_active: Optional[datetime]


def compute_user_activity(db_path: str = DEFAULT_DB_PATH) -> Dict[str, UserActivity]:
    """Chat count and latest chat update per user id.

    Users without chats are absent from the result.
    """
    conn = get_connection(db_path)
    try:
        rows = conn.execute("""
            SELECT user_id, COUNT(*), MAX(updated_at)
            FROM chat_thread GROUP BY user_id
        """).fetchall()
    finally:
        conn.close()
    return {
        user_id: UserActivity(chat_count=count, last_active=datetime.fromisoformat(last))
        for user_id, count, last in rows
    }


@dataclass(frozen=True)
class DashboardStats:
    """Aggregate figures shown on the admin dashboard."""
    total_users: int
    free_users: int
    paid_users: int
    active_today: int
    active_this_week: int
    active_this_month: int
    total_chats: int
    total_messages: int
    avg_messages_per_chat: float
    avg_chats_per_user: float


def compute_dashboard_stats(
    db_path: str = DEFAULT_DB_PATH,
    now: Optional[datetime] = None
) -> DashboardStats:
    """Compute admin dashboard figures.

    A user counts as active in a window when any message in one of their
    chats falls inside it; "today" means the same calendar date as now.

    Args:
        db_path: Path to SQLite database file
        now: Reference time, defaults to the current local time

    Returns:
        DashboardStats with averages rounded to one decimal place
    """
    now = now or datetime.now()
    conn = get_connection(db_path)
    try:
        tier_counts = {
            row[0]: row[1]
            for row in conn.execute("SELECT tier, COUNT(*) FROM user_account GROUP BY tier")
        }
        total_chats = conn.execute("SELECT COUNT(*) FROM chat_thread").fetchone()[0]
        total_messages = conn.execute("SELECT COUNT(*) FROM chat_message").fetchone()[0]
        activity = conn.execute("""
            SELECT t.user_id, m.timestamp
            FROM chat_message m JOIN chat_thread t ON t.id = m.chat_id
        """).fetchall()
    finally:
        conn.close()

    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)
    active_today, active_week, active_month = set(), set(), set()
    for user_id, timestamp in activity:
        at = datetime.fromisoformat(timestamp)
        if at.date() == now.date():
            active_today.add(user_id)
        if at >= week_ago:
            active_week.add(user_id)
        if at >= month_ago:
            active_month.add(user_id)

    total_users = sum(tier_counts.values())
    free_users = tier_counts.get(SubscriptionTier.FREE.value, 0)

    return DashboardStats(
        total_users=total_users,
        free_users=free_users,
        paid_users=total_users - free_users,
        active_today=len(active_today),
        active_this_week=len(active_week),
        active_this_month=len(active_month),
        total_chats=total_chats,
        total_messages=total_messages,
        avg_messages_per_chat=_average(total_messages, total_chats),
        avg_chats_per_user=_average(total_chats, total_users)
    )


def _average(total: int, count: int) -> float:
    """total / count to one decimal place, halves rounded up."""
    if not count:
        return 0.0
    value = (Decimal(total) / Decimal(count)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return float(value)

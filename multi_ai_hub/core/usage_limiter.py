"""
Daily prompt quota enforcement.

Gates prompt submission against a per-user daily quota.

Check Order:
1. Day rollover - A new calendar day resets usage, persisted even on denial
2. Tier bypass - Unmetered tiers and admins are always allowed
3. Quota check - Metered accounts are allowed until prompts_used hits the limit

The limiter is advisory: it assumes at most one in-flight check per user
and leaves serialization across processes to the account store.
"""

import logging
import math
from datetime import datetime
from enum import Enum, auto
from typing import Callable, Iterable, Protocol

from multi_ai_hub.storage.models import UserAccount

logger = logging.getLogger(__name__)

# Remaining-quota value reported for unmetered accounts
UNLIMITED = math.inf


class UsageDecision(Enum):
    """Outcome of a quota check."""
    ALLOWED = auto()
    DENIED = auto()

    def __bool__(self) -> bool:
        return self is UsageDecision.ALLOWED


class AccountStore(Protocol):
    """Persistence boundary the limiter writes through."""

    def load(self, user_id: str) -> UserAccount:
        ...

    def save(self, account: UserAccount) -> None:
        ...


class UsageLimiter:
    """Per-user daily prompt limiter.

    Accounts and the store are passed in explicitly; the limiter keeps no
    state of its own beyond its configuration.
    """

    def __init__(
        self,
        store: AccountStore,
        clock: Callable[[], datetime] = datetime.now,
        admin_emails: Iterable[str] = ()
    ):
        """Initialize the limiter.

        Args:
            store: Account store used to persist usage changes
            clock: Returns "now"; all date comparisons use its time zone
            admin_emails: Emails exempt from the quota regardless of tier
        """
        self.store = store
        self.clock = clock
        self.admin_emails = frozenset(email.lower() for email in admin_emails)

    def is_unmetered(self, account: UserAccount) -> bool:
        """True for unmetered tiers and administrators."""
        return not account.tier.metered or account.email.lower() in self.admin_emails

    def check_and_consume(self, account: UserAccount) -> UsageDecision:
        """Check the quota and consume one prompt if allowed.

        Args:
            account: Account to check; mutated in place and saved on change

        Returns:
            UsageDecision.ALLOWED or UsageDecision.DENIED
        """
        self._apply_rollover(account)

        if self.is_unmetered(account):
            return UsageDecision.ALLOWED

        used = account.prompts_used or 0
        limit = account.prompts_limit or 0
        if used >= limit:
            logger.info("Prompt quota exhausted for user %s (%d/%d)", account.id, used, limit)
            return UsageDecision.DENIED

        account.prompts_used = used + 1
        self.store.save(account)
        return UsageDecision.ALLOWED

    def remaining(self, account: UserAccount) -> float:
        """Prompts left today, or UNLIMITED for unmetered accounts.

        Applies the day rollover first; persisting that reset is the only
        write this method performs.
        """
        self._apply_rollover(account)

        if self.is_unmetered(account):
            return UNLIMITED

        return max(0, (account.prompts_limit or 0) - (account.prompts_used or 0))

    def _apply_rollover(self, account: UserAccount) -> bool:
        now = self.clock()
        if account.last_reset is not None and account.last_reset.date() == now.date():
            return False

        logger.info("Resetting daily prompt usage for user %s", account.id)
        account.prompts_used = 0
        account.last_reset = now
        self.store.save(account)
        return True

"""Resolves user account ids referenced by mentions to display names."""

import logging
from typing import Any, Dict, Optional, Set

from ..models import ConfluencePage, ConfluenceUser

logger = logging.getLogger('confluence_md.converters.userresolver')


class UserResolver:
    """
    Per-conversion cache of account id to display name.

    The cache is seeded from the page creator and last editor. A miss triggers
    at most one lookup through ``client.get_user`` per account id; failed
    lookups are remembered so the same id is not requested twice within one
    conversion.
    """

    def __init__(self, client: Any = None, logger: logging.Logger = None):
        self.client = client
        self.logger = logger or logging.getLogger('confluence_md.converters.userresolver')
        self._names: Dict[str, str] = {}
        self._failed: Set[str] = set()

    def seed(self, user: Optional[ConfluenceUser]) -> None:
        if user is not None and user.account_id and user.name:
            self._names[user.account_id] = user.name

    def seed_from_page(self, page: ConfluencePage) -> None:
        self.seed(page.created_by)
        self.seed(page.updated_by)
        self.logger.debug(f"Seeded user cache with {len(self._names)} users for page {page.id}")

    def cached(self, account_id: str) -> Optional[str]:
        return self._names.get(account_id)

    def resolve(self, account_id: str) -> Optional[str]:
        """
        Return the display name for ``account_id``, or None if it cannot be resolved.
        """
        if account_id in self._names:
            return self._names[account_id]
        if self.client is None or account_id in self._failed:
            return None

        try:
            user = ConfluenceUser.from_api(self.client.get_user(account_id))
        except Exception as e:
            self.logger.warning(f"Failed to look up user {account_id}: {str(e)}")
            self._failed.add(account_id)
            return None

        if user is None or not user.name:
            self.logger.warning(f"User {account_id} has no display name")
            self._failed.add(account_id)
            return None

        self._names[account_id] = user.name
        return user.name

    def mention(self, account_id: str) -> str:
        """Markdown mention text for ``account_id``."""
        name = self.resolve(account_id)
        if name:
            return f"@{name}"
        return f"@user({account_id})"


__all__ = ['UserResolver']

"""Group membership lookups.

Group lifecycle is owned elsewhere; the ledger only asks whether a user
belongs to (or administers) a group.
"""

import logging
from collections.abc import Mapping
from typing import Literal, Protocol
from urllib.parse import quote

import httpx

from .config import Settings
from .exceptions import GroupServiceError

logger = logging.getLogger(__name__)

Role = Literal["member", "admin"]


class GroupDirectory(Protocol):
    """Read-only view of group membership."""

    def is_member(self, group_id: str, user_id: str) -> bool: ...

    def is_admin(self, group_id: str, user_id: str) -> bool: ...


class StaticGroupDirectory:
    """Group membership held in memory: {group_id: {user_id: role}}."""

    def __init__(self, groups: Mapping[str, Mapping[str, Role]] | None = None):
        self.groups = {gid: dict(members) for gid, members in (groups or {}).items()}

    def is_member(self, group_id: str, user_id: str) -> bool:
        return user_id in self.groups.get(group_id, {})

    def is_admin(self, group_id: str, user_id: str) -> bool:
        return self.groups.get(group_id, {}).get(user_id) == "admin"


class GroupServiceClient:
    """Client for the group membership HTTP service."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the group service client."""
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=10.0,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def get_role(self, group_id: str, user_id: str) -> Role | None:
        """
        Look up a user's role in a group.

        Returns:
            "member" or "admin", or None if the user is not in the group
        """
        path = f"/groups/{quote(group_id, safe='')}/members/{quote(user_id, safe='')}"
        try:
            response = self.client.get(path)
            if response.status_code == httpx.codes.NOT_FOUND:
                return None
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Group service lookup failed for group {group_id}: {e}")
            raise GroupServiceError(f"Group service request failed: {e}") from e

        if not isinstance(data, dict):
            raise GroupServiceError("Unexpected group service response")
        role = data.get("role")
        if role not in ("member", "admin"):
            raise GroupServiceError(f"Unexpected role in group service response: {role!r}")
        return role

    def is_member(self, group_id: str, user_id: str) -> bool:
        return self.get_role(group_id, user_id) is not None

    def is_admin(self, group_id: str, user_id: str) -> bool:
        return self.get_role(group_id, user_id) == "admin"


def load_group_directory(settings: Settings) -> GroupDirectory:
    """Use the HTTP group service when configured, else an empty directory."""
    if settings.group_service_url:
        return GroupServiceClient(
            settings.group_service_url, settings.group_service_token
        )
    logger.debug("No group service configured; group expenses will be refused")
    return StaticGroupDirectory()

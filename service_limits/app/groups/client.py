"""
Group membership clients for the Limits Service.
"""

from typing import Dict, List, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx
from shared.logging import get_logger
from shared.errors import ExternalServiceError


class GroupsClient:
    """Fetches a player's ordered groups from the permissions service.

    The permissions service returns groups in priority order; that order
    decides which group limit applies, so it is kept as received.
    """

    def __init__(self, permissions_service_url: str, timeout: float = 5.0):
        self.permissions_service_url = permissions_service_url.rstrip("/")
        self.timeout = timeout
        self.logger = get_logger("limits.groups_client")

    async def resolve_groups(self, player: str) -> List[str]:
        """Ordered group names for ``player``."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.permissions_service_url}/permissions/groups/{quote(player, safe='')}"
                )

        except httpx.HTTPError as e:
            self.logger.error("Permissions service HTTP error", player=player, error=str(e))
            raise ExternalServiceError(
                "permissions",
                "Permissions service unavailable",
                details={"http_error": str(e)}
            ) from e

        if response.status_code == 404:
            return []

        if response.status_code != 200:
            self.logger.error(
                "Permissions service error",
                player=player,
                status_code=response.status_code
            )
            raise ExternalServiceError(
                "permissions",
                f"Unexpected status {response.status_code}",
                details={"status_code": response.status_code}
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise self._invalid_response(player, type(e).__name__) from e

        if not isinstance(payload, dict):
            raise self._invalid_response(player, type(payload).__name__)

        groups = payload.get("groups")
        if groups is None:
            return []
        # A bare string would otherwise be split into one-letter groups
        if not isinstance(groups, list):
            raise self._invalid_response(player, type(groups).__name__)

        return [str(group) for group in groups]

    def _invalid_response(self, player: str, found: str) -> ExternalServiceError:
        self.logger.error("Invalid groups response", player=player, found=found)
        return ExternalServiceError(
            "permissions",
            "Invalid groups response",
            details={"found": found}
        )


class StaticGroupResolver:
    """Group memberships from a fixed mapping, keyed case-insensitively."""

    def __init__(self, memberships: Optional[Mapping[str, Sequence[str]]] = None):
        self._memberships: Dict[str, List[str]] = {
            player.lower(): list(groups)
            for player, groups in (memberships or {}).items()
        }

    async def resolve_groups(self, player: str) -> List[str]:
        return list(self._memberships.get(player.lower(), []))

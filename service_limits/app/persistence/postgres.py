"""
PostgreSQL protection store for the Limits Service.
"""

from typing import Optional

import asyncpg
from shared.logging import get_logger
from shared.errors import BackingStoreError


class ProtectionStore:
    """Counts protections owned by a player in the ``protections`` table."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("limits.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the connection pool."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )

            self.logger.info("PostgreSQL protection store started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL protection store", error=str(e))
            raise BackingStoreError(f"Failed to connect to protection store: {e}") from e

    async def stop(self):
        """Stop the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL protection store stopped")

    async def count_owned(self, player: str, material: Optional[str] = None) -> int:
        """Number of protections owned by ``player``, optionally of one material."""
        if self.pool is None:
            raise BackingStoreError("Protection store is not started")

        try:
            async with self.pool.acquire() as conn:
                if material is None:
                    count = await conn.fetchval(
                        "SELECT COUNT(*) FROM protections WHERE owner = $1",
                        player
                    )
                else:
                    count = await conn.fetchval(
                        "SELECT COUNT(*) FROM protections WHERE owner = $1 AND material = $2",
                        player, material
                    )
                return count or 0

        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Error counting protections", player=player, material=material, error=str(e))
            raise BackingStoreError(
                f"Error counting protections: {e}",
                details={"player": player, "material": material}
            ) from e

    async def health_check(self) -> bool:
        """Check database health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except (asyncpg.PostgresError, OSError):
            return False

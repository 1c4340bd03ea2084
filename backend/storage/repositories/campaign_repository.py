"""Campaign hierarchy repository.

Campaigns, ad sets and ads are identity records only; their numbers are always
derived from metrics_daily. The resolve_* methods run on a caller's connection
inside the ingestion transaction and are safe against concurrent jobs: the row
is inserted with ON CONFLICT DO NOTHING and then read back by its unique key.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from .base import BaseRepository, new_id
from ..database import utc_now
from ..models import Ad, AdSet, Campaign


def campaign_identity(name: str, platform_campaign_id: Optional[str]) -> str:
    """Identity key: external id when the export has one, else the name."""
    if platform_campaign_id:
        return f"id:{platform_campaign_id}"
    return f"name:{name}"


class CampaignRepository(BaseRepository[Campaign]):
    """Repository for campaigns, ad sets and ads."""

    # ==================== Resolution (sync, in-transaction) ====================

    def resolve_campaign(
        self,
        conn: sqlite3.Connection,
        workspace_id: str,
        platform: str,
        name: str,
        platform_campaign_id: Optional[str] = None,
    ) -> str:
        """Return the campaign id for an identity, creating the campaign if new."""
        identity = campaign_identity(name, platform_campaign_id)
        now = utc_now()
        conn.execute(
            """
            INSERT INTO campaigns (
                id, workspace_id, platform, platform_campaign_id, name,
                identity_key, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(workspace_id, platform, identity_key) DO NOTHING
            """,
            (new_id(), workspace_id, platform, platform_campaign_id, name, identity, now, now),
        )
        row = conn.execute(
            """
            SELECT id FROM campaigns
            WHERE workspace_id = ? AND platform = ? AND identity_key = ?
            """,
            (workspace_id, platform, identity),
        ).fetchone()
        return row["id"]

    def resolve_ad_set(self, conn: sqlite3.Connection, campaign_id: str, name: str) -> str:
        now = utc_now()
        conn.execute(
            """
            INSERT INTO ad_sets (id, campaign_id, name, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(campaign_id, name) DO NOTHING
            """,
            (new_id(), campaign_id, name, now, now),
        )
        row = conn.execute(
            "SELECT id FROM ad_sets WHERE campaign_id = ? AND name = ?",
            (campaign_id, name),
        ).fetchone()
        return row["id"]

    def resolve_ad(self, conn: sqlite3.Connection, ad_set_id: str, name: str) -> str:
        now = utc_now()
        conn.execute(
            """
            INSERT INTO ads (id, ad_set_id, name, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(ad_set_id, name) DO NOTHING
            """,
            (new_id(), ad_set_id, name, now, now),
        )
        row = conn.execute(
            "SELECT id FROM ads WHERE ad_set_id = ? AND name = ?",
            (ad_set_id, name),
        ).fetchone()
        return row["id"]

    # ==================== Reads ====================

    async def get_hierarchy(self, campaign_id: str) -> list[tuple[AdSet, list[Ad]]]:
        """Ad sets of a campaign, each with its ads, ordered by name."""
        set_rows = await self._execute(
            "SELECT * FROM ad_sets WHERE campaign_id = ? ORDER BY name",
            (campaign_id,),
            fetch="all",
        )
        ad_rows = await self._execute(
            """
            SELECT ads.* FROM ads
            JOIN ad_sets ON ad_sets.id = ads.ad_set_id
            WHERE ad_sets.campaign_id = ?
            ORDER BY ads.name
            """,
            (campaign_id,),
            fetch="all",
        )

        ads_by_set: dict[str, list[Ad]] = {}
        for row in ad_rows:
            ads_by_set.setdefault(row["ad_set_id"], []).append(
                Ad(id=row["id"], ad_set_id=row["ad_set_id"], name=row["name"], status=row["status"])
            )

        return [
            (
                AdSet(id=row["id"], campaign_id=row["campaign_id"], name=row["name"], status=row["status"]),
                ads_by_set.get(row["id"], []),
            )
            for row in set_rows
        ]

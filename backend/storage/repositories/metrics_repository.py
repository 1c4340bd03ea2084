"""Daily metrics repository.

metrics_daily holds exactly one row per (campaign_id, date). Writes are a
single INSERT ... ON CONFLICT DO UPDATE so concurrent jobs never lose updates;
the incoming values replace the stored ones.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from .base import BaseRepository
from ..database import utc_now
from ..models import MetricsDailyRow

UPSERT_SQL = """
INSERT INTO metrics_daily (
    campaign_id, date, workspace_id, platform,
    impressions, clicks, spend, conversions, revenue,
    upload_job_id, created_at, updated_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(campaign_id, date) DO UPDATE SET
    impressions = excluded.impressions,
    clicks = excluded.clicks,
    spend = excluded.spend,
    conversions = excluded.conversions,
    revenue = excluded.revenue,
    upload_job_id = excluded.upload_job_id,
    updated_at = excluded.updated_at
"""


class MetricsRepository(BaseRepository[MetricsDailyRow]):
    """Repository for the metrics_daily fact table."""

    def upsert_daily(
        self,
        conn: sqlite3.Connection,
        row: MetricsDailyRow,
        workspace_id: str,
        platform: str,
        upload_job_id: Optional[str] = None,
    ) -> None:
        """Insert or replace one (campaign_id, date) row on the caller's connection."""
        now = utc_now()
        conn.execute(
            UPSERT_SQL,
            (
                row.campaign_id, row.date, workspace_id, platform,
                row.impressions, row.clicks, row.spend, row.conversions, row.revenue,
                upload_job_id, now, now,
            ),
        )

    async def list_daily(
        self,
        workspace_id: str,
        platforms: Optional[list[str]] = None,
        campaign_id: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        newest_first: bool = True,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[MetricsDailyRow], int]:
        """Stored daily rows with their campaign names.

        Args:
            workspace_id: Workspace to read.
            platforms: Restrict to these platforms (all when empty).
            campaign_id: Restrict to one campaign.
            date_from: Inclusive start date (YYYY-MM-DD).
            date_to: Inclusive end date (YYYY-MM-DD).
            newest_first: Date order; ties break on campaign name.
            limit: Maximum rows returned.
            offset: Rows skipped.

        Returns:
            Tuple of (rows, total matching rows).
        """
        conditions = ["m.workspace_id = ?"]
        params: list = [workspace_id]
        if platforms:
            conditions.append(f"m.platform IN ({','.join('?' * len(platforms))})")
            params.extend(platforms)
        if campaign_id:
            conditions.append("m.campaign_id = ?")
            params.append(campaign_id)
        if date_from:
            conditions.append("m.date >= ?")
            params.append(date_from)
        if date_to:
            conditions.append("m.date <= ?")
            params.append(date_to)
        where_sql = " AND ".join(conditions)

        count_row = await self._execute(
            f"SELECT COUNT(*) AS total FROM metrics_daily m WHERE {where_sql}",
            tuple(params),
            fetch="one",
        )
        direction = "DESC" if newest_first else "ASC"
        rows = await self._execute(
            f"""
            SELECT m.campaign_id, m.date, m.platform,
                   m.impressions, m.clicks, m.spend, m.conversions, m.revenue,
                   m.upload_job_id, m.updated_at, c.name AS campaign_name
            FROM metrics_daily m
            JOIN campaigns c ON c.id = m.campaign_id
            WHERE {where_sql}
            ORDER BY m.date {direction}, c.name ASC, m.campaign_id ASC
            LIMIT ? OFFSET ?
            """,
            tuple(params) + (limit, offset),
            fetch="all",
        )
        return [
            MetricsDailyRow(
                campaign_id=row["campaign_id"],
                date=row["date"],
                impressions=row["impressions"],
                clicks=row["clicks"],
                spend=row["spend"],
                conversions=row["conversions"],
                revenue=row["revenue"],
                platform=row["platform"],
                campaign_name=row["campaign_name"],
                upload_job_id=row["upload_job_id"],
                updated_at=row["updated_at"],
            )
            for row in rows
        ], count_row["total"]

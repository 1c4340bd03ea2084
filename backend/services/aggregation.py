"""Metrics Aggregation Service.

Rolls metrics_daily up per campaign, per platform, per day and per workspace:
- Summed impressions, clicks, spend, conversions, revenue
- Derived ratios: ctr, cpm, cpc, cpa, cvr, roas

Every ratio divides by NULLIF(denominator, 0), so a zero denominator yields
NULL (None) rather than an error or infinity.

Sorting goes through SORT_EXPRESSIONS only: the caller names a key and the
ORDER BY clause uses the same aggregate expression as the SELECT list.
Unknown keys, bad dates and unknown platforms raise QueryValidationError
before any SQL runs.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Sequence

from storage.database import Database
from storage.models import Ad, AdSet, MetricsDailyRow, Platform
from storage.repositories import CampaignRepository, MetricsRepository

logger = logging.getLogger(__name__)


class QueryValidationError(ValueError):
    """Raised when aggregation query parameters are invalid."""

    pass


# ============================================================================
# AGGREGATE EXPRESSIONS
# ============================================================================

SUM_EXPRESSIONS = {
    "impressions": "COALESCE(SUM(m.impressions), 0)",
    "clicks": "COALESCE(SUM(m.clicks), 0)",
    "spend": "COALESCE(SUM(m.spend), 0)",
    "conversions": "COALESCE(SUM(m.conversions), 0)",
    "revenue": "COALESCE(SUM(m.revenue), 0)",
}

RATIO_EXPRESSIONS = {
    "ctr": "CAST(SUM(m.clicks) AS REAL) / NULLIF(SUM(m.impressions), 0)",
    "cpm": "SUM(m.spend) * 1000.0 / NULLIF(SUM(m.impressions), 0)",
    "cpc": "SUM(m.spend) / NULLIF(SUM(m.clicks), 0)",
    "cpa": "SUM(m.spend) / NULLIF(SUM(m.conversions), 0)",
    "cvr": "CAST(SUM(m.conversions) AS REAL) / NULLIF(SUM(m.clicks), 0)",
    "roas": "SUM(m.revenue) / NULLIF(SUM(m.spend), 0)",
}

METRIC_EXPRESSIONS = {**SUM_EXPRESSIONS, **RATIO_EXPRESSIONS}

# sort_by key -> expression used in both SELECT and ORDER BY
SORT_EXPRESSIONS = {
    **METRIC_EXPRESSIONS,
    "name": "c.name",
    "platform": "c.platform",
    "created_at": "c.created_at",
}

SORT_ORDERS = ("asc", "desc")

METRICS_SELECT = ",\n    ".join(
    f"{expr} AS {key}" for key, expr in METRIC_EXPRESSIONS.items()
)


# ============================================================================
# RESULT TYPES
# ============================================================================

@dataclass
class AggregateMetrics:
    """Summed metrics and derived ratios (None when undefined)."""
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0
    conversions: float = 0.0
    revenue: float = 0.0
    ctr: Optional[float] = None
    cpm: Optional[float] = None
    cpc: Optional[float] = None
    cpa: Optional[float] = None
    cvr: Optional[float] = None
    roas: Optional[float] = None

    @classmethod
    def from_row(cls, row) -> "AggregateMetrics":
        return cls(**{key: row[key] for key in METRIC_EXPRESSIONS})


@dataclass
class CampaignRollup:
    """Campaign identity with its metrics over the query window."""
    id: str
    name: str
    platform: str
    platform_campaign_id: Optional[str] = None
    status: str = "active"
    days_active: int = 0
    metrics: AggregateMetrics = field(default_factory=AggregateMetrics)


@dataclass
class CampaignPage:
    campaigns: list[CampaignRollup]
    total: int
    page: int
    limit: int


@dataclass
class PlatformRollup:
    platform: str
    campaign_count: int
    metrics: AggregateMetrics


@dataclass
class DailyRollup:
    date: str
    metrics: AggregateMetrics


@dataclass
class DailyMetricsPage:
    """Stored (campaign, date) rows, one page."""
    rows: list[MetricsDailyRow]
    total: int
    page: int
    limit: int


@dataclass
class WorkspaceOverview:
    """Workspace totals over the query window."""
    metrics: AggregateMetrics
    campaign_count: int = 0
    platform_count: int = 0
    first_date: Optional[str] = None
    last_date: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None


@dataclass
class CampaignDetail:
    campaign: CampaignRollup
    daily: list[DailyRollup] = field(default_factory=list)
    ad_sets: list[tuple[AdSet, list[Ad]]] = field(default_factory=list)


# ============================================================================
# VALIDATION
# ============================================================================

def validate_sort(sort_by: str, sort_order: str) -> tuple[str, str]:
    """Resolve a sort key to its aggregate expression and SQL direction."""
    if sort_by not in SORT_EXPRESSIONS:
        raise QueryValidationError(
            f"Invalid sort_by '{sort_by}'. Allowed: {', '.join(sorted(SORT_EXPRESSIONS))}"
        )
    order = (sort_order or "").lower()
    if order not in SORT_ORDERS:
        raise QueryValidationError(f"Invalid sort_order '{sort_order}'. Allowed: asc, desc")
    return SORT_EXPRESSIONS[sort_by], order.upper()


def validate_platforms(platforms: Optional[Sequence[str]]) -> list[str]:
    """Accepts repeated values and comma-separated lists."""
    if not platforms:
        return []
    platforms = [p.strip() for item in platforms for p in item.split(",") if p.strip()]
    allowed = Platform.values()
    unknown = [p for p in platforms if p not in allowed]
    if unknown:
        raise QueryValidationError(
            f"Unknown platform(s): {', '.join(unknown)}. Allowed: {', '.join(allowed)}"
        )
    return list(dict.fromkeys(platforms))


def validate_date_range(
    date_from: Optional[str],
    date_to: Optional[str],
) -> tuple[Optional[str], Optional[str]]:
    """Check both bounds are ISO dates and from <= to."""
    parsed = []
    for label, value in (("date_from", date_from), ("date_to", date_to)):
        if value is None or value == "":
            parsed.append(None)
            continue
        try:
            parsed.append(date.fromisoformat(value))
        except ValueError:
            raise QueryValidationError(f"{label} must be a YYYY-MM-DD date, got '{value}'") from None

    start, end = parsed
    if start and end and start > end:
        raise QueryValidationError(f"date_from {start} is after date_to {end}")
    return (
        start.isoformat() if start else None,
        end.isoformat() if end else None,
    )


def _date_conditions(
    date_from: Optional[str],
    date_to: Optional[str],
    alias: str = "m",
) -> tuple[list[str], list]:
    conditions, params = [], []
    if date_from:
        conditions.append(f"{alias}.date >= ?")
        params.append(date_from)
    if date_to:
        conditions.append(f"{alias}.date <= ?")
        params.append(date_to)
    return conditions, params


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ============================================================================
# SERVICE
# ============================================================================

class MetricsAggregationService:
    """
    Read-side rollups over metrics_daily.

    All public methods validate their parameters first; no SQL runs for an
    invalid request.
    """

    def __init__(self, db: Database):
        self.db = db

    async def get_campaigns(
        self,
        workspace_id: str,
        platforms: Optional[Sequence[str]] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        sort_by: str = "spend",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
        include_empty: bool = True,
    ) -> CampaignPage:
        """
        Get campaigns with aggregated metrics for a date window.

        Args:
            workspace_id: Workspace to query
            platforms: Restrict to these platforms (all when empty)
            date_from: Inclusive start date (YYYY-MM-DD)
            date_to: Inclusive end date (YYYY-MM-DD)
            sort_by: Key of SORT_EXPRESSIONS
            sort_order: asc or desc; NULL ratios always sort last
            page: 1-based page number
            limit: Page size
            search: Case-insensitive substring of the campaign name
            include_empty: Include campaigns with no metrics in the window

        Returns:
            CampaignPage with the requested page and the total match count
        """
        sort_expr, direction = validate_sort(sort_by, sort_order)
        platforms = validate_platforms(platforms)
        date_from, date_to = validate_date_range(date_from, date_to)
        if page < 1:
            raise QueryValidationError("page must be at least 1")
        if limit < 1:
            raise QueryValidationError("limit must be at least 1")
        logger.debug(f"Campaign rollup for {workspace_id}: {sort_by} {direction}, page {page}")

        grouped_sql, params = self._campaign_query(
            workspace_id, platforms, date_from, date_to, search, include_empty,
        )

        count_row = await self.db.query_one(
            f"SELECT COUNT(*) AS total FROM ({grouped_sql})",
            tuple(params),
        )
        rows = await self.db.query(
            f"""
            {grouped_sql}
            ORDER BY ({sort_expr}) IS NULL, {sort_expr} {direction}, c.name ASC, c.id ASC
            LIMIT ? OFFSET ?
            """,
            tuple(params) + (limit, (page - 1) * limit),
        )

        return CampaignPage(
            campaigns=[self._row_to_rollup(row) for row in rows],
            total=count_row["total"],
            page=page,
            limit=limit,
        )

    async def get_campaign_detail(
        self,
        workspace_id: str,
        campaign_id: str,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> Optional[CampaignDetail]:
        """Single campaign with totals, daily breakdown and ad set/ad hierarchy."""
        date_from, date_to = validate_date_range(date_from, date_to)

        join_conditions, params = _date_conditions(date_from, date_to)
        join_sql = "".join(f" AND {c}" for c in join_conditions)
        row = await self.db.query_one(
            f"""
            SELECT
                c.id, c.name, c.platform, c.platform_campaign_id, c.status,
                COUNT(m.date) AS days_active,
                {METRICS_SELECT}
            FROM campaigns c
            LEFT JOIN metrics_daily m ON m.campaign_id = c.id{join_sql}
            WHERE c.id = ? AND c.workspace_id = ?
            GROUP BY c.id
            """,
            tuple(params) + (campaign_id, workspace_id),
        )
        if row is None:
            return None

        daily = await self.get_daily_trends(
            workspace_id,
            date_from=date_from,
            date_to=date_to,
            campaign_id=campaign_id,
        )
        ad_sets = await CampaignRepository(self.db).get_hierarchy(campaign_id)

        return CampaignDetail(campaign=self._row_to_rollup(row), daily=daily, ad_sets=ad_sets)

    async def get_platform_comparison(
        self,
        workspace_id: str,
        platforms: Optional[Sequence[str]] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> list[PlatformRollup]:
        """Metrics grouped by platform, highest spend first."""
        platforms = validate_platforms(platforms)
        date_from, date_to = validate_date_range(date_from, date_to)
        where_sql, params = self._metrics_where(workspace_id, platforms, date_from, date_to)

        rows = await self.db.query(
            f"""
            SELECT
                m.platform,
                COUNT(DISTINCT m.campaign_id) AS campaign_count,
                {METRICS_SELECT}
            FROM metrics_daily m
            WHERE {where_sql}
            GROUP BY m.platform
            ORDER BY {SUM_EXPRESSIONS['spend']} DESC, m.platform ASC
            """,
            tuple(params),
        )
        return [
            PlatformRollup(
                platform=row["platform"],
                campaign_count=row["campaign_count"],
                metrics=AggregateMetrics.from_row(row),
            )
            for row in rows
        ]

    async def get_daily_trends(
        self,
        workspace_id: str,
        platforms: Optional[Sequence[str]] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        campaign_id: Optional[str] = None,
    ) -> list[DailyRollup]:
        """Metrics grouped by date, oldest first."""
        platforms = validate_platforms(platforms)
        date_from, date_to = validate_date_range(date_from, date_to)
        where_sql, params = self._metrics_where(workspace_id, platforms, date_from, date_to)
        if campaign_id:
            where_sql += " AND m.campaign_id = ?"
            params.append(campaign_id)

        rows = await self.db.query(
            f"""
            SELECT m.date, {METRICS_SELECT}
            FROM metrics_daily m
            WHERE {where_sql}
            GROUP BY m.date
            ORDER BY m.date ASC
            """,
            tuple(params),
        )
        return [DailyRollup(date=row["date"], metrics=AggregateMetrics.from_row(row)) for row in rows]

    async def get_daily_metrics(
        self,
        workspace_id: str,
        platforms: Optional[Sequence[str]] = None,
        campaign_id: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 50,
    ) -> DailyMetricsPage:
        """Raw metrics_daily rows, newest first unless sort_order is asc."""
        platforms = validate_platforms(platforms)
        date_from, date_to = validate_date_range(date_from, date_to)
        order = (sort_order or "").lower()
        if order not in SORT_ORDERS:
            raise QueryValidationError(f"Invalid sort_order '{sort_order}'. Allowed: asc, desc")
        if page < 1:
            raise QueryValidationError("page must be at least 1")
        if limit < 1:
            raise QueryValidationError("limit must be at least 1")

        rows, total = await MetricsRepository(self.db).list_daily(
            workspace_id,
            platforms=platforms,
            campaign_id=campaign_id,
            date_from=date_from,
            date_to=date_to,
            newest_first=order == "desc",
            limit=limit,
            offset=(page - 1) * limit,
        )
        return DailyMetricsPage(rows=rows, total=total, page=page, limit=limit)

    async def get_overview(
        self,
        workspace_id: str,
        platforms: Optional[Sequence[str]] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> WorkspaceOverview:
        """Workspace totals for the window."""
        platforms = validate_platforms(platforms)
        date_from, date_to = validate_date_range(date_from, date_to)
        where_sql, params = self._metrics_where(workspace_id, platforms, date_from, date_to)

        row = await self.db.query_one(
            f"""
            SELECT
                COUNT(DISTINCT m.campaign_id) AS campaign_count,
                COUNT(DISTINCT m.platform) AS platform_count,
                MIN(m.date) AS first_date,
                MAX(m.date) AS last_date,
                {METRICS_SELECT}
            FROM metrics_daily m
            WHERE {where_sql}
            """,
            tuple(params),
        )
        return WorkspaceOverview(
            metrics=AggregateMetrics.from_row(row),
            campaign_count=row["campaign_count"] or 0,
            platform_count=row["platform_count"] or 0,
            first_date=row["first_date"],
            last_date=row["last_date"],
            date_from=date_from,
            date_to=date_to,
        )

    # ==================== Query Builders ====================

    def _campaign_query(
        self,
        workspace_id: str,
        platforms: list[str],
        date_from: Optional[str],
        date_to: Optional[str],
        search: Optional[str],
        include_empty: bool,
    ) -> tuple[str, list]:
        """Grouped campaign SELECT (no ORDER BY / LIMIT) and its parameters.

        The date window sits in the JOIN so campaigns without rows in range
        still appear (with zero sums) when include_empty is set.
        """
        join_conditions, params = _date_conditions(date_from, date_to)
        join_sql = "".join(f" AND {c}" for c in join_conditions)

        where = ["c.workspace_id = ?"]
        params.append(workspace_id)
        if platforms:
            where.append(f"c.platform IN ({','.join('?' * len(platforms))})")
            params.extend(platforms)
        if search:
            where.append("c.name LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(search.strip())}%")

        having = "" if include_empty else "HAVING COUNT(m.date) > 0"

        sql = f"""
            SELECT
                c.id, c.name, c.platform, c.platform_campaign_id, c.status, c.created_at,
                COUNT(m.date) AS days_active,
                {METRICS_SELECT}
            FROM campaigns c
            LEFT JOIN metrics_daily m ON m.campaign_id = c.id{join_sql}
            WHERE {' AND '.join(where)}
            GROUP BY c.id
            {having}
        """
        return sql, params

    def _metrics_where(
        self,
        workspace_id: str,
        platforms: list[str],
        date_from: Optional[str],
        date_to: Optional[str],
    ) -> tuple[str, list]:
        conditions = ["m.workspace_id = ?"]
        params: list = [workspace_id]
        if platforms:
            conditions.append(f"m.platform IN ({','.join('?' * len(platforms))})")
            params.extend(platforms)
        date_conditions, date_params = _date_conditions(date_from, date_to)
        conditions.extend(date_conditions)
        params.extend(date_params)
        return " AND ".join(conditions), params

    @staticmethod
    def _row_to_rollup(row) -> CampaignRollup:
        return CampaignRollup(
            id=row["id"],
            name=row["name"],
            platform=row["platform"],
            platform_campaign_id=row["platform_campaign_id"],
            status=row["status"],
            days_active=row["days_active"] or 0,
            metrics=AggregateMetrics.from_row(row),
        )

"""Tests for metrics aggregation.

Tests cover:
- Summed metrics and derived ratios
- NULL ratios for zero denominators, sorted last in both directions
- Sort key whitelist checked before any SQL runs
- Platform, date window, search and pagination filters
- Platform comparison, daily trends, overview and campaign detail

Run with: pytest tests/test_aggregation.py -v
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from services.aggregation import (
    MetricsAggregationService,
    QueryValidationError,
    validate_date_range,
    validate_platforms,
    validate_sort,
)
from storage import CampaignRepository, MetricsDailyRow, MetricsRepository


async def seed(db, rows, workspace_id: str = "ws1") -> dict:
    """Insert metrics rows.

    Each row is (platform, campaign name, date, impressions, clicks, spend,
    conversions, revenue). Returns campaign name -> id.
    """
    campaigns = CampaignRepository(db)
    metrics = MetricsRepository(db)
    ids = {}

    def _insert(conn):
        campaigns.ensure_workspace(conn, workspace_id)
        for platform, name, day, impressions, clicks, spend, conversions, revenue in rows:
            campaign_id = campaigns.resolve_campaign(conn, workspace_id, platform, name)
            ids[name] = campaign_id
            metrics.upsert_daily(
                conn,
                MetricsDailyRow(campaign_id, day, impressions, clicks, spend, conversions, revenue),
                workspace_id=workspace_id,
                platform=platform,
            )

    await db.run_in_transaction(_insert)
    return ids


class TestValidation:
    """Tests for parameter validation helpers."""

    def test_sort_whitelist(self):
        expr, direction = validate_sort("roas", "DESC")
        assert "NULLIF" in expr
        assert direction == "DESC"

    @pytest.mark.parametrize("sort_by", ["id; DROP TABLE campaigns", "random()", "spend desc", ""])
    def test_unknown_sort_key(self, sort_by):
        with pytest.raises(QueryValidationError):
            validate_sort(sort_by, "desc")

    def test_unknown_sort_order(self):
        with pytest.raises(QueryValidationError):
            validate_sort("spend", "sideways")

    def test_platforms_comma_separated(self):
        assert validate_platforms(["facebook,google", "facebook"]) == ["facebook", "google"]

    def test_unknown_platform(self):
        with pytest.raises(QueryValidationError):
            validate_platforms(["myspace"])

    def test_date_range(self):
        assert validate_date_range("2024-01-01", None) == ("2024-01-01", None)
        with pytest.raises(QueryValidationError):
            validate_date_range("2024-02-01", "2024-01-01")
        with pytest.raises(QueryValidationError):
            validate_date_range("01/02/2024", None)


@pytest.mark.asyncio
class TestNoQueryOnInvalidInput:
    """Tests that invalid parameters are rejected before touching the database."""

    async def test_invalid_sort_runs_no_sql(self):
        db = MagicMock()
        db.query = AsyncMock()
        db.query_one = AsyncMock()
        service = MetricsAggregationService(db)

        with pytest.raises(QueryValidationError):
            await service.get_campaigns("ws1", sort_by="name; DELETE FROM campaigns")

        db.query.assert_not_awaited()
        db.query_one.assert_not_awaited()

    async def test_invalid_dates_run_no_sql(self):
        db = MagicMock()
        db.query = AsyncMock()
        db.query_one = AsyncMock()
        service = MetricsAggregationService(db)

        with pytest.raises(QueryValidationError):
            await service.get_overview("ws1", date_from="2024-03-01", date_to="2024-01-01")

        db.query_one.assert_not_awaited()

    async def test_invalid_daily_order_runs_no_sql(self):
        db = MagicMock()
        db.query = AsyncMock()
        db.query_one = AsyncMock()
        service = MetricsAggregationService(db)

        with pytest.raises(QueryValidationError):
            await service.get_daily_metrics("ws1", sort_order="sideways")

        db.query.assert_not_awaited()
        db.query_one.assert_not_awaited()


@pytest.mark.asyncio
class TestCampaignRollups:
    """Tests for MetricsAggregationService.get_campaigns."""

    async def test_sums_and_ratios(self, temp_db):
        await seed(temp_db, [
            ("facebook", "A", "2024-01-01", 1000, 50, 10.0, 5, 40.0),
            ("facebook", "A", "2024-01-02", 1000, 50, 10.0, 5, 40.0),
        ])
        page = await MetricsAggregationService(temp_db).get_campaigns("ws1")

        assert page.total == 1
        campaign = page.campaigns[0]
        m = campaign.metrics
        assert campaign.days_active == 2
        assert (m.impressions, m.clicks, m.spend, m.conversions, m.revenue) == (2000, 100, 20.0, 10.0, 80.0)
        assert m.ctr == pytest.approx(0.05)
        assert m.cpm == pytest.approx(10.0)
        assert m.cpc == pytest.approx(0.2)
        assert m.cpa == pytest.approx(2.0)
        assert m.cvr == pytest.approx(0.1)
        assert m.roas == pytest.approx(4.0)

    async def test_zero_denominators_are_null(self, temp_db):
        await seed(temp_db, [("facebook", "Idle", "2024-01-01", 0, 0, 0.0, 0, 0.0)])
        page = await MetricsAggregationService(temp_db).get_campaigns("ws1")

        m = page.campaigns[0].metrics
        assert m.spend == 0
        assert (m.ctr, m.cpm, m.cpc, m.cpa, m.cvr, m.roas) == (None,) * 6

    async def test_null_ratio_sorts_last(self, temp_db):
        """Test a zero-spend campaign sorts after all others by roas."""
        await seed(temp_db, [
            ("facebook", "Zero", "2024-01-01", 100, 10, 0.0, 0, 0.0),
            ("facebook", "Strong", "2024-01-01", 100, 10, 100.0, 5, 250.0),
            ("facebook", "Weak", "2024-01-01", 100, 10, 100.0, 1, 50.0),
        ])
        service = MetricsAggregationService(temp_db)

        desc = await service.get_campaigns("ws1", sort_by="roas", sort_order="desc")
        assert [c.name for c in desc.campaigns] == ["Strong", "Weak", "Zero"]
        assert desc.campaigns[-1].metrics.roas is None

        asc = await service.get_campaigns("ws1", sort_by="roas", sort_order="asc")
        assert [c.name for c in asc.campaigns] == ["Weak", "Strong", "Zero"]

    async def test_sort_by_name(self, temp_db):
        await seed(temp_db, [
            ("facebook", "b", "2024-01-01", 1, 0, 1.0, 0, 0.0),
            ("facebook", "a", "2024-01-01", 1, 0, 2.0, 0, 0.0),
        ])
        page = await MetricsAggregationService(temp_db).get_campaigns("ws1", sort_by="name", sort_order="asc")
        assert [c.name for c in page.campaigns] == ["a", "b"]

    async def test_platform_filter(self, temp_db):
        await seed(temp_db, [
            ("facebook", "F", "2024-01-01", 1, 0, 1.0, 0, 0.0),
            ("google", "G", "2024-01-01", 1, 0, 1.0, 0, 0.0),
            ("tiktok", "T", "2024-01-01", 1, 0, 1.0, 0, 0.0),
        ])
        page = await MetricsAggregationService(temp_db).get_campaigns(
            "ws1", platforms=["facebook,google"], sort_by="name", sort_order="asc",
        )
        assert [c.name for c in page.campaigns] == ["F", "G"]

    async def test_date_window(self, temp_db):
        """Test the window limits sums and include_empty controls zero rows."""
        await seed(temp_db, [
            ("facebook", "A", "2024-01-01", 10, 1, 1.0, 0, 0.0),
            ("facebook", "A", "2024-01-15", 10, 1, 2.0, 0, 0.0),
            ("facebook", "B", "2024-02-01", 10, 1, 5.0, 0, 0.0),
        ])
        service = MetricsAggregationService(temp_db)

        page = await service.get_campaigns("ws1", date_from="2024-01-10", date_to="2024-01-31")
        by_name = {c.name: c for c in page.campaigns}
        assert by_name["A"].metrics.spend == 2.0
        assert by_name["B"].metrics.spend == 0
        assert by_name["B"].days_active == 0

        page = await service.get_campaigns(
            "ws1", date_from="2024-01-10", date_to="2024-01-31", include_empty=False,
        )
        assert [c.name for c in page.campaigns] == ["A"]
        assert page.total == 1

    async def test_search_escapes_wildcards(self, temp_db):
        await seed(temp_db, [
            ("facebook", "Black_Friday", "2024-01-01", 1, 0, 1.0, 0, 0.0),
            ("facebook", "BlackXFriday", "2024-01-01", 1, 0, 1.0, 0, 0.0),
        ])
        page = await MetricsAggregationService(temp_db).get_campaigns("ws1", search="k_F")
        assert [c.name for c in page.campaigns] == ["Black_Friday"]

    async def test_pagination(self, temp_db):
        await seed(temp_db, [
            ("facebook", name, "2024-01-01", 1, 0, spend, 0, 0.0)
            for name, spend in (("A", 3.0), ("B", 2.0), ("C", 1.0))
        ])
        service = MetricsAggregationService(temp_db)

        page = await service.get_campaigns("ws1", page=2, limit=2)
        assert page.total == 3
        assert [c.name for c in page.campaigns] == ["C"]

    async def test_workspace_isolation(self, temp_db):
        await seed(temp_db, [("facebook", "Mine", "2024-01-01", 1, 0, 1.0, 0, 0.0)])
        await seed(temp_db, [("facebook", "Theirs", "2024-01-01", 1, 0, 1.0, 0, 0.0)], workspace_id="ws2")

        page = await MetricsAggregationService(temp_db).get_campaigns("ws1")
        assert [c.name for c in page.campaigns] == ["Mine"]


@pytest.mark.asyncio
class TestWorkspaceRollups:
    """Tests for comparison, trends, overview and detail."""

    async def test_platform_comparison(self, temp_db):
        await seed(temp_db, [
            ("facebook", "F1", "2024-01-01", 100, 10, 10.0, 1, 20.0),
            ("facebook", "F2", "2024-01-01", 100, 10, 10.0, 1, 20.0),
            ("google", "G1", "2024-01-01", 100, 10, 50.0, 1, 0.0),
        ])
        rows = await MetricsAggregationService(temp_db).get_platform_comparison("ws1")

        assert [r.platform for r in rows] == ["google", "facebook"]
        assert rows[1].campaign_count == 2
        assert rows[1].metrics.spend == 20.0
        assert rows[1].metrics.roas == pytest.approx(2.0)
        assert rows[0].metrics.roas == 0

    async def test_daily_trends(self, temp_db):
        ids = await seed(temp_db, [
            ("facebook", "A", "2024-01-02", 10, 1, 1.0, 0, 0.0),
            ("facebook", "A", "2024-01-01", 10, 1, 2.0, 0, 0.0),
            ("google", "B", "2024-01-01", 10, 1, 3.0, 0, 0.0),
        ])
        service = MetricsAggregationService(temp_db)

        trends = await service.get_daily_trends("ws1")
        assert [(t.date, t.metrics.spend) for t in trends] == [("2024-01-01", 5.0), ("2024-01-02", 1.0)]

        trends = await service.get_daily_trends("ws1", campaign_id=ids["B"])
        assert [(t.date, t.metrics.spend) for t in trends] == [("2024-01-01", 3.0)]

    async def test_overview(self, temp_db):
        await seed(temp_db, [
            ("facebook", "A", "2024-01-01", 1000, 10, 10.0, 2, 30.0),
            ("google", "B", "2024-01-05", 1000, 10, 10.0, 2, 10.0),
        ])
        overview = await MetricsAggregationService(temp_db).get_overview("ws1")

        assert overview.campaign_count == 2
        assert overview.platform_count == 2
        assert overview.first_date == "2024-01-01"
        assert overview.last_date == "2024-01-05"
        assert overview.metrics.spend == 20.0
        assert overview.metrics.roas == pytest.approx(2.0)

    async def test_overview_empty_workspace(self, temp_db):
        overview = await MetricsAggregationService(temp_db).get_overview("nobody")

        assert overview.campaign_count == 0
        assert overview.metrics.impressions == 0
        assert overview.metrics.ctr is None
        assert overview.first_date is None

    async def test_campaign_detail(self, temp_db):
        ids = await seed(temp_db, [
            ("facebook", "A", "2024-01-01", 10, 1, 1.0, 0, 0.0),
            ("facebook", "A", "2024-01-02", 10, 1, 2.0, 0, 0.0),
        ])

        def _hierarchy(conn):
            campaigns = CampaignRepository(temp_db)
            ad_set_id = campaigns.resolve_ad_set(conn, ids["A"], "Set 1")
            campaigns.resolve_ad(conn, ad_set_id, "Ad 1")

        await temp_db.run_in_transaction(_hierarchy)
        service = MetricsAggregationService(temp_db)

        detail = await service.get_campaign_detail("ws1", ids["A"])
        assert detail.campaign.metrics.spend == 3.0
        assert [d.date for d in detail.daily] == ["2024-01-01", "2024-01-02"]
        ad_set, ads = detail.ad_sets[0]
        assert ad_set.name == "Set 1"
        assert [a.name for a in ads] == ["Ad 1"]

        assert await service.get_campaign_detail("ws2", ids["A"]) is None
        assert await service.get_campaign_detail("ws1", "missing") is None


@pytest.mark.asyncio
class TestDailyMetrics:
    """Tests for MetricsAggregationService.get_daily_metrics."""

    async def test_rows_newest_first(self, temp_db):
        ids = await seed(temp_db, [
            ("facebook", "A", "2024-01-01", 10, 1, 1.0, 0, 0.0),
            ("facebook", "B", "2024-01-02", 20, 2, 2.0, 0, 0.0),
            ("google", "C", "2024-01-02", 30, 3, 3.0, 0, 0.0),
        ])
        result = await MetricsAggregationService(temp_db).get_daily_metrics("ws1")

        assert result.total == 3
        assert [(r.date, r.campaign_name) for r in result.rows] == [
            ("2024-01-02", "B"),
            ("2024-01-02", "C"),
            ("2024-01-01", "A"),
        ]
        first = result.rows[0]
        assert first.campaign_id == ids["B"]
        assert first.platform == "facebook"
        assert first.impressions == 20
        assert first.spend == 2.0

    async def test_filters(self, temp_db):
        ids = await seed(temp_db, [
            ("facebook", "A", "2024-01-01", 10, 1, 1.0, 0, 0.0),
            ("facebook", "A", "2024-01-03", 10, 1, 1.0, 0, 0.0),
            ("google", "C", "2024-01-02", 30, 3, 3.0, 0, 0.0),
        ])
        service = MetricsAggregationService(temp_db)

        by_platform = await service.get_daily_metrics("ws1", platforms=["google"])
        assert [r.campaign_name for r in by_platform.rows] == ["C"]

        by_campaign = await service.get_daily_metrics(
            "ws1", campaign_id=ids["A"], sort_order="asc",
        )
        assert [r.date for r in by_campaign.rows] == ["2024-01-01", "2024-01-03"]

        windowed = await service.get_daily_metrics(
            "ws1", date_from="2024-01-02", date_to="2024-01-02",
        )
        assert windowed.total == 1
        assert windowed.rows[0].campaign_name == "C"

    async def test_pagination_and_isolation(self, temp_db):
        await seed(temp_db, [
            ("facebook", "A", f"2024-01-0{day}", 10, 1, 1.0, 0, 0.0) for day in range(1, 6)
        ])
        await seed(temp_db, [("facebook", "Other", "2024-01-01", 1, 1, 1.0, 0, 0.0)], workspace_id="ws2")
        service = MetricsAggregationService(temp_db)

        page = await service.get_daily_metrics("ws1", page=2, limit=2)
        assert page.total == 5
        assert [r.date for r in page.rows] == ["2024-01-03", "2024-01-02"]

        last = await service.get_daily_metrics("ws1", page=3, limit=2)
        assert [r.date for r in last.rows] == ["2024-01-01"]

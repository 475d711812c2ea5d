"""Tests for merging sparse series onto the bucket grid."""

from datetime import date

import pytest

from policy_crm.reporting.merger import (
    MetricSeries,
    ReportRow,
    merge_series,
    zero_fill_categories,
)
from policy_crm.reporting.periods import generate_buckets

GRID = generate_buckets(date(2024, 1, 1), date(2024, 1, 3))


class TestMergeSeries:
    def test_gaps_filled_with_zero_in_grid_order(self) -> None:
        rows = merge_series(
            GRID, [MetricSeries("revenue", {"2024-01-03": 30, "2024-01-01": 10})]
        )

        assert [row.to_flat() for row in rows] == [
            {"label": "2024-01-01", "revenue": 10},
            {"label": "2024-01-02", "revenue": 0},
            {"label": "2024-01-03", "revenue": 30},
        ]

    def test_off_grid_labels_dropped(self) -> None:
        rows = merge_series(
            GRID, [MetricSeries("registered", {"2023-12-31": 4, "2024-01-02": 1})]
        )

        assert [row.metrics["registered"] for row in rows] == [0, 1, 0]
        assert all(row.label != "2023-12-31" for row in rows)

    def test_several_series_share_rows(self) -> None:
        rows = merge_series(
            GRID,
            [
                MetricSeries("registered", {"2024-01-01": 2}),
                MetricSeries("policyBuyers", {"2024-01-02": 1}),
            ],
        )

        assert rows[0] == ReportRow("2024-01-01", {"registered": 2, "policyBuyers": 0})
        assert rows[1] == ReportRow("2024-01-02", {"registered": 0, "policyBuyers": 1})

    def test_categorised_series_has_every_category(self) -> None:
        rows = merge_series(
            GRID,
            [
                MetricSeries(
                    "claims",
                    {("2024-01-02", "Approved"): 3, ("2024-01-02", "Unknown"): 9},
                    categories=("Pending", "Approved", "Rejected"),
                )
            ],
        )

        assert rows[1].metrics == {"Pending": 0, "Approved": 3, "Rejected": 0}
        assert rows[0].metrics == {"Pending": 0, "Approved": 0, "Rejected": 0}

    def test_merge_is_idempotent(self) -> None:
        series = [MetricSeries("revenue", {"2024-01-02": 5})]

        assert merge_series(GRID, series) == merge_series(GRID, series)

    def test_duplicate_metric_names_rejected(self) -> None:
        with pytest.raises(ValueError, match="duplicate metric 'claims'"):
            merge_series(GRID, [MetricSeries("claims"), MetricSeries("claims")])

    def test_empty_grid(self) -> None:
        assert merge_series((), [MetricSeries("revenue", {"2024-01-01": 1})]) == []


def test_zero_fill_categories_keeps_declared_order() -> None:
    filled = zero_fill_categories(
        ("Vehicle", "Travel", "Concierge"), {"Travel": 4, "Boat": 2}
    )

    assert filled == [("Vehicle", 0), ("Travel", 4), ("Concierge", 0)]

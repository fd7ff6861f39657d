from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from pricing.engine import (
    PriceSample,
    PricingError,
    SnapshotSample,
    SupplierQuote,
    VarianceBand,
    VarianceBands,
    aggregate_trend,
    build_market_report,
    classify_variance,
    compute_variance,
    summarize_snapshots,
)


def _quote(price, supplier_id="s1"):
    return SupplierQuote(supplier_id=supplier_id, supplier_name=f"Fournisseur {supplier_id}", price=price)


class TestComputeVariance:
    def test_report_per_supplier(self):
        result = compute_variance(10000, [_quote(11000, "a"), _quote(9000, "b")])

        assert result.ok
        report = result.report
        assert report.reference_price == 10000
        assert [line.variance for line in report.supplier_prices] == [1000, -1000]
        assert [line.variance_percentage for line in report.supplier_prices] == [
            Decimal("10"),
            Decimal("-10"),
        ]
        assert report.avg_variance == Decimal("0")
        assert report.avg_variance_percentage == Decimal("0")
        assert report.min_price == 9000
        assert report.max_price == 11000

    def test_missing_reference_price(self):
        for reference in (None, 0):
            result = compute_variance(reference, [_quote(11000)])
            assert not result.ok
            assert result.error is PricingError.MISSING_REFERENCE_PRICE
            assert result.report is None

    def test_no_quotes_pins_min_max_to_reference(self):
        result = compute_variance(10000, [])

        assert result.ok
        assert result.report.supplier_prices == ()
        assert result.report.avg_variance == Decimal("0")
        assert result.report.min_price == 10000
        assert result.report.max_price == 10000

    def test_variance_symmetry(self):
        # Prices equally spaced around the reference average to zero.
        result = compute_variance(10000, [_quote(10000 + d) for d in (-700, -200, 200, 700)])
        assert result.report.avg_variance == 0
        assert result.report.avg_variance_percentage == 0

    def test_rejects_non_integer_prices(self):
        with pytest.raises(TypeError):
            compute_variance(10000, [_quote(10500.5)])
        with pytest.raises(ValueError):
            compute_variance(10000, [_quote(-1)])

    def test_as_dict_rounds_and_bands(self):
        result = compute_variance(3000, [_quote(3100)])
        payload = result.report.as_dict(VarianceBands())

        assert payload["supplier_prices"][0]["variance_percentage"] == 3.33
        assert payload["supplier_prices"][0]["band"] == "normal"
        assert payload["avg_variance"] == 100.0


class TestClassifyVariance:
    def test_bands(self):
        assert classify_variance(Decimal("-5.01")) is VarianceBand.LOW
        assert classify_variance(Decimal("-5")) is VarianceBand.NORMAL
        assert classify_variance(Decimal("5")) is VarianceBand.NORMAL
        assert classify_variance(Decimal("5.01")) is VarianceBand.HIGH

    def test_idempotent(self):
        for value in (Decimal("-12"), Decimal("0"), Decimal("7.5")):
            assert classify_variance(value) is classify_variance(value)

    def test_custom_thresholds(self):
        bands = VarianceBands(low_threshold=Decimal("-1"), high_threshold=Decimal("1"))
        assert classify_variance(2, bands) is VarianceBand.HIGH

    def test_inverted_thresholds_rejected(self):
        with pytest.raises(ValueError):
            VarianceBands(low_threshold=Decimal("5"), high_threshold=Decimal("-5"))


class TestAggregateTrend:
    def test_daily_buckets_in_utc(self):
        day = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
        samples = [
            PriceSample(day, 10000),
            PriceSample(day + timedelta(hours=2), 11000),
            PriceSample(day + timedelta(days=1), 9000),
        ]

        buckets = aggregate_trend(samples)

        assert [b.date.isoformat() for b in buckets] == ["2024-03-01", "2024-03-02"]
        first = buckets[0]
        assert (first.avg_price, first.min_price, first.max_price, first.sample_count) == (
            10500,
            10000,
            11000,
            2,
        )
        assert buckets[1].sample_count == 1

    def test_output_sorted_by_date(self):
        base = datetime(2024, 3, 5, 12, tzinfo=timezone.utc)
        samples = [PriceSample(base - timedelta(days=n), 1000) for n in (0, 3, 1)]
        dates = [b.date for b in aggregate_trend(samples)]
        assert dates == sorted(dates)

    def test_bucket_follows_requested_timezone(self):
        late = datetime(2024, 3, 1, 23, 30, tzinfo=timezone.utc)
        assert aggregate_trend([PriceSample(late, 1000)])[0].date.isoformat() == "2024-03-01"
        paris = aggregate_trend([PriceSample(late, 1000)], tz=ZoneInfo("Europe/Paris"))
        assert paris[0].date.isoformat() == "2024-03-02"

    def test_naive_timestamps_rejected(self):
        with pytest.raises(ValueError):
            aggregate_trend([PriceSample(datetime(2024, 3, 1, 10), 1000)])

    def test_empty(self):
        assert aggregate_trend([]) == []


class TestSummaries:
    def test_summarize_snapshots(self):
        summary = summarize_snapshots([
            SnapshotSample(applied_price=11000, reference_price=10000, supplier_id="a", quantity=2),
            SnapshotSample(applied_price=9000, reference_price=10000, supplier_id="b", quantity=1),
            SnapshotSample(applied_price=9500, supplier_id="a", quantity=3),
        ])

        assert summary.supplier_price_min == 9000
        assert summary.supplier_price_max == 11000
        assert summary.supplier_price_avg == 9833
        assert summary.supplier_price_median == 9500
        assert summary.reference_price_avg == 10000
        assert summary.avg_variance_percentage == Decimal("0")
        assert summary.max_variance_percentage == Decimal("10")
        assert summary.total_orders == 3
        assert summary.total_quantity == 6
        assert summary.total_suppliers == 2

    def test_summarize_empty(self):
        assert summarize_snapshots([]) is None

    def test_market_report(self):
        report = build_market_report(
            total_products=4,
            with_reference_prices=3,
            with_supplier_prices=2,
            variance_percentages=[Decimal("4"), Decimal("-2"), Decimal("0")],
            generated_for={"zone": None},
        )

        payload = report.as_dict()
        assert payload["avg_variance"] == 0.67
        assert payload["products_above_reference"] == 1
        assert payload["products_below_reference"] == 1
        assert payload["zone"] is None

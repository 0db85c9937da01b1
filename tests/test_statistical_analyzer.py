"""
Tests for the statistical routines behind every insight family.

Covers:
  - Minimum-sample preconditions (7 for trends, 5 for outliers, 30 for seasonality)
  - Linear trend fitting on a clean ramp
  - Z-score and IQR outlier detection on a single spike
  - Significance, correlation and forecasting edge cases
"""
from collections import defaultdict
from datetime import datetime, timedelta

import pytest

from growth_insights.ml.statistical_analyzer import StatisticalAnalyzer
from growth_insights.models.insight import MetricSample, Severity


START = datetime(2024, 3, 1)


def _series(values, start=START, source="shopify"):
    return [
        MetricSample(timestamp=start + timedelta(days=i), value=float(v), source_tag=source)
        for i, v in enumerate(values)
    ]


@pytest.fixture
def analyzer():
    return StatisticalAnalyzer()


# ────────────────────────────────────────────
# TRENDS
# ────────────────────────────────────────────


class TestTrend:

    def test_clean_ramp_is_strong_increasing_trend(self, analyzer):
        trend = analyzer.calculate_trend(_series(range(100, 131)))

        assert trend is not None
        assert trend.direction == "increasing"
        assert trend.slope > 0
        assert trend.slope == pytest.approx(1.0)
        assert trend.r_squared > 0.9
        assert trend.strength == "strong"
        assert trend.sample_count == 31
        assert trend.projected_value == pytest.approx(131.0)

    def test_significance_of_clean_ramp(self, analyzer):
        trend = analyzer.calculate_trend(_series(range(100, 131)))
        assert trend.p_value < 0.01
        assert trend.significance == "high"

    def test_decreasing_series(self, analyzer):
        trend = analyzer.calculate_trend(_series([200 - 3 * i for i in range(20)]))
        assert trend.direction == "decreasing"
        assert trend.slope == pytest.approx(-3.0)

    def test_constant_series_has_no_fit(self, analyzer):
        trend = analyzer.calculate_trend(_series([50] * 10))
        assert trend.r_squared == 0.0
        assert trend.p_value == 1.0
        assert trend.direction == "stable"

    def test_needs_seven_points(self, analyzer):
        assert analyzer.calculate_trend(_series(range(6))) is None
        assert analyzer.calculate_trend(_series(range(7))) is not None

    def test_unordered_input_is_sorted_by_time(self, analyzer):
        series = _series(range(100, 131))
        trend = analyzer.calculate_trend(list(reversed(series)))
        assert trend.slope == pytest.approx(1.0)

    def test_confidence_interval_floored_at_zero(self, analyzer):
        trend = analyzer.calculate_trend(_series([5, 0, 9, 1, 0, 7, 0, 2]))
        assert trend.confidence_interval.lower >= 0.0
        assert trend.confidence_interval.upper >= trend.confidence_interval.lower


# ────────────────────────────────────────────
# OUTLIERS
# ────────────────────────────────────────────


def _spike_series():
    """Thirty values near 100 followed by a single 1000"""
    values = [100 + (i % 3) - 1 for i in range(30)] + [1000]
    return _series(values)


class TestOutliers:

    def test_single_spike_is_one_critical_zscore_outlier(self, analyzer):
        outliers = analyzer.detect_outliers(_spike_series(), "zscore")

        assert len(outliers) == 1
        assert outliers[0].value == 1000
        assert outliers[0].severity == Severity.CRITICAL
        assert outliers[0].method == "zscore"
        assert 0 < outliers[0].confidence <= 0.99

    def test_iqr_also_flags_spike(self, analyzer):
        outliers = analyzer.detect_outliers(_spike_series(), "iqr")
        assert [o.value for o in outliers] == [1000]
        assert outliers[0].severity == Severity.CRITICAL
        assert outliers[0].expected_value == pytest.approx(100.0)

    def test_needs_five_points(self, analyzer):
        assert analyzer.detect_outliers(_series([1, 1, 1, 1000]), "zscore") == []

    def test_constant_series_has_no_outliers(self, analyzer):
        assert analyzer.detect_outliers(_series([10] * 20), "zscore") == []
        assert analyzer.detect_outliers(_series([10] * 20), "iqr") == []

    def test_unknown_method_returns_empty(self, analyzer):
        assert analyzer.detect_outliers(_spike_series(), "isolation_forest") == []

    def test_sorted_by_deviation(self, analyzer):
        values = [100 + (i % 3) - 1 for i in range(40)] + [1000, 2000]
        outliers = analyzer.detect_outliers(_series(values), "iqr")
        deviations = [o.deviation for o in outliers]
        assert deviations == sorted(deviations, reverse=True)


# ────────────────────────────────────────────
# SIGNIFICANCE / CORRELATION
# ────────────────────────────────────────────


class TestSignificance:

    def test_zero_baseline_is_not_significant(self, analyzer):
        result = analyzer.calculate_significance(120, 0, 25)
        assert not result.is_significant
        assert result.p_value == 1.0

    def test_large_change_is_significant(self, analyzer):
        result = analyzer.calculate_significance(120, 100, 25)
        assert result.is_significant
        assert result.p_value < 0.05
        assert result.effect_size == pytest.approx(4.0)

    def test_small_change_is_not_significant(self, analyzer):
        result = analyzer.calculate_significance(101, 100, 25)
        assert not result.is_significant


class TestCorrelation:

    def test_linear_relationship(self, analyzer):
        a = _series(range(10, 40))
        b = _series([2 * v + 5 for v in range(10, 40)])
        result = analyzer.perform_correlation_analysis(a, b)

        assert result.coefficient == pytest.approx(1.0)
        assert result.strength == "very_strong"
        assert result.direction == "positive"

    def test_constant_input_returns_none(self, analyzer):
        assert analyzer.perform_correlation_analysis(_series([5] * 10), _series(range(10))) is None

    def test_no_overlapping_dates_returns_none(self, analyzer):
        a = _series(range(10))
        b = _series(range(10), start=START + timedelta(days=100))
        assert analyzer.perform_correlation_analysis(a, b) is None


# ────────────────────────────────────────────
# SEASONALITY / FORECAST
# ────────────────────────────────────────────


class TestSeasonality:

    def test_needs_thirty_points(self, analyzer):
        assert analyzer.calculate_seasonality(_series(range(29))) is None

    def test_constant_series_not_seasonal(self, analyzer):
        result = analyzer.calculate_seasonality(_series([100] * 35))
        assert result.strength == 0.0
        assert not result.is_detected

    def test_week_to_week_level_shifts_detected(self, analyzer):
        values = [100 * (week + 1) for week in range(5) for _ in range(7)]
        result = analyzer.calculate_seasonality(_series(values))

        assert result.is_detected
        assert result.strength == pytest.approx(1.0)
        assert 0 <= result.confidence <= 1


class TestForecast:

    def test_needs_seven_points(self, analyzer):
        assert analyzer.generate_forecast(_series(range(6))) is None

    def test_forecast_covers_the_next_week(self, analyzer):
        series = _series(range(100, 131))
        forecast = analyzer.generate_forecast(series)

        assert len(forecast.predictions) == 7
        last_day = series[-1].timestamp.date()
        assert [p.date for p in forecast.predictions] == [last_day + timedelta(days=i) for i in range(1, 8)]
        for point in forecast.predictions:
            assert 0 <= point.lower <= point.predicted <= point.upper
        assert forecast.accuracy <= 0.95
        assert forecast.method in ("linear", "seasonal")
        assert "Historical patterns will continue" in forecast.assumptions

    def test_weekly_cycle_scales_forecast_by_weekday(self, analyzer):
        # alternating weekly levels with a rising day-of-week ramp inside each week
        levels = [100, 400, 100, 400, 100]
        series = _series([level + 10 * day for level in levels for day in range(7)])

        forecast = analyzer.generate_forecast(series)
        trend = analyzer.calculate_trend(series)

        assert forecast.method == "seasonal"
        assert "Seasonal patterns remain stable" in forecast.assumptions

        by_weekday = defaultdict(list)
        for sample in series:
            by_weekday[sample.timestamp.weekday()].append(sample.value)
        overall = sum(s.value for s in series) / len(series)

        for i, point in enumerate(forecast.predictions, start=1):
            factor = (sum(by_weekday[point.date.weekday()]) / len(by_weekday[point.date.weekday()])) / overall
            linear = trend.intercept + trend.slope * (len(series) + i - 1)
            assert point.predicted == pytest.approx(max(0.0, linear * factor))

    def test_predictions_never_negative(self, analyzer):
        forecast = analyzer.generate_forecast(_series(range(300, 0, -40)))

        assert forecast.method == "linear"
        assert forecast.predictions[-1].predicted == 0.0
        for point in forecast.predictions:
            assert point.predicted >= 0
            assert point.lower >= 0

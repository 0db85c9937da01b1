"""
Statistical Analysis Module
Trend fitting, outlier detection, significance, correlation, seasonality and
short-horizon forecasting over daily metric series.

Every public method is side-effect free and never raises: when a series is
too short or the numerics break down it returns None (or an empty list).
"""
import math
import pandas as pd
import numpy as np
from typing import List, Optional, Sequence
from datetime import timedelta
from scipy import stats

from growth_insights.models.insight import (
    ConfidenceInterval,
    CorrelationResult,
    ForecastPoint,
    ForecastResult,
    MetricSample,
    OutlierRecord,
    SeasonalityResult,
    SeasonalPattern,
    Severity,
    SignificanceResult,
    TrendResult,
)
from growth_insights.utils.helpers import days_between
from growth_insights.utils.logger import log

NUMERIC_ERRORS = (ValueError, FloatingPointError, ZeroDivisionError, OverflowError)

CANDIDATE_PERIODS = [(1, "daily"), (7, "weekly"), (30, "monthly"), (365, "yearly")]


class StatisticalAnalyzer:
    """
    Pure statistical routines used by the insight families
    """

    MIN_TREND_POINTS = 7
    MIN_OUTLIER_POINTS = 5
    MIN_SEASONALITY_POINTS = 30
    CONFIDENCE_LEVEL = 0.95
    SIGNIFICANCE_DF = 30
    Z_95 = 1.96

    def calculate_trend(self, series: Sequence[MetricSample]) -> Optional[TrendResult]:
        """
        Fit an ordinary least squares line of value against sequence index

        Args:
            series: Metric samples in any order (the input is not modified)

        Returns:
            TrendResult, or None with fewer than 7 samples
        """
        if len(series) < self.MIN_TREND_POINTS:
            log.debug(f"Trend skipped: {len(series)} samples (need {self.MIN_TREND_POINTS})")
            return None

        try:
            ordered = _sorted(series)
            y = _values(ordered)
            n = len(y)
            x = np.arange(n, dtype=float)

            fit = stats.linregress(x, y)
            slope = float(fit.slope)
            intercept = float(fit.intercept)
            r_squared = min(1.0, float(fit.rvalue) ** 2) if np.ptp(y) > 0 else 0.0
            p_value = self._trend_p_value(y, fit)

            residuals = y - (intercept + slope * x)
            residual_se = math.sqrt(float(np.sum(residuals ** 2)) / (n - 2))
            projected = intercept + slope * n
            margin = self.Z_95 * residual_se * math.sqrt(1 + 1 / n)

            values = [slope, intercept, r_squared, p_value, projected, margin]
            if not all(math.isfinite(v) for v in values):
                raise FloatingPointError("non-finite regression output")

            return TrendResult(
                slope=slope,
                intercept=intercept,
                r_squared=r_squared,
                p_value=p_value,
                significance=self._significance_level(p_value),
                direction=self._trend_direction(slope),
                strength=self._trend_strength(r_squared),
                projected_value=projected,
                confidence_interval=ConfidenceInterval(
                    lower=max(0.0, projected - margin),
                    upper=projected + margin,
                ),
                sample_count=n,
                timeframe=self._timeframe_label(ordered),
            )

        except NUMERIC_ERRORS as e:
            log.error(f"Trend calculation error: {str(e)}")
            return None

    def detect_outliers(self, series: Sequence[MetricSample], method: str = "zscore") -> List[OutlierRecord]:
        """
        Detect outliers with the z-score or IQR rule

        Results are ordered by absolute deviation, largest first.
        """
        if len(series) < self.MIN_OUTLIER_POINTS:
            log.debug(f"Outlier detection skipped: {len(series)} samples")
            return []

        try:
            if method == "zscore":
                outliers = self._zscore_outliers(series)
            elif method == "iqr":
                outliers = self._iqr_outliers(series)
            else:
                log.error(f"Unknown outlier detection method: {method}")
                return []

            return sorted(outliers, key=lambda o: o.deviation, reverse=True)

        except NUMERIC_ERRORS as e:
            log.error(f"Outlier detection error: {str(e)}")
            return []

    def calculate_significance(self, current: float, previous: float, variance: float) -> SignificanceResult:
        """
        Two-sided t-test of a change against a known variance (30 degrees of freedom)
        """
        if previous == 0 or variance <= 0:
            return SignificanceResult(
                is_significant=False,
                p_value=1.0,
                confidence_level=0.0,
                effect_size=0.0,
                interpretation="Cannot calculate significance with zero baseline or variance",
            )

        try:
            change = current - previous
            standard_error = math.sqrt(variance)
            t_statistic = change / standard_error
            p_value = float(2 * stats.t.sf(abs(t_statistic), self.SIGNIFICANCE_DF))
            if not math.isfinite(p_value):
                raise FloatingPointError("non-finite p-value")

            is_significant = p_value < (1 - self.CONFIDENCE_LEVEL)
            effect_size = abs(change) / standard_error

            return SignificanceResult(
                is_significant=is_significant,
                p_value=p_value,
                confidence_level=self.CONFIDENCE_LEVEL,
                effect_size=effect_size,
                interpretation=self._interpret_significance(is_significant, p_value, effect_size),
            )

        except NUMERIC_ERRORS as e:
            log.error(f"Significance calculation error: {str(e)}")
            return SignificanceResult(
                is_significant=False,
                p_value=1.0,
                confidence_level=0.0,
                effect_size=0.0,
                interpretation="Error calculating statistical significance",
            )

    def perform_correlation_analysis(
        self,
        series_a: Sequence[MetricSample],
        series_b: Sequence[MetricSample]
    ) -> Optional[CorrelationResult]:
        """
        Pearson correlation of two series aligned on calendar date
        """
        if len(series_a) < self.MIN_OUTLIER_POINTS or len(series_b) < self.MIN_OUTLIER_POINTS:
            return None

        try:
            aligned = pd.concat(
                [_daily_series(series_a).rename("a"), _daily_series(series_b).rename("b")],
                axis=1,
                join="inner",
            )
            if len(aligned) < self.MIN_OUTLIER_POINTS:
                log.debug(f"Correlation skipped: {len(aligned)} aligned dates")
                return None

            a = aligned["a"].to_numpy(dtype=float)
            b = aligned["b"].to_numpy(dtype=float)
            if np.ptp(a) == 0 or np.ptp(b) == 0:
                log.debug("Correlation skipped: constant input")
                return None

            coefficient, p_value = stats.pearsonr(a, b)
            coefficient = float(np.clip(coefficient, -1.0, 1.0))
            p_value = float(p_value)
            if not (math.isfinite(coefficient) and math.isfinite(p_value)):
                raise FloatingPointError("non-finite correlation")

            strength = self._correlation_strength(coefficient)
            direction = "positive" if coefficient >= 0 else "negative"
            significant = "significant" if p_value < 0.05 else "not significant"

            return CorrelationResult(
                coefficient=coefficient,
                p_value=p_value,
                significance=self._significance_level(p_value),
                strength=strength,
                direction=direction,
                interpretation=f"{strength} {direction} correlation (r={coefficient:.3f}, {significant})",
            )

        except NUMERIC_ERRORS as e:
            log.error(f"Correlation analysis error: {str(e)}")
            return None

    def calculate_seasonality(self, series: Sequence[MetricSample], period: int = 7) -> Optional[SeasonalityResult]:
        """
        Measure how much of the variance is explained by cycle-to-cycle level shifts

        Args:
            series: Daily samples (at least 30)
            period: Cycle length in days

        Returns:
            SeasonalityResult, or None with fewer than 30 samples
        """
        if len(series) < self.MIN_SEASONALITY_POINTS:
            log.debug(f"Seasonality skipped: {len(series)} samples (need {self.MIN_SEASONALITY_POINTS})")
            return None

        try:
            ordered = _sorted(series)
            values = _values(ordered)

            strength = self._seasonal_strength(values, period)
            confidence = strength * min(1.0, len(values) / (period * 4))
            is_detected = strength > 0.3 and confidence > 0.7
            patterns = self._seasonal_patterns(values)

            next_peak = next_trough = None
            if is_detected:
                peaks, troughs = self._local_extrema(values)
                if peaks:
                    next_peak = (ordered[peaks[-1]].timestamp + timedelta(days=period)).date()
                if troughs:
                    next_trough = (ordered[troughs[-1]].timestamp + timedelta(days=period)).date()

            return SeasonalityResult(
                is_detected=is_detected,
                period=period,
                strength=strength,
                confidence=confidence,
                patterns=patterns,
                next_peak=next_peak,
                next_trough=next_trough,
            )

        except NUMERIC_ERRORS as e:
            log.error(f"Seasonality calculation error: {str(e)}")
            return None

    def generate_forecast(self, series: Sequence[MetricSample], horizon: int = 7) -> Optional[ForecastResult]:
        """
        Project the linear trend forward, scaled by day-of-week factors when a
        weekly cycle is detected
        """
        if len(series) < self.MIN_TREND_POINTS:
            log.debug(f"Forecast skipped: {len(series)} samples")
            return None

        try:
            ordered = _sorted(series)
            trend = self.calculate_trend(ordered)
            if trend is None:
                return None

            seasonality = self.calculate_seasonality(ordered, 7)
            method = "seasonal" if seasonality is not None and seasonality.is_detected else "linear"

            values = _values(ordered)
            n = len(values)
            standard_error = float(np.std(values, ddof=1)) / math.sqrt(n)
            weekday_factors = self._weekday_factors(ordered) if method == "seasonal" else {}
            last = ordered[-1].timestamp
            point_confidence = max(0.5, trend.r_squared)

            predictions = []
            for i in range(1, horizon + 1):
                future = last + timedelta(days=i)
                predicted = trend.intercept + trend.slope * (n + i - 1)
                if method == "seasonal":
                    predicted *= weekday_factors.get(future.weekday(), 1.0)

                margin = self.Z_95 * standard_error * math.sqrt(i)
                if not (math.isfinite(predicted) and math.isfinite(margin)):
                    raise FloatingPointError("non-finite forecast")

                predictions.append(ForecastPoint(
                    date=future.date(),
                    predicted=max(0.0, predicted),
                    lower=max(0.0, predicted - margin),
                    upper=predicted + margin,
                    confidence=point_confidence,
                ))

            return ForecastResult(
                predictions=predictions,
                method=method,
                accuracy=min(0.95, trend.r_squared * 0.8 + 0.2),
                confidence=trend.r_squared,
                assumptions=self._forecast_assumptions(method, trend.r_squared),
            )

        except NUMERIC_ERRORS as e:
            log.error(f"Forecast generation error: {str(e)}")
            return None

    # Helpers

    def _trend_p_value(self, y: np.ndarray, fit) -> float:
        if np.ptp(y) == 0:
            return 1.0
        if fit.stderr == 0:
            return 0.0 if fit.slope != 0 else 1.0
        t_statistic = abs(fit.slope) / fit.stderr
        return float(2 * stats.t.sf(t_statistic, len(y) - 2))

    def _zscore_outliers(self, series: Sequence[MetricSample]) -> List[OutlierRecord]:
        values = _values(series)
        mean = float(np.mean(values))
        std = float(np.std(values, ddof=1))

        if std == 0:
            return []

        z_scores = np.abs((values - mean) / std)
        outliers = []
        for idx in np.where(z_scores > 3)[0]:
            sample = series[idx]
            z = float(z_scores[idx])
            outliers.append(OutlierRecord(
                timestamp=sample.timestamp,
                value=sample.value,
                expected_value=mean,
                deviation=abs(sample.value - mean),
                severity=self._zscore_severity(z),
                method="zscore",
                confidence=min(0.99, 0.5 + (z - 2) * 0.1),
                context=self._outlier_context(sample.value, mean, "zscore"),
            ))

        log.debug(f"Found {len(outliers)} Z-score outliers in {len(values)} samples")
        return outliers

    def _iqr_outliers(self, series: Sequence[MetricSample]) -> List[OutlierRecord]:
        values = _values(series)
        q1, q3 = np.percentile(values, [25, 75])
        iqr = float(q3 - q1)

        if iqr == 0:
            return []

        lower_bound = q1 - 1.5 * iqr
        upper_bound = q3 + 1.5 * iqr
        median = float(np.median(values))

        outliers = []
        for idx in np.where((values < lower_bound) | (values > upper_bound))[0]:
            sample = series[idx]
            # Distance beyond the nearest quartile, in IQR units
            if sample.value > q3:
                k = (sample.value - q3) / iqr
            else:
                k = (q1 - sample.value) / iqr
            k = float(k)
            outliers.append(OutlierRecord(
                timestamp=sample.timestamp,
                value=sample.value,
                expected_value=median,
                deviation=abs(sample.value - median),
                severity=self._iqr_severity(k),
                method="iqr",
                confidence=min(0.99, 0.6 + (k - 1.5) * 0.1),
                context=self._outlier_context(sample.value, median, "iqr"),
            ))

        log.debug(f"Found {len(outliers)} IQR outliers in {len(values)} samples")
        return outliers

    def _seasonal_strength(self, values: np.ndarray, period: int) -> float:
        """Variance of cycle means over total variance"""
        if len(values) < period * 2:
            return 0.0

        cycles = _cycles(values, period)
        total_variance = float(np.var(values, ddof=1))
        if total_variance <= 0:
            return 0.0

        cycle_means = cycles.mean(axis=1)
        seasonal_variance = float(np.var(cycle_means, ddof=1)) if len(cycle_means) > 1 else 0.0
        return min(1.0, seasonal_variance / total_variance)

    def _seasonal_patterns(self, values: np.ndarray) -> List[SeasonalPattern]:
        patterns = []
        for period, name in CANDIDATE_PERIODS:
            if name == "yearly" and len(values) < 365:
                continue
            strength = self._seasonal_strength(values, period)
            if strength <= 0.2:
                continue

            cycles = _cycles(values, period)
            amplitude = float(np.max((cycles.max(axis=1) - cycles.min(axis=1)) / 2))
            phase = int(np.argmax(cycles.mean(axis=0)))
            patterns.append(SeasonalPattern(period=name, strength=strength, phase=phase, amplitude=amplitude))

        return patterns

    def _local_extrema(self, values: np.ndarray):
        peaks, troughs = [], []
        for i in range(1, len(values) - 1):
            if values[i] > values[i - 1] and values[i] > values[i + 1]:
                peaks.append(i)
            elif values[i] < values[i - 1] and values[i] < values[i + 1]:
                troughs.append(i)
        return peaks, troughs

    def _weekday_factors(self, series: Sequence[MetricSample]) -> dict:
        """Mean value per weekday relative to the overall mean"""
        df = pd.DataFrame({
            "weekday": [s.timestamp.weekday() for s in series],
            "value": [s.value for s in series],
        })
        overall_mean = df["value"].mean()
        if overall_mean == 0:
            return {}
        return (df.groupby("weekday")["value"].mean() / overall_mean).to_dict()

    def _forecast_assumptions(self, method: str, r_squared: float) -> List[str]:
        assumptions = [
            "Historical patterns will continue",
            "No major external disruptions",
            "Data quality remains consistent",
        ]
        if method == "linear":
            assumptions.append("Linear trend continues at current rate")
        if method == "seasonal":
            assumptions.append("Seasonal patterns remain stable")
        if r_squared < 0.5:
            assumptions.append("Low trend confidence - use with caution")
        return assumptions

    def _timeframe_label(self, ordered: Sequence[MetricSample]) -> str:
        days = days_between(ordered[0].timestamp, ordered[-1].timestamp)
        if days <= 7:
            return "7d"
        elif days <= 30:
            return "30d"
        elif days <= 90:
            return "90d"
        elif days <= 365:
            return "1y"
        return "custom"

    def _outlier_context(self, value: float, expected: float, method: str) -> str:
        if expected == 0:
            return f"Value {value:,.2f} deviates from an expected value of zero using {method} method"
        deviation = abs((value - expected) / expected * 100)
        direction = "above" if value > expected else "below"
        return f"Value is {deviation:.1f}% {direction} expected using {method} method"

    def _interpret_significance(self, is_significant: bool, p_value: float, effect_size: float) -> str:
        if not is_significant:
            return "No statistically significant change detected"
        if effect_size > 0.8:
            effect = "large"
        elif effect_size > 0.5:
            effect = "medium"
        else:
            effect = "small"
        return f"Statistically significant change with {effect} effect size (p={p_value:.3f})"

    @staticmethod
    def _trend_direction(slope: float) -> str:
        if abs(slope) < 0.01:
            return "stable"
        return "increasing" if slope > 0 else "decreasing"

    @staticmethod
    def _trend_strength(r_squared: float) -> str:
        if r_squared > 0.7:
            return "strong"
        elif r_squared > 0.4:
            return "moderate"
        return "weak"

    @staticmethod
    def _significance_level(p_value: float) -> str:
        if p_value < 0.01:
            return "high"
        elif p_value < 0.05:
            return "medium"
        elif p_value < 0.1:
            return "low"
        return "none"

    @staticmethod
    def _zscore_severity(z: float) -> Severity:
        if z > 4:
            return Severity.CRITICAL
        elif z > 3.5:
            return Severity.HIGH
        elif z > 3:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def _iqr_severity(k: float) -> Severity:
        if k > 3:
            return Severity.CRITICAL
        elif k > 2.5:
            return Severity.HIGH
        elif k > 2:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def _correlation_strength(coefficient: float) -> str:
        strength = abs(coefficient)
        if strength > 0.8:
            return "very_strong"
        elif strength > 0.6:
            return "strong"
        elif strength > 0.4:
            return "moderate"
        elif strength > 0.2:
            return "weak"
        return "very_weak"


def _sorted(series: Sequence[MetricSample]) -> List[MetricSample]:
    return sorted(series, key=lambda s: s.timestamp)


def _values(series: Sequence[MetricSample]) -> np.ndarray:
    values = np.array([s.value for s in series], dtype=float)
    if not np.all(np.isfinite(values)):
        raise ValueError("series contains NaN or infinite values")
    return values


def _cycles(values: np.ndarray, period: int) -> np.ndarray:
    """Whole cycles as a (cycles, period) matrix; trailing partial cycle dropped"""
    count = len(values) // period
    return values[:count * period].reshape(count, period)


def _daily_series(series: Sequence[MetricSample]) -> pd.Series:
    """Values keyed by calendar date (last sample wins for a repeated date)"""
    s = pd.Series(
        [sample.value for sample in series],
        index=pd.to_datetime([sample.timestamp for sample in series]).normalize(),
        dtype=float,
    )
    return s[~s.index.duplicated(keep="last")].sort_index()

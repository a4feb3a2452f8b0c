"""
SignalForge — Strategy Test Suite

Registry dispatch, per-strategy signals on crafted windows, shared
statistics and round-trip performance.
"""

import math
from datetime import datetime, timedelta

import pytest


def _make_bars(closes, volumes=None):
    from signalforge.models import OHLCV
    volumes = volumes or [1000.0] * len(closes)
    return [
        OHLCV(
            timestamp=datetime(2024, 1, 1) + timedelta(days=i),
            open=c,
            high=c * 1.005,
            low=c * 0.995,
            close=c,
            volume=v,
        )
        for i, (c, v) in enumerate(zip(closes, volumes))
    ]


def _signal(kind, price, i=0):
    from signalforge.models import Signal
    return Signal(
        timestamp=datetime(2024, 1, 1) + timedelta(days=i),
        type=kind,
        strength=0.5,
        price=price,
    )


# ═══════════════════════════════════════════════
#  REGISTRY
# ═══════════════════════════════════════════════

class TestRegistry:

    def test_all_kinds_registered(self):
        from signalforge.strategies import StrategyKind, available_strategies
        kinds = available_strategies()
        assert set(kinds) == set(StrategyKind)
        assert [k.value for k in kinds] == sorted(k.value for k in StrategyKind)

    def test_lookup_by_string(self):
        from signalforge.strategies import StrategyKind, get_strategy
        strategy = get_strategy("zscore_trend")
        assert strategy.kind == StrategyKind.ZSCORE_TREND

    def test_unknown_kind(self):
        from signalforge.errors import UnknownStrategyError
        from signalforge.strategies import get_strategy
        with pytest.raises(UnknownStrategyError) as exc:
            get_strategy("fibonacci_magic")
        assert exc.value.kind == "fibonacci_magic"
        assert isinstance(exc.value, KeyError)
        assert "fibonacci_magic" in str(exc.value)

    def test_insufficient_window(self):
        from signalforge.errors import InsufficientDataError
        from signalforge.strategies import compute_signal
        with pytest.raises(InsufficientDataError) as exc:
            compute_signal("zscore_trend", _make_bars([100.0] * 10))
        assert exc.value.required == 21

    def test_warmups(self):
        from signalforge.strategies import get_strategy
        expected = {
            "linear_regression": 15,
            "zscore_trend": 21,
            "deviation_trend": 51,
            "volatility_breakout": 21,
            "mean_reversion": 61,
            "volume_profile": 102,
            "regime_detection": 51,
            "ml_momentum": 21,
            "stop_loss_take_profit": 29,
            "ultimate": 21,
        }
        for kind, warmup in expected.items():
            strategy = get_strategy(kind)
            assert strategy.warmup(strategy.resolve_params()) == warmup, kind


# ═══════════════════════════════════════════════
#  PARAMETERS
# ═══════════════════════════════════════════════

class TestParams:

    def test_dict_params(self):
        from signalforge.strategies import get_strategy
        strategy = get_strategy("zscore_trend")
        params = strategy.resolve_params({"period": 10, "threshold": 1.5})
        assert params.period == 10
        assert strategy.warmup(params) == 11

    def test_invalid_values(self):
        from pydantic import ValidationError
        from signalforge.strategies.statistical import ZScoreTrendParams
        with pytest.raises(ValidationError):
            ZScoreTrendParams(period=1)
        with pytest.raises(ValidationError):
            ZScoreTrendParams(threshold=0)
        with pytest.raises(ValidationError):
            ZScoreTrendParams(window=20)

    def test_cross_field_validation(self):
        from pydantic import ValidationError
        from signalforge.strategies.regression import DeviationTrendParams
        from signalforge.strategies.volatility import VolatilityBreakoutParams
        with pytest.raises(ValidationError):
            DeviationTrendParams(period=30, trend_period=20)
        with pytest.raises(ValidationError):
            VolatilityBreakoutParams(period=10, short_period=10)

    def test_wrong_params_type(self):
        from signalforge.strategies import get_strategy
        from signalforge.strategies.statistical import ZScoreTrendParams
        strategy = get_strategy("linear_regression")
        with pytest.raises(TypeError):
            strategy.resolve_params(ZScoreTrendParams())
        with pytest.raises(TypeError):
            strategy.resolve_params([14])


# ═══════════════════════════════════════════════
#  SIGNALS
# ═══════════════════════════════════════════════

class TestSignals:
    """Test each strategy on crafted windows."""

    def test_flat_window(self):
        from signalforge.data.synthetic import flat_bars
        from signalforge.models import SignalType
        from signalforge.strategies import StrategyKind, compute_signal
        bars = flat_bars(120)
        for kind in StrategyKind:
            signal = compute_signal(kind, bars)
            expected = SignalType.EXIT if kind == StrategyKind.VOLUME_PROFILE else SignalType.HOLD
            assert signal.type == expected, kind.value
            assert signal.price == 100.0
            assert signal.timestamp == bars[-1].timestamp
            assert signal.metadata["strategy"] == kind.value

    def test_zscore_overbought(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        # Reference mean 101, population std 1
        closes = [100.0, 102.0] * 10 + [110.0]
        signal = compute_signal("zscore_trend", _make_bars(closes))
        assert signal.type == SignalType.SELL
        assert signal.strength == 1.0
        assert signal.reasons == ["Overbought condition (Z-Score: 9.00)"]
        assert signal.metadata["zscore"] == pytest.approx(9.0)
        assert signal.metadata["moving_average"] == pytest.approx(101.0)
        assert signal.metadata["standard_deviation"] == pytest.approx(1.0)

    def test_zscore_oversold(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        closes = [100.0, 102.0] * 10 + [99.5]
        signal = compute_signal("zscore_trend", _make_bars(closes), {"threshold": 1.0})
        assert signal.type == SignalType.BUY
        assert signal.strength == pytest.approx(1.0)
        assert signal.metadata["zscore"] == pytest.approx(-1.5)

    def test_zscore_inside_band(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        closes = [100.0, 102.0] * 10 + [101.5]
        assert compute_signal("zscore_trend", _make_bars(closes)).type == SignalType.HOLD

    def test_linear_regression_on_sine(self):
        from signalforge.models import SignalType
        from signalforge.strategies import get_strategy
        closes = [100 + 5 * math.sin(i * 0.3) for i in range(120)]
        result = get_strategy("linear_regression").scan(_make_bars(closes))

        types = {s.type for s in result.signals}
        assert SignalType.BUY in types
        assert SignalType.SELL in types
        assert len(result.indicators["lro"]) == 120 - 15 + 1
        assert len(result.indicators["normalized"]) == 120 - 15 + 1
        assert all(0 <= s.strength <= 1 for s in result.signals)

    def test_volume_profile_breakout(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        closes = [100.0] * 101 + [105.0]
        volumes = [1000.0] * 101 + [5000.0]
        signal = compute_signal("volume_profile", _make_bars(closes, volumes))
        assert signal.type == SignalType.BUY
        assert signal.reasons == ["poc_breakout_bullish"]
        assert signal.strength == 1.0
        assert signal.metadata["volume_intensity"] == pytest.approx(5.0)
        assert signal.metadata["poc"] == pytest.approx(100.0)

    def test_volume_profile_needs_volume(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        closes = [100.0] * 101 + [105.0]
        signal = compute_signal("volume_profile", _make_bars(closes))
        assert signal.type != SignalType.BUY

    def test_scan_indicator_lengths(self):
        from signalforge.data.synthetic import generate_bars
        from signalforge.strategies import StrategyKind, get_strategy
        bars = generate_bars(200, seed=3)
        for kind in StrategyKind:
            strategy = get_strategy(kind)
            result = strategy.scan(bars)
            expected = len(bars) - strategy.warmup(strategy.resolve_params()) + 1
            assert result.strategy == kind.value
            for name, series in result.indicators.items():
                assert len(series) == expected, (kind.value, name)
                assert all(not math.isnan(v) for v in series)
            for signal in result.signals:
                assert 0 <= signal.strength <= 1

    def test_scan_matches_compute_signal(self):
        from signalforge.data.synthetic import generate_bars
        from signalforge.models import SignalType
        from signalforge.strategies import get_strategy
        bars = generate_bars(150, seed=8)
        strategy = get_strategy("zscore_trend")
        params = {"period": 10, "threshold": 1.0}
        scanned = {s.timestamp: s for s in strategy.scan(bars, params).signals}
        for end in range(11, len(bars) + 1):
            signal = strategy.compute_signal(bars[:end], params)
            if signal.type == SignalType.HOLD:
                assert signal.timestamp not in scanned
            else:
                assert scanned[signal.timestamp] == signal

    def test_deviation_trend_breakout(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        closes = [100.0, 101.0, 102.0, 103.0, 101.0, 104.0]
        volumes = [1000.0] * 5 + [2000.0]
        params = {"period": 4, "trend_period": 4, "deviation_multiplier": 1.0}

        signal = compute_signal("deviation_trend", _make_bars(closes, volumes), params)
        assert signal.type == SignalType.BUY
        assert signal.reasons == ["support_breakout_with_trend"]
        assert signal.strength == 1.0
        # Reference 101, 102, 103, 101: mean 101.75, variance 0.6875
        assert signal.metadata["deviation"] == pytest.approx(2.25 / math.sqrt(0.6875))
        assert signal.metadata["trend_line"] == pytest.approx(101.9)
        assert signal.metadata["support"] == pytest.approx(101.0 * 0.995)
        assert signal.metadata["resistance"] == pytest.approx(104.0 * 1.005)

        # Same move without a volume surge is not confirmed
        unconfirmed = compute_signal("deviation_trend", _make_bars(closes), params)
        assert unconfirmed.type == SignalType.HOLD

    def test_deviation_trend_breakdown(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        closes = [100.0, 99.0, 98.0, 97.0, 99.0, 96.0]
        params = {
            "period": 4, "trend_period": 4, "deviation_multiplier": 1.0, "volume_confirmation": False,
        }
        signal = compute_signal("deviation_trend", _make_bars(closes), params)
        assert signal.type == SignalType.SELL
        assert signal.reasons == ["resistance_breakdown_with_trend"]
        assert signal.metadata["deviation"] == pytest.approx(-2.25 / math.sqrt(0.6875))
        assert signal.metadata["trend_line"] == pytest.approx(98.1)

    def test_deviation_trend_return_to_trend(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        # Deviation falls from 4.02 to -0.27 below the last mean of 103
        closes = [100.0, 101.0, 102.0, 103.0, 106.0, 102.5]
        params = {"period": 4, "trend_period": 4, "deviation_multiplier": 1.0}

        signal = compute_signal("deviation_trend", _make_bars(closes), params)
        assert signal.type == SignalType.EXIT
        assert signal.reasons == ["return_to_trend"]
        assert signal.strength == pytest.approx(0.8)
        assert signal.metadata["deviation"] == pytest.approx(-0.5 / math.sqrt(3.5))

        # Without the volume gate the sign flip below the trend line is a SELL
        params["volume_confirmation"] = False
        assert compute_signal("deviation_trend", _make_bars(closes), params).type == SignalType.SELL

    def test_mean_reversion_fades_extremes(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        reference = [100.0, 110.0, 99.0, 104.5]
        # Returns 0.1, -0.1, r3: lag-1 slope (r3 + 0.1) / -0.2
        r3 = 104.5 / 99.0 - 1
        expected_half_life = -math.log(2) / math.log(abs((r3 + 0.1) / -0.2))
        std = math.sqrt(18.921875)

        high = compute_signal("mean_reversion", _make_bars(reference + [120.0]), {"lookback": 4})
        assert high.type == SignalType.SELL
        assert high.reasons == ["statistical_mean_reversion"]
        assert high.metadata["zscore"] == pytest.approx(16.625 / std)
        assert high.metadata["half_life"] == pytest.approx(expected_half_life)
        assert high.metadata["expected_reversion"] == pytest.approx(103.375)
        assert high.strength == pytest.approx(0.4 + 0.3 * (1 - expected_half_life / 30) + 0.3)

        low = compute_signal("mean_reversion", _make_bars(reference + [90.0]), {"lookback": 4})
        assert low.type == SignalType.BUY
        assert low.metadata["zscore"] == pytest.approx(-13.375 / std)

    def test_mean_reversion_needs_short_half_life(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        bars = _make_bars([100.0, 110.0, 99.0, 104.5, 120.0])
        signal = compute_signal("mean_reversion", bars, {"lookback": 4, "half_life_threshold": 2})
        assert signal.type == SignalType.HOLD
        assert signal.metadata["half_life"] > 2

    def test_volatility_expansion_at_lower_band(self):
        import numpy as np
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        closes = [100.0, 100.0, 100.0, 100.0, 104.0, 96.0, 92.0]
        signal = compute_signal(
            "volatility_breakout", _make_bars(closes), {"period": 6, "short_period": 3},
        )

        log_returns = np.diff(np.log(closes))
        ratio = log_returns[-3:].std(ddof=1) / log_returns.std(ddof=1)
        expected_spread = ratio * (1 + 10 * 4 / 96) - 1

        assert signal.type == SignalType.BUY
        assert signal.strength == 1.0
        assert signal.reasons[0].startswith("Volatility expansion at lower band")
        assert signal.metadata["volatility_spread"] == pytest.approx(expected_spread)
        # Last six closes: mean 98.67, population variance 128/9
        assert signal.metadata["band_position"] == pytest.approx(-10 / math.sqrt(128))

    def test_volatility_contraction_at_upper_band(self):
        import numpy as np
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        # One gap, then a steady 1% climb: short-window volatility collapses
        closes = [90.0, 100.0, 101.0, 102.01, 103.0301, 104.060401, 105.10100501]
        params = {"period": 6, "short_period": 3, "band_trigger": 0.5}
        signal = compute_signal("volatility_breakout", _make_bars(closes), params)

        window = np.array(closes[-6:])
        expected_position = (closes[-1] - window.mean()) / (2 * window.std())

        assert signal.type == SignalType.SELL
        assert signal.strength == 1.0
        assert signal.reasons == ["Volatility contraction at upper band (spread -1.000)"]
        assert signal.metadata["volatility_spread"] == pytest.approx(-1.0, abs=1e-6)
        assert signal.metadata["band_position"] == pytest.approx(expected_position)
        assert signal.metadata["band_position"] > 0.5

        # Default trigger needs the close further above the middle band
        default = compute_signal("volatility_breakout", _make_bars(closes), {"period": 6, "short_period": 3})
        assert default.type == SignalType.HOLD


# ═══════════════════════════════════════════════
#  ADAPTIVE & COMBINED STRATEGIES
# ═══════════════════════════════════════════════

class TestStopLossTakeProfit:

    PARAMS = {"fast_period": 2, "slow_period": 4}

    def test_bullish_crossover(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        signal = compute_signal(
            "stop_loss_take_profit", _make_bars([100.0] * 4 + [104.0]), self.PARAMS,
        )
        assert signal.type == SignalType.BUY
        assert signal.reasons == ["sma_bullish_crossover"]
        assert signal.strength == pytest.approx(0.8)
        assert signal.metadata["fast_sma"] == pytest.approx(102.0)
        assert signal.metadata["slow_sma"] == pytest.approx(101.0)
        assert signal.metadata["stop_loss"] == pytest.approx(101.92)
        assert signal.metadata["take_profit"] == pytest.approx(108.16)
        # 5% of 100k risked over 2.08 per unit
        assert signal.metadata["position_size"] == 2403

    def test_bearish_crossover_mirrors_levels(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        signal = compute_signal(
            "stop_loss_take_profit", _make_bars([100.0] * 4 + [96.0]), self.PARAMS,
        )
        assert signal.type == SignalType.SELL
        assert signal.reasons == ["sma_bearish_crossover"]
        assert signal.metadata["stop_loss"] == pytest.approx(97.92)
        assert signal.metadata["take_profit"] == pytest.approx(92.16)
        assert signal.metadata["position_size"] == 2604

    def test_take_profit_exit(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        closes = [100.0] * 4 + [104.0, 105.0, 109.0]
        signal = compute_signal("stop_loss_take_profit", _make_bars(closes), self.PARAMS)
        assert signal.type == SignalType.EXIT
        assert signal.reasons == ["take_profit_hit"]
        assert signal.strength == 1.0
        assert signal.metadata["take_profit"] == pytest.approx(108.16)

    def test_stop_loss_round_trip(self):
        from signalforge.models import SignalType
        from signalforge.strategies import get_strategy
        closes = [100.0] * 4 + [104.0, 103.0, 101.5]
        result = get_strategy("stop_loss_take_profit").scan(_make_bars(closes), self.PARAMS)

        assert [s.type for s in result.signals] == [SignalType.BUY, SignalType.EXIT]
        assert result.signals[1].reasons == ["stop_loss_hit"]
        assert result.performance.total_trades == 1
        assert result.performance.win_rate_pct == 0.0
        assert result.performance.total_return_pct == pytest.approx((101.5 - 104.0) / 104.0 * 100)

    def test_fixed_amount_levels(self):
        from signalforge.strategies import compute_signal
        params = {**self.PARAMS, "use_fixed_amount": True, "fixed_stop_loss": 3, "fixed_take_profit": 6}
        signal = compute_signal("stop_loss_take_profit", _make_bars([100.0] * 4 + [104.0]), params)
        assert signal.metadata["stop_loss"] == pytest.approx(101.0)
        assert signal.metadata["take_profit"] == pytest.approx(110.0)

    def test_params_validation(self):
        from pydantic import ValidationError
        from signalforge.strategies.risk import StopLossTakeProfitParams
        with pytest.raises(ValidationError):
            StopLossTakeProfitParams(fast_period=28, slow_period=14)


class TestRegimeDetection:

    def test_flat_window_probabilities(self):
        from signalforge.data.synthetic import flat_bars
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        signal = compute_signal("regime_detection", flat_bars(60))

        # Only trend consistency scores on a flat series: softmax(0.25, 0, 0)
        trending = 1 / (1 + 2 * math.exp(-0.25))
        assert signal.type == SignalType.HOLD
        assert signal.metadata["trending_score"] == pytest.approx(0.25)
        assert signal.metadata["trending_probability"] == pytest.approx(trending)
        assert signal.metadata["regime_strength"] == pytest.approx(trending)
        assert signal.metadata["regime_transition"] == pytest.approx(0.0, abs=1e-12)

    def test_signals_follow_regime(self):
        from signalforge.data.synthetic import generate_bars
        from signalforge.models import SignalType
        from signalforge.strategies import get_strategy
        from signalforge.strategies.regime import ADAPTIVE_STRATEGIES
        bars = generate_bars(120, seed=11)
        index = {bar.timestamp: i for i, bar in enumerate(bars)}
        params = {"lookback": 30, "regime_threshold": 0.34, "transition_sensitivity": 0.0}

        result = get_strategy("regime_detection").scan(bars, params)
        assert result.signals
        assert result == get_strategy("regime_detection").scan(bars, params)

        for signal in result.signals:
            i = index[signal.timestamp]
            # Transition needs five earlier evaluations
            assert i >= 30 + 5
            assert signal.metadata["regime_transition"] > 0
            assert signal.strength == pytest.approx(signal.metadata["regime_strength"])

            reason = signal.reasons[0]
            assert reason in ADAPTIVE_STRATEGIES.values()
            if reason == "momentum_following":
                bullish = signal.metadata["trending_score"] > 0
            elif reason == "contrarian_reversion":
                bullish = signal.metadata["trending_score"] <= 0
            else:
                bullish = bars[i].close >= bars[i - 1].close
            assert signal.type == (SignalType.BUY if bullish else SignalType.SELL)

    def test_softmax_and_tie_break(self):
        from signalforge.strategies.regime import dominant_regime
        from signalforge.strategies.stats import softmax
        probs = softmax({"trending": 1.0, "mean_reverting": 1.0, "volatility": 0.0})
        assert sum(probs.values()) == pytest.approx(1.0)
        assert dominant_regime(probs) == "mean_reverting"


class TestMomentumModel:

    @staticmethod
    def _stepped(first, second):
        closes = [100.0]
        for k in range(1, 21):
            closes.append(closes[-1] + (first if k % 2 else second))
        return closes

    def test_steady_climb_buys(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        signal = compute_signal("ml_momentum", _make_bars(self._stepped(0.2, 0.1)))
        assert signal.type == SignalType.BUY
        assert signal.reasons == ["model_momentum"]
        # 0.5 base + 0.2 trend + 0.1 steady volume, less a small volatility penalty
        assert signal.strength == pytest.approx(0.776, abs=0.005)
        assert signal.metadata["confidence"] == signal.strength
        assert 0.3 < signal.metadata["prediction"] < 0.4

    def test_steady_decline_sells(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        signal = compute_signal("ml_momentum", _make_bars(self._stepped(-0.2, -0.1)))
        assert signal.type == SignalType.SELL
        assert signal.metadata["prediction"] < -0.4
        assert signal.metadata["expected_return"] < 0

    def test_choppy_window_lowers_confidence(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        closes = [100.0 + (5.0 if i % 2 else 0.0) for i in range(21)]
        signal = compute_signal("ml_momentum", _make_bars(closes))
        assert signal.type == SignalType.HOLD
        assert signal.metadata["confidence"] < 0.6

    def test_features(self):
        import numpy as np
        from signalforge.strategies.momentum import MomentumModelParams, extract_features
        prices = np.array([100.0 + i for i in range(20)])
        volumes = np.array([1000.0] * 19 + [0.0])
        features = extract_features(prices, volumes, MomentumModelParams())
        assert features["momentum_short"] == pytest.approx(5 / 114)
        assert features["momentum_long"] == pytest.approx(19 / 100)
        assert features["rsi_normalized"] == 1.0
        assert features["trend_strength"] == 1.0
        assert features["volume_ratio"] == 0.0


class TestUltimate:
    """The combined strategy over linear regression and z-score trend."""

    # z-score SELL (z = 9) while the regression oscillator exits at an extreme
    CLOSES = [100.0, 102.0] * 10 + [110.0]

    def test_weighted_below_threshold(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        signal = compute_signal("ultimate", _make_bars(self.CLOSES))
        assert signal.type == SignalType.HOLD
        assert signal.metadata["sell_strength"] == pytest.approx(0.5)
        assert signal.metadata["buy_strength"] == 0.0
        assert signal.metadata["zscore_trend.zscore"] == pytest.approx(9.0)
        assert signal.metadata["linear_regression.normalized"] > 1.5

    def test_weighted_signal(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        signal = compute_signal("ultimate", _make_bars(self.CLOSES), {"signal_threshold": 0.5})
        assert signal.type == SignalType.SELL
        assert signal.reasons == ["weighted_combination"]
        assert signal.strength == pytest.approx(0.5)

        solo = compute_signal("ultimate", _make_bars(self.CLOSES), {"weights": {"zscore_trend": 1.0}})
        assert solo.type == SignalType.SELL
        assert solo.strength == 1.0

    def test_consensus(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_signal
        bars = _make_bars(self.CLOSES)
        assert compute_signal("ultimate", bars, {"method": "consensus"}).type == SignalType.HOLD

        signal = compute_signal("ultimate", bars, {"method": "consensus", "minimum_consensus": 1})
        assert signal.type == SignalType.SELL
        assert signal.reasons == ["consensus_combination"]
        assert signal.strength == 1.0
        assert signal.metadata["sell_votes"] == 1.0

    def test_warmup_follows_components(self):
        from signalforge.strategies import get_strategy
        strategy = get_strategy("ultimate")
        params = strategy.resolve_params({"weights": {"linear_regression": 1.0, "mean_reversion": 1.0}})
        assert strategy.warmup(params) == 61

    def test_invalid_weights(self):
        from pydantic import ValidationError
        from signalforge.strategies.ensemble import UltimateParams
        for weights in ({}, {"ultimate": 1.0}, {"zscore_trend": -1.0}):
            with pytest.raises(ValidationError):
                UltimateParams(weights=weights)


# ═══════════════════════════════════════════════
#  STATISTICS
# ═══════════════════════════════════════════════

class TestStats:

    def test_linear_regression(self):
        from signalforge.strategies.stats import linear_regression, regression_value
        slope, intercept = linear_regression([1.0, 3.0, 5.0, 7.0])
        assert slope == pytest.approx(2.0)
        assert intercept == pytest.approx(1.0)
        assert regression_value([1.0, 3.0, 5.0, 7.0]) == pytest.approx(7.0)

    def test_zscore(self):
        from signalforge.strategies.stats import zscore
        assert zscore(3.0, [1.0, 2.0, 3.0]) == pytest.approx(1 / math.sqrt(2 / 3))
        assert zscore(5.0, [2.0, 2.0]) == 0.0

    def test_half_life(self):
        from signalforge.strategies.stats import half_life
        assert half_life([0.5 ** k for k in range(10)]) == pytest.approx(1.0)
        assert half_life([1.0, 2.0]) == math.inf
        assert half_life([3.0] * 10) == math.inf
        assert half_life([float(i) for i in range(10)]) == math.inf

    def test_autocorrelation(self):
        from signalforge.strategies.stats import autocorrelation
        assert autocorrelation([1.0, -1.0, 1.0, -1.0]) == pytest.approx(-1.0)
        assert autocorrelation([2.0] * 5) == 0.0

    def test_lag_autocorrelation_and_reversals(self):
        from signalforge.strategies.stats import lag_autocorrelation, reversal_frequency
        assert lag_autocorrelation([1.0, -1.0, 1.0, -1.0]) == pytest.approx(-0.75)
        assert lag_autocorrelation([2.0] * 5) == 0.0
        assert lag_autocorrelation([1.0]) == 0.0
        assert reversal_frequency([1.0, -1.0, 1.0, -1.0]) == 1.0
        assert reversal_frequency([1.0, 1.0, 1.0]) == 0.0

    def test_moments(self):
        from signalforge.strategies.stats import excess_kurtosis, skewness
        assert skewness([1.0, 2.0, 3.0]) == pytest.approx(0.0)
        assert excess_kurtosis([1.0, -1.0, 1.0, -1.0]) == pytest.approx(-2.0)
        assert skewness([4.0] * 3) == excess_kurtosis([4.0] * 3) == 0.0

    def test_trend_strength(self):
        from signalforge.strategies.stats import trend_strength
        # 2/3 up moves, 60% of the magnitude up
        assert trend_strength([0.01, -0.01, 0.02]) == pytest.approx(0.28)
        assert trend_strength([0.01, 0.02]) == pytest.approx(1.0)
        assert trend_strength([-0.01, -0.02]) == pytest.approx(-1.0)
        assert trend_strength([0.0, 0.0]) == 0.0

    def test_historical_volatility(self):
        from signalforge.strategies.stats import historical_volatility
        steady = [100 * 1.01 ** i for i in range(30)]
        assert historical_volatility(steady, 20) == pytest.approx(0.0, abs=1e-9)
        with pytest.raises(ValueError):
            historical_volatility(steady, 1)
        with pytest.raises(ValueError):
            historical_volatility([1.0, 0.0, 1.0], 2)

    def test_volume_profile(self):
        from signalforge.strategies.stats import point_of_control, value_area, volume_profile
        flat = [10.0, 10.0]
        assert volume_profile(flat, flat, flat, [3.0, 4.0]) == {10.0: 7.0}

        profile = {100.0: 50.0, 101.0: 30.0, 102.0: 20.0}
        assert point_of_control(profile) == 100.0
        assert value_area(profile, 70) == (100.0, 101.0)
        assert point_of_control({1.0: 5.0, 2.0: 5.0}) == 1.0
        with pytest.raises(ValueError):
            point_of_control({})


# ═══════════════════════════════════════════════
#  PERFORMANCE
# ═══════════════════════════════════════════════

class TestPerformance:
    """Test round-trip statistics from emitted signals."""

    def test_round_trips(self):
        from signalforge.models import SignalType
        from signalforge.strategies import compute_performance
        signals = [
            _signal(SignalType.SELL, 120.0, 0),   # no position: ignored
            _signal(SignalType.BUY, 100.0, 1),
            _signal(SignalType.BUY, 105.0, 2),    # already long: ignored
            _signal(SignalType.SELL, 110.0, 3),
            _signal(SignalType.BUY, 100.0, 4),
            _signal(SignalType.EXIT, 90.0, 5),
            _signal(SignalType.BUY, 95.0, 6),     # still open
        ]
        perf = compute_performance(signals)
        assert perf.total_trades == 2
        assert perf.total_return_pct == pytest.approx(0.0, abs=1e-9)
        assert perf.win_rate_pct == pytest.approx(50.0)
        assert perf.max_drawdown_pct == pytest.approx(10.0)

    def test_no_trades(self):
        from signalforge.strategies import compute_performance
        perf = compute_performance([])
        assert perf.model_dump() == {
            "total_return_pct": 0.0, "win_rate_pct": 0.0, "total_trades": 0, "max_drawdown_pct": 0.0,
        }

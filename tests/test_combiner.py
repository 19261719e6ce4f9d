import pytest

from signal_backtest.core.types import (
    FundamentalSignalResult,
    SentimentSignalResult,
    SignalType,
    TechnicalSignalResult,
)
from signal_backtest.signals.combiner import combine_signals, normalize_weights
from signal_backtest.utils.config import SignalWeights


def _tech(score, action=SignalType.HOLD, rsi=50.0):
    return TechnicalSignalResult(
        action=action, score=score, rsi_value=rsi,
        sma_short=100.0, sma_long=95.0, sma_trend=98.0, current_price=100.0,
        reasons=["tech reason"],
    )


def _fund(score, action=SignalType.HOLD):
    return FundamentalSignalResult(action=action, score=score, reasons=["fund reason"])


def test_normalize_weights_without_sentiment():
    tech, fund, sent = normalize_weights(SignalWeights(), sentiment_available=False)
    assert tech == pytest.approx(53.333, abs=1e-3)
    assert fund == pytest.approx(46.667, abs=1e-3)
    assert sent == 0.0


def test_normalize_weights_with_sentiment():
    assert normalize_weights(SignalWeights(), sentiment_available=True) == pytest.approx((40, 35, 25))


def test_buy_needs_score_and_one_vote():
    result = combine_signals(_tech(70, SignalType.BUY), _fund(60), SignalWeights())
    assert result.total_score == pytest.approx(70 * 40 / 75 + 60 * 35 / 75)
    assert result.action == SignalType.BUY
    assert not result.vetoed

    # 점수는 충분해도 매수표가 없으면 HOLD
    result = combine_signals(_tech(70), _fund(60), SignalWeights())
    assert result.action == SignalType.HOLD


def test_sell_on_two_votes_or_low_score():
    result = combine_signals(_tech(50, SignalType.SELL), _fund(50, SignalType.SELL), SignalWeights())
    assert result.action == SignalType.SELL

    result = combine_signals(_tech(30), _fund(30), SignalWeights())
    assert result.action == SignalType.SELL


def test_fundamental_veto_blocks_buy():
    result = combine_signals(_tech(100, SignalType.BUY), _fund(20), SignalWeights())
    assert result.action == SignalType.HOLD
    assert result.vetoed
    assert "펀더멘털" in result.veto_reason
    assert result.reasons[-1].startswith("[Veto]")


def test_rsi_veto_blocks_buy():
    result = combine_signals(_tech(80, SignalType.BUY, rsi=80), _fund(70, SignalType.BUY), SignalWeights())
    assert result.action == SignalType.HOLD
    assert result.vetoed
    assert "RSI" in result.veto_reason


def test_veto_does_not_touch_sell():
    result = combine_signals(_tech(10, SignalType.SELL, rsi=90), _fund(10, SignalType.SELL), SignalWeights())
    assert result.action == SignalType.SELL
    assert not result.vetoed


def test_sentiment_used_only_when_available():
    sentiment = SentimentSignalResult(action=SignalType.BUY, score=60, sentiment_label="bearish")

    ignored = combine_signals(_tech(80, SignalType.BUY), _fund(80, SignalType.BUY), SignalWeights(), sentiment)
    assert ignored.sentiment_score is None
    assert ignored.sentiment_weight == 0.0
    assert ignored.action == SignalType.BUY

    used = combine_signals(
        _tech(80, SignalType.BUY), _fund(80, SignalType.BUY), SignalWeights(), sentiment,
        sentiment_available=True,
    )
    assert used.total_score == pytest.approx(80 * 0.40 + 80 * 0.35 + 60 * 0.25)
    assert used.action == SignalType.HOLD
    assert "감성" in used.veto_reason


def test_reasons_are_prefixed_by_source():
    result = combine_signals(_tech(50), _fund(50), SignalWeights())
    assert result.reasons == ("[Tech] tech reason", "[Fund] fund reason")

"""
Smart withdrawal strategy.

Decides how much of a withdrawal to fund from cash versus selling
bitcoin, based on where the price sits relative to power law fair value.

Historical context behind the bands:
- Bitcoin spends ~54% of the time below fair value (preserve bitcoin)
  and ~45% above it (spend bitcoin).
- Extremes so far: 0.42x (2015) and 13x (2013) fair value.

Every decision caps bitcoin at the holdings available and cash at the
cash available. When the two together cannot cover the withdrawal the
decision spends what it can and reports the rest as ``shortfall``; it
never raises and never asks for more than exists.
"""

import math
from dataclasses import dataclass
from enum import Enum

from .config import AllocationParams
from .price_model import DateLike, PowerLawModel

# Amounts below this are treated as fully covered
COVERAGE_TOLERANCE = 1e-6


class StrategyTag(str, Enum):
    HODL_BITCOIN = "HodlBitcoin"
    BALANCED = "Balanced"
    SPEND_BITCOIN = "SpendBitcoin"
    EMERGENCY_ONLY = "EmergencyOnly"


@dataclass(frozen=True)
class WithdrawalDecision:
    use_cash_amount: float
    use_bitcoin_amount: float
    strategy_tag: StrategyTag
    fair_value_ratio: float
    strategy: str
    reasoning: str
    shortfall: float = 0.0

    @property
    def is_sufficient(self) -> bool:
        return self.shortfall <= COVERAGE_TOLERANCE

    @property
    def is_usable(self) -> bool:
        """False when the ratio is non-finite (no meaningful recommendation)."""
        return math.isfinite(self.fair_value_ratio)

    def value_covered(self, price: float) -> float:
        return self.use_cash_amount + self.use_bitcoin_amount * price


class SmartWithdrawalStrategy:
    """Valuation-aware split of a withdrawal between cash and bitcoin."""

    def __init__(self, params: AllocationParams = None, price_model: PowerLawModel = None):
        self.params = params or AllocationParams()
        self.price_model = price_model or PowerLawModel()

    def decide(
        self,
        current_price: float,
        current_date: DateLike,
        available_cash: float,
        available_bitcoin: float,
        amount_needed: float,
        emergency_mode: bool = False,
    ) -> WithdrawalDecision:
        fair = self.price_model.fair_value(current_date)
        ratio = current_price / fair if fair > 0 else math.inf

        cash = max(0.0, available_cash)
        bitcoin = max(0.0, available_bitcoin)
        need = max(0.0, amount_needed)

        if current_price <= 0 or not math.isfinite(current_price):
            # No sellable price for bitcoin; cash is all there is
            tag = StrategyTag.EMERGENCY_ONLY if emergency_mode else StrategyTag.HODL_BITCOIN
            return self._decision(
                min(cash, need), 0.0, need, 0.0, tag, ratio,
                "Cash Only (No Bitcoin Price)",
                "No usable bitcoin price; only cash can fund this withdrawal.",
            )

        if emergency_mode:
            return self._emergency(cash, bitcoin, need, ratio, current_price)

        p = self.params
        if ratio <= p.extreme_undervalued_max:
            return self._extreme_undervalued(cash, bitcoin, need, ratio, current_price)
        if ratio <= p.undervalued_max:
            return self._undervalued(cash, bitcoin, need, ratio, current_price)
        if ratio <= p.fair_value_max:
            return self._near_fair_value(cash, bitcoin, need, ratio, current_price)
        if ratio <= p.overvalued_max:
            return self._overvalued(cash, bitcoin, need, ratio, current_price)
        if ratio <= p.bubble_max:
            return self._bitcoin_only(
                cash, bitcoin, need, ratio, current_price,
                strategy="Bitcoin Only (Bubble Profits)",
                reasoning=(
                    f"Bitcoin in bubble territory at {ratio:.2f}x fair value. "
                    "Aggressively taking profits; mean reversion is likely."
                ),
            )
        return self._bitcoin_only(
            cash, bitcoin, need, ratio, current_price,
            strategy="Bitcoin Only (Extreme Bubble)",
            reasoning=(
                f"Bitcoin in extreme bubble at {ratio:.2f}x fair value. "
                "Historical high was 13x in 2013; take maximum profits."
            ),
        )

    # ------------------------------------------------------------------
    # Bands
    # ------------------------------------------------------------------

    def _extreme_undervalued(self, cash, bitcoin, need, ratio, price):
        if cash >= need:
            return self._decision(
                need, 0.0, need, price, StrategyTag.HODL_BITCOIN, ratio,
                "Cash Only (Extreme HODL)",
                f"Bitcoin is extremely undervalued at {ratio:.2f}x fair value "
                "(historical low 0.42x). Using cash to preserve bitcoin.",
            )
        return self._cash_first(
            cash, bitcoin, need, ratio, price, StrategyTag.HODL_BITCOIN,
            "Cash First, Minimal Bitcoin",
            f"Bitcoin extremely undervalued ({ratio:.2f}x). Using all "
            f"${cash:,.0f} cash first, selling minimal bitcoin.",
        )

    def _undervalued(self, cash, bitcoin, need, ratio, price):
        coverage = min(1.0, cash / need) if need > 0 else 1.0
        preferred_cash = need * max(self.params.undervalued_min_cash_share, coverage)

        if cash >= preferred_cash:
            bitcoin_needed = max(0.0, (need - preferred_cash) / price)
            return self._decision(
                preferred_cash, bitcoin_needed, need, price,
                StrategyTag.HODL_BITCOIN, ratio,
                "Mostly Cash (80%+)" if bitcoin_needed > 0 else "Cash Only",
                f"Bitcoin undervalued at {ratio:.2f}x fair value. "
                "Preserving bitcoin for the recovery.",
                available_bitcoin=bitcoin,
            )
        return self._cash_first(
            cash, bitcoin, need, ratio, price, StrategyTag.HODL_BITCOIN,
            "Cash First, Some Bitcoin",
            f"Bitcoin undervalued but limited cash. Using all ${cash:,.0f} cash first.",
        )

    def _near_fair_value(self, cash, bitcoin, need, ratio, price):
        p = self.params
        total_value = cash + bitcoin * price
        if total_value <= 0:
            # 0/0 cash share: nothing to blend
            return self._decision(
                0.0, 0.0, need, price, StrategyTag.BALANCED, ratio,
                "Balanced Withdrawal",
                "No assets available to withdraw from.",
            )

        cash_share = cash / total_value
        preferred_cash = min(
            cash, need * min(p.balanced_cash_cap, cash_share * p.balanced_cash_bias)
        )
        bitcoin_needed = max(0.0, (need - preferred_cash) / price)

        # Not enough bitcoin for the remainder: top up from unused cash
        if bitcoin_needed > bitcoin:
            bitcoin_needed = bitcoin
            preferred_cash = min(cash, need - bitcoin * price)

        return self._decision(
            preferred_cash, bitcoin_needed, need, price, StrategyTag.BALANCED, ratio,
            "Balanced Withdrawal",
            f"Bitcoin near fair value ({ratio:.2f}x). Blending cash and bitcoin "
            "with a slight cash preference to keep bitcoin exposure.",
        )

    def _overvalued(self, cash, bitcoin, need, ratio, price):
        if bitcoin * price >= need:
            return self._decision(
                0.0, need / price, need, price, StrategyTag.SPEND_BITCOIN, ratio,
                "Bitcoin Only (Take Profits)",
                f"Bitcoin overvalued at {ratio:.2f}x fair value. Taking profits "
                "while preserving cash for future opportunities.",
            )

        bitcoin_used = min(bitcoin, need * self.params.overvalued_bitcoin_share / price)
        cash_used = min(cash, max(0.0, need - bitcoin_used * price))
        # Cash short as well: sell the rest of the bitcoin before giving up
        if cash_used < need - bitcoin_used * price:
            bitcoin_used = min(bitcoin, (need - cash_used) / price)

        return self._decision(
            cash_used, bitcoin_used, need, price, StrategyTag.SPEND_BITCOIN, ratio,
            "Mostly Bitcoin (80%+)",
            f"Bitcoin overvalued at {ratio:.2f}x. Taking profits while above fair value.",
        )

    def _bitcoin_only(self, cash, bitcoin, need, ratio, price, strategy, reasoning):
        return self._decision(
            0.0, min(bitcoin, need / price), need, price,
            StrategyTag.SPEND_BITCOIN, ratio, strategy, reasoning,
        )

    def _emergency(self, cash, bitcoin, need, ratio, price):
        if cash >= need:
            return self._decision(
                need, 0.0, need, price, StrategyTag.EMERGENCY_ONLY, ratio,
                "Emergency Cash",
                "Emergency withdrawal using available cash to preserve bitcoin.",
            )
        return self._cash_first(
            cash, bitcoin, need, ratio, price, StrategyTag.EMERGENCY_ONLY,
            "Emergency Mixed",
            "Emergency withdrawal using all available assets.",
        )

    # ------------------------------------------------------------------

    def _cash_first(self, cash, bitcoin, need, ratio, price, tag, strategy, reasoning):
        return self._decision(
            cash, (need - cash) / price, need, price, tag, ratio, strategy, reasoning,
            available_bitcoin=bitcoin,
        )

    @staticmethod
    def _decision(
        cash_used, bitcoin_used, need, price, tag, ratio, strategy, reasoning,
        available_bitcoin=None,
    ):
        if available_bitcoin is not None:
            bitcoin_used = min(bitcoin_used, available_bitcoin)
        covered = cash_used + bitcoin_used * price
        shortfall = max(0.0, need - covered)
        return WithdrawalDecision(
            use_cash_amount=cash_used,
            use_bitcoin_amount=bitcoin_used,
            strategy_tag=tag,
            fair_value_ratio=ratio,
            strategy=strategy,
            reasoning=reasoning,
            shortfall=shortfall if shortfall > COVERAGE_TOLERANCE else 0.0,
        )

    # ------------------------------------------------------------------
    # Rebalancing advice
    # ------------------------------------------------------------------

    def rebalancing_advice(
        self,
        current_price: float,
        current_date: DateLike,
        bitcoin_holdings: float,
        cash_holdings: float,
    ) -> str:
        p = self.params
        ratio = self.price_model.price_to_fair_value_ratio(current_price, current_date)
        total_value = bitcoin_holdings * current_price + cash_holdings
        if total_value > 0:
            bitcoin_pct = bitcoin_holdings * current_price / total_value * 100
        else:
            bitcoin_pct = 0.0
        current = f"Current: {bitcoin_pct:.0f}% Bitcoin."

        if ratio <= p.advice_extreme_opportunity_max:
            return (
                f"EXTREME BUYING OPPORTUNITY: Bitcoin at {ratio:.2f}x fair value. "
                f"Consider increasing Bitcoin allocation if possible. {current}"
            )
        if ratio <= p.undervalued_max:
            return (
                f"GOOD BUYING OPPORTUNITY: Bitcoin undervalued at {ratio:.2f}x fair value. "
                f"Consider maintaining or increasing Bitcoin allocation. {current}"
            )
        if ratio <= p.fair_value_max:
            return (
                f"FAIR VALUE ZONE: Bitcoin near fair value ({ratio:.2f}x). "
                f"Balanced allocation appropriate. {current}"
            )
        if ratio <= p.overvalued_max:
            return (
                f"PROFIT TAKING ZONE: Bitcoin overvalued at {ratio:.2f}x fair value. "
                f"Consider taking some profits. {current}"
            )
        if ratio <= p.bubble_max:
            return (
                f"BUBBLE TERRITORY: Bitcoin significantly overvalued at {ratio:.2f}x. "
                f"Strong profit-taking recommended. {current}"
            )
        return (
            f"EXTREME BUBBLE: Bitcoin at {ratio:.2f}x fair value! Historical high was 13x. "
            f"Aggressive profit-taking advised. {current}"
        )


def decide_withdrawal(
    current_price: float,
    current_date: DateLike,
    available_cash: float,
    available_bitcoin: float,
    amount_needed: float,
    emergency_mode: bool = False,
) -> WithdrawalDecision:
    """Decision with the default bands and power law."""
    return SmartWithdrawalStrategy().decide(
        current_price, current_date, available_cash, available_bitcoin,
        amount_needed, emergency_mode,
    )

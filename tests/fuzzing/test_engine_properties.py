"""
Property-based tests for the pure labour engines.

Hypothesis generates quantities, rates, margins and hours and checks the
relationships the engines must keep for every input:
- sell / cost / hours stay consistent within rounding
- the estimator is deterministic
- margin resolution precedence
- efficiency definedness and budget status derivation
"""

from datetime import datetime, timezone
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from labour_engines.estimation import EstimateParams, LabourEstimator
from labour_engines.rate_resolution import (
    MarginTargets,
    RateConfig,
    SkillLevel,
    resolve_margin,
)
from labour_engines.variance import (
    TaskBudgetStatus,
    compute_efficiency,
    derive_budget_status,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
HALF_CENT = Decimal("0.005")

quantities = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("100000"), places=3,
    allow_nan=False, allow_infinity=False,
)
sell_rates = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("5000"), places=2,
    allow_nan=False, allow_infinity=False,
)
margins = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("1"), places=4,
    allow_nan=False, allow_infinity=False,
)
cost_rates = st.decimals(
    min_value=Decimal("1"), max_value=Decimal("500"), places=2,
    allow_nan=False, allow_infinity=False,
)
hours = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("10000"), places=2,
    allow_nan=False, allow_infinity=False,
)
statuses = st.sampled_from(list(TaskBudgetStatus))
keys = st.sampled_from(["residential", "commercial", "plumbing", "electrical", None])


def _config(margin: Decimal, cost_rate: Decimal) -> RateConfig:
    return RateConfig(
        margin_targets=MarginTargets(default=margin),
        skill_levels=(SkillLevel(level=0, cost_rate=cost_rate),),
    )


class TestEstimateProperties:
    @given(quantity=quantities, rate=sell_rates, margin=margins, cost_rate=cost_rates)
    @settings(max_examples=200)
    def test_budgets_consistent_within_rounding(self, quantity, rate, margin, cost_rate):
        estimate = LabourEstimator().calculate(
            EstimateParams(catalogue_sell_rate=rate, quantity=quantity, unit="ea",
                           min_skill_level=0),
            _config(margin, cost_rate),
            NOW,
        )
        exact_sell = quantity * rate
        one_plus = Decimal("1") + margin

        assert abs(estimate.sell_budget - exact_sell) <= HALF_CENT
        assert abs(estimate.cost_budget * one_plus - exact_sell) <= HALF_CENT * one_plus
        assert (
            abs(estimate.budgeted_hours * cost_rate - exact_sell / one_plus)
            <= HALF_CENT * cost_rate
        )
        assert estimate.cost_budget <= estimate.sell_budget + HALF_CENT
        assert estimate.budgeted_hours >= 0

    @given(quantity=quantities, rate=sell_rates, margin=margins, cost_rate=cost_rates)
    @settings(max_examples=50)
    def test_deterministic(self, quantity, rate, margin, cost_rate):
        params = EstimateParams(
            catalogue_sell_rate=rate, quantity=quantity, unit="ea", min_skill_level=0
        )
        config = _config(margin, cost_rate)

        assert (
            LabourEstimator().calculate(params, config, NOW)
            == LabourEstimator().calculate(params, config, NOW)
        )

    @given(quantity=quantities, rate=sell_rates, margin=margins, cost_rate=cost_rates)
    @settings(max_examples=50)
    def test_stored_sell_rate_reconstructs_exactly(self, quantity, rate, margin, cost_rate):
        estimate = LabourEstimator().calculate(
            EstimateParams(catalogue_sell_rate=rate, quantity=quantity, unit="ea",
                           min_skill_level=0),
            _config(margin, cost_rate),
            NOW,
        )
        assert estimate.reconstructed_sell_rate() == rate


class TestMarginResolutionProperties:
    @given(
        default=margins, project_margin=margins, trade_margin=margins,
        project_type=keys, trade_category=keys,
    )
    def test_most_specific_override_wins(
        self, default, project_margin, trade_margin, project_type, trade_category
    ):
        targets = MarginTargets(
            default=default,
            by_project_type={"residential": project_margin},
            by_trade_category={"plumbing": trade_margin},
        )

        resolved = resolve_margin(targets, project_type, trade_category)

        if trade_category == "plumbing":
            assert resolved == trade_margin
        elif project_type == "residential":
            assert resolved == project_margin
        else:
            assert resolved == default


class TestBudgetStatusProperties:
    @given(budgeted=hours, actual=hours)
    def test_efficiency_defined_only_for_positive_hours(self, budgeted, actual):
        efficiency = compute_efficiency(budgeted, actual)

        if budgeted > 0 and actual > 0:
            assert efficiency is not None
            assert efficiency == efficiency.to_integral_value()
        else:
            assert efficiency is None

    @given(current=statuses, budgeted=hours, actual=hours)
    def test_status_derivation(self, current, budgeted, actual):
        status = derive_budget_status(current, budgeted, actual, Decimal("1.1"))

        if current == TaskBudgetStatus.COMPLETE:
            assert status == TaskBudgetStatus.COMPLETE
        elif actual > budgeted * Decimal("1.1"):
            assert status == TaskBudgetStatus.OVER_BUDGET
        else:
            assert status == TaskBudgetStatus.ACTIVE

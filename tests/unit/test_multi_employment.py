"""Tests for concurrent employments: main employment, ceilings, minijobs."""

from datetime import date

import pytest

from lohncalc.sdk.errors import InvalidInput, NoEmploymentError
from lohncalc.sdk.multi_employment import (
    assign_tax_classes,
    calculate_multi_employment,
    check_minijob_limit,
    distribute_ceiling,
    identify_main_employment,
)
from lohncalc.sdk.rates import rates
from lohncalc.sdk.rounding import round_cents, to_decimal
from lohncalc.sdk.schemas import Employment, TaxClass
from lohncalc.sdk.taxes import calc_church_tax, calc_income_tax


def job(id, gross, start=date(2020, 1, 1), tax_class="I", employer_name=None):
    return Employment(
        id=id,
        employer_id=f"E-{id}",
        employer_name=employer_name,
        gross_monthly=gross,
        tax_class=tax_class,
        start_date=start,
    )


class TestMainEmployment:

    def test_highest_gross_wins(self):
        jobs = [job("a", 3000), job("b", 5000), job("c", 1000)]
        assert identify_main_employment(jobs).id == "b"

    def test_tie_goes_to_earliest_start(self):
        jobs = [job("a", 3000, date(2021, 5, 1)), job("b", 3000, date(2019, 1, 1))]
        assert identify_main_employment(jobs).id == "b"

    def test_independent_of_input_order(self):
        jobs = [job("a", 3000, date(2021, 5, 1)), job("b", 3000, date(2019, 1, 1)), job("c", 2000)]
        assert identify_main_employment(list(reversed(jobs))).id == identify_main_employment(jobs).id

    def test_empty_set(self):
        with pytest.raises(NoEmploymentError) as exc_info:
            identify_main_employment([])
        assert exc_info.value.code == "no_employment"

    def test_secondary_employments_get_class_vi(self):
        jobs = [job("a", 5000, tax_class="III"), job("b", 3000, tax_class="I"), job("c", 500, tax_class="IV")]
        assert assign_tax_classes(jobs) == {"a": TaxClass.III, "b": TaxClass.VI, "c": TaxClass.VI}


class TestDistributeCeiling:

    def test_below_ceiling_uses_gross(self):
        bases, summary = distribute_ceiling([job("a", 3000), job("b", 2000)], 7550)
        assert bases == {"a": 3000, "b": 2000}
        assert summary.capped is False
        assert summary.total_assessable == 5000

    def test_pension_ceiling_proportional(self):
        bases, summary = distribute_ceiling([job("a", 5000), job("b", 3000)], 7550)
        assert bases == {"a": 4718.75, "b": 2831.25}
        assert summary.capped is True
        assert summary.total_gross == 8000

    def test_health_ceiling_residue_to_main(self):
        bases, _ = distribute_ceiling([job("a", 5000), job("b", 3000)], 5175)
        assert bases["b"] == 1940.63
        assert bases["a"] == 3234.37
        assert sum(bases.values()) == pytest.approx(5175, abs=1e-9)

    def test_equal_split_residue(self):
        jobs = [job("a", 3000, date(2018, 1, 1)), job("b", 3000), job("c", 3000)]
        bases, _ = distribute_ceiling(jobs, 7550)
        assert bases == {"a": 2516.66, "b": 2516.67, "c": 2516.67}

    def test_order_does_not_change_bases(self):
        jobs = [job("a", 4100), job("b", 2900), job("c", 1333.33)]
        forward, _ = distribute_ceiling(jobs, 5512.5)
        backward, _ = distribute_ceiling(list(reversed(jobs)), 5512.5)
        assert forward == backward


class TestMinijobCheck:

    def test_over_limit(self):
        check = check_minijob_limit([300, 300], 556)
        assert check.is_over_limit is True
        assert check.total_income == 600
        assert check.excess_amount == 44.0
        assert "exceed" in check.message

    def test_within_limit(self):
        check = check_minijob_limit([250, 300], 556)
        assert check.is_over_limit is False
        assert check.excess_amount == 0
        assert "6.00 remaining" in check.message

    def test_exactly_at_limit(self):
        assert check_minijob_limit([556], 556).is_over_limit is False


class TestCalculateMultiEmployment:
    """Full distribution for 5000 + 3000 in 2024 (RV 7550, KV 5175)."""

    @pytest.fixture
    def result(self):
        jobs = [job("side", 3000, date(2022, 1, 1)), job("main", 5000, date(2019, 1, 1), employer_name="Acme")]
        return calculate_multi_employment(jobs, rates(2024), age=35, is_childless=False)

    def test_details_in_input_order(self, result):
        assert [d.employment.id for d in result.employments] == ["side", "main"]
        assert result.main_employment.id == "main"

    def test_tax_classes(self, result):
        by_id = {d.employment.id: d for d in result.employments}
        assert by_id["main"].tax_class == TaxClass.I
        assert by_id["main"].is_main_employment is True
        assert by_id["side"].tax_class == TaxClass.VI
        assert by_id["side"].is_main_employment is False

    def test_secondary_taxed_in_class_vi_without_allowances(self, result):
        side = next(d for d in result.employments if d.employment.id == "side")
        expected = round_cents(calc_income_tax(36000, "VI", rates(2024)) / 12)
        assert side.income_tax == expected

    def test_bases_from_ceiling_distribution(self, result):
        by_id = {s.employment_id: s for s in result.shares}
        assert by_id["main"].contributions.pension_base == 4718.75
        assert by_id["side"].contributions.pension_base == 2831.25
        assert by_id["main"].contributions.health_base == 3234.37
        assert by_id["side"].contributions.health_base == 1940.63
        assert by_id["main"].share_percent == 62.5

    def test_totals_are_sums(self, result):
        assert result.total_gross == 8000
        assert result.contributions.total.employee == pytest.approx(
            sum(d.social_insurance_employee for d in result.employments), abs=1e-9
        )
        assert result.total_income_tax == pytest.approx(sum(d.income_tax for d in result.employments), abs=1e-9)
        assert result.total_net == pytest.approx(sum(d.net_monthly for d in result.employments), abs=1e-9)

    def test_net_per_employment(self, result):
        for d in result.employments:
            assert d.net_monthly == pytest.approx(
                d.gross_monthly - d.social_insurance_employee - d.income_tax - d.solidarity_tax - d.church_tax,
                abs=0.005,
            )

    def test_warnings(self, result):
        assert any("every employer must be informed" in w for w in result.warnings)
        assert any("pension ceiling" in w for w in result.warnings)
        assert result.pension_distribution.capped is True
        assert result.health_distribution.capped is True

    def test_summary_lines(self, result):
        assert "Employments: 2" in result.details
        assert "Main employer: Acme" in result.details

    def test_recomputation_is_stable(self, result):
        jobs = [job("main", 5000, date(2019, 1, 1), employer_name="Acme"), job("side", 3000, date(2022, 1, 1))]
        again = calculate_multi_employment(jobs, rates(2024), age=35, is_childless=False)
        assert again.contributions == result.contributions
        assert again.total_net == result.total_net


class TestMultiEmploymentEdgeCases:

    def test_single_employment_keeps_class(self):
        result = calculate_multi_employment([job("a", 4000, tax_class="III")], rates(2025))
        assert result.employments[0].tax_class == TaxClass.III
        assert result.warnings == []
        assert result.minijob_check is None

    def test_child_allowances_apply_to_main_only(self):
        jobs = [job("a", 4000), job("b", 2000)]
        without = calculate_multi_employment(jobs, rates(2025), child_allowances=0)
        with_children = calculate_multi_employment(jobs, rates(2025), child_allowances=1)
        assert with_children.employments[0].income_tax < without.employments[0].income_tax
        assert with_children.employments[1].income_tax == without.employments[1].income_tax

    def test_two_minijobs_over_limit(self):
        jobs = [job("a", 3000), job("b", 300), job("c", 300)]
        result = calculate_multi_employment(jobs, rates(2025))
        assert result.minijob_check.is_over_limit is True
        assert result.minijob_check.excess_amount == 44.0
        assert any("exceed the 556.00 limit" in w for w in result.warnings)

    def test_flat_estimate_method(self):
        jobs = [job("a", 5000), job("b", 3000)]
        result = calculate_multi_employment(jobs, rates(2025), tax_method="flat_estimate")
        assert result.tax_method == "flat_estimate"
        assert result.employments[1].income_tax == 1050.0

    def test_unknown_tax_method(self):
        with pytest.raises(InvalidInput, match="Unknown tax method"):
            calculate_multi_employment([job("a", 1000)], rates(2025), tax_method="guess")

    def test_duplicate_ids(self):
        with pytest.raises(InvalidInput, match="unique"):
            calculate_multi_employment([job("a", 1000), job("a", 2000)], rates(2025))

    def test_empty(self):
        with pytest.raises(NoEmploymentError):
            calculate_multi_employment([], rates(2025))

    def test_east_ceiling(self):
        jobs = [job("a", 5000), job("b", 3000)]
        result = calculate_multi_employment(jobs, rates(2024), is_east_germany=True)
        assert result.pension_distribution.ceiling == 7450
        assert result.contributions.pension_base == 7450


class TestSolidarityAndChurchTax:
    """Each employment pays them on its own annual income tax."""

    def test_no_church_tax_by_default(self):
        result = calculate_multi_employment([job("a", 5000), job("b", 3000)], rates(2025))
        assert result.total_church_tax == 0
        assert all(d.church_tax == 0 for d in result.employments)

    def test_church_tax_from_annual_income_tax(self):
        table = rates(2024)
        result = calculate_multi_employment([job("main", 5000), job("side", 3000)], table, church_tax_rate=9)
        side = result.employments[1]
        annual = calc_income_tax(36000, "VI", table)
        assert side.church_tax == round_cents(to_decimal(calc_church_tax(annual, 9)) / 12)
        assert result.total_church_tax == pytest.approx(sum(d.church_tax for d in result.employments), abs=1e-9)

    def test_church_rate(self):
        jobs = [job("main", 5000), job("side", 3000)]
        eight = calculate_multi_employment(jobs, rates(2025), church_tax_rate=8)
        nine = calculate_multi_employment(jobs, rates(2025), church_tax_rate=9)
        assert eight.total_church_tax < nine.total_church_tax
        assert eight.total_net > nine.total_net

    def test_solidarity_tax_only_where_income_tax_is_high(self):
        result = calculate_multi_employment([job("main", 15000), job("side", 2000)], rates(2025))
        main, side = result.employments
        assert main.solidarity_tax > 0
        assert side.solidarity_tax == 0
        assert result.total_solidarity_tax == main.solidarity_tax
        assert main.net_monthly == pytest.approx(
            main.gross_monthly - main.social_insurance_employee - main.income_tax - main.solidarity_tax,
            abs=0.005,
        )

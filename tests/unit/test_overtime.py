"""Tests for overtime and surcharge pay."""

import pytest
from pydantic import ValidationError

from lohncalc.sdk.config import set_setting
from lohncalc.sdk.errors import InvalidInput, RateTableError
from lohncalc.sdk.overtime import (
    calc_overtime,
    calc_overtime_for_salary,
    hourly_rate_from_monthly,
    list_surcharge_schemes,
    load_surcharge_scheme,
    reset_scheme_registry,
    resolve_scheme,
)
from lohncalc.sdk.schemas import OvertimeCalculation, SurchargeScheme, WorkingTime


class TestSchemes:

    def test_packaged_schemes(self):
        schemes = list_surcharge_schemes()
        assert {"general", "construction", "gastronomy", "nursing"} <= set(schemes)

    def test_general_percentages(self):
        scheme = load_surcharge_scheme("general")
        assert (scheme.overtime, scheme.night, scheme.sunday, scheme.holiday) == (0.25, 0.25, 0.5, 1.0)
        assert scheme.base_cap is None

    def test_name_is_case_insensitive(self):
        assert load_surcharge_scheme(" Gastronomy ").name == "gastronomy"

    def test_unknown_scheme(self):
        with pytest.raises(InvalidInput, match="Unknown surcharge scheme 'bakery'"):
            load_surcharge_scheme("bakery")

    def test_none_is_packaged_general_whatever_the_settings(self):
        set_setting("default_scheme", "construction")
        assert resolve_scheme(None).name == "general"

    def test_none_ignores_user_general(self, tmp_path, monkeypatch):
        (tmp_path / "surcharge_schemes.yaml").write_text(
            "general: {overtime: 0.30, night: 0.25, sunday: 0.50, holiday: 1.00}\n"
        )
        monkeypatch.setenv("LOHN_CALC_RATES_PATH", str(tmp_path))
        assert load_surcharge_scheme("general").overtime == 0.3
        assert resolve_scheme(None).overtime == 0.25

    def test_name_resolves_through_registry(self):
        assert resolve_scheme("Nursing") is load_surcharge_scheme("nursing")

    def test_scheme_instance_passes_through(self):
        scheme = SurchargeScheme(overtime=0.3, night=0, sunday=0, holiday=0)
        assert resolve_scheme(scheme) is scheme

    def test_rates_dir_adds_and_replaces_schemes(self, tmp_path, monkeypatch):
        (tmp_path / "surcharge_schemes.yaml").write_text(
            "general: {overtime: 0.30, night: 0.25, sunday: 0.50, holiday: 1.00}\n"
            "bakery: {overtime: 0.25, night: 0.30, sunday: 0.50, holiday: 1.00}\n"
        )
        monkeypatch.setenv("LOHN_CALC_RATES_PATH", str(tmp_path))

        schemes = list_surcharge_schemes()
        assert schemes["general"].overtime == 0.3
        assert schemes["bakery"].night == 0.3
        assert "construction" in schemes

    def test_user_scheme_names_are_case_insensitive(self, tmp_path, monkeypatch):
        (tmp_path / "surcharge_schemes.yaml").write_text(
            "Bau: {overtime: 0.25, night: 0.20, sunday: 0.75, holiday: 2.00}\n"
        )
        monkeypatch.setenv("LOHN_CALC_RATES_PATH", str(tmp_path))

        assert load_surcharge_scheme("Bau").name == "bau"
        assert load_surcharge_scheme("bau").holiday == 2.0
        assert "bau" in list_surcharge_schemes()

    def test_schemes_read_once(self, tmp_path, monkeypatch):
        path = tmp_path / "surcharge_schemes.yaml"
        path.write_text("bakery: {overtime: 0.25, night: 0.30, sunday: 0.50, holiday: 1.00}\n")
        monkeypatch.setenv("LOHN_CALC_RATES_PATH", str(tmp_path))
        assert load_surcharge_scheme("bakery").night == 0.3

        path.write_text("bakery: {overtime: 0.25, night: 0.40, sunday: 0.50, holiday: 1.00}\n")
        assert load_surcharge_scheme("bakery").night == 0.3

        reset_scheme_registry()
        assert load_surcharge_scheme("bakery").night == 0.4

    def test_invalid_scheme_file(self, tmp_path, monkeypatch):
        (tmp_path / "surcharge_schemes.yaml").write_text("general: {overtime: -1, night: 0, sunday: 0, holiday: 0}\n")
        monkeypatch.setenv("LOHN_CALC_RATES_PATH", str(tmp_path))

        with pytest.raises(RateTableError, match="Invalid surcharge scheme 'general'") as exc_info:
            list_surcharge_schemes()
        assert exc_info.value.code == "configuration"


class TestCalcOvertime:

    def test_overtime_base_plus_surcharge(self):
        calc = OvertimeCalculation(hourly_rate=20, overtime_hours=10)
        result = calc_overtime(calc, load_surcharge_scheme("general"))
        assert result.overtime_pay == 250.0
        assert result.overtime_surcharge == 50.0
        assert result.total_bonuses == 50.0
        assert result.total_gross_pay == 250.0

    def test_overlapping_categories_each_earn_their_surcharge(self):
        # 4 Sunday night hours: 4 * 20 * (25% + 50%)
        calc = OvertimeCalculation(hourly_rate=20, night_hours=4, sunday_hours=4)
        result = calc_overtime(calc, load_surcharge_scheme("general"))
        assert result.night_bonus == 20.0
        assert result.sunday_bonus == 40.0
        assert result.overtime_pay == 0
        assert result.total_gross_pay == 60.0

    def test_regular_hours_at_base_rate(self):
        calc = OvertimeCalculation(hourly_rate=20, regular_hours=160, holiday_hours=8)
        result = calc_overtime(calc, load_surcharge_scheme("general"))
        assert result.regular_pay == 3200.0
        assert result.holiday_bonus == 160.0
        assert result.total_gross_pay == 3360.0

    def test_base_cap_limits_surcharges_only(self):
        # gastronomy caps the surcharge base at 50/h
        calc = OvertimeCalculation(hourly_rate=60, overtime_hours=1, holiday_hours=2)
        result = calc_overtime(calc, load_surcharge_scheme("gastronomy"))
        assert result.overtime_surcharge == 12.5
        assert result.overtime_pay == 72.5
        assert result.holiday_bonus == 125.0

    def test_deep_night_rate(self):
        # gastronomy: 25% for 2 night hours, 40% for 4 hours between 0 and 4 h
        calc = OvertimeCalculation(hourly_rate=20, night_hours=2, deep_night_hours=4)
        result = calc_overtime(calc, load_surcharge_scheme("gastronomy"))
        assert result.night_bonus == 10.0
        assert result.deep_night_bonus == 32.0
        assert result.total_bonuses == 42.0
        assert result.total_gross_pay == 42.0

    def test_deep_night_falls_back_to_night_rate(self):
        calc = OvertimeCalculation(hourly_rate=20, deep_night_hours=4)
        result = calc_overtime(calc, load_surcharge_scheme("general"))
        assert result.deep_night_bonus == 20.0

    def test_deep_night_respects_base_cap(self):
        calc = OvertimeCalculation(hourly_rate=60, deep_night_hours=1)
        result = calc_overtime(calc, load_surcharge_scheme("nursing"))
        assert result.deep_night_bonus == 20.0

    def test_no_hours(self):
        result = calc_overtime(OvertimeCalculation(hourly_rate=20), load_surcharge_scheme("general"))
        assert result.total_gross_pay == 0
        assert result.scheme == "general"

    def test_negative_hours_rejected(self):
        with pytest.raises(ValidationError):
            OvertimeCalculation(hourly_rate=20, overtime_hours=-1)

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            OvertimeCalculation(hourly_rate=-20)

    def test_camel_case_hours(self):
        hours = WorkingTime.model_validate({"overtimeHours": 2, "nightHours": 1})
        assert hours.overtime_hours == 2
        assert hours.night_hours == 1


class TestFromSalary:

    def test_hourly_rate_from_average_month(self):
        assert hourly_rate_from_monthly(1733.3) == pytest.approx(10.0)

    def test_hourly_rate_from_given_hours(self):
        assert hourly_rate_from_monthly(2000, month_hours=100) == 20.0

    def test_invalid_hours(self):
        with pytest.raises(InvalidInput):
            hourly_rate_from_monthly(2000, month_hours=0)

    def test_negative_salary(self):
        with pytest.raises(InvalidInput):
            hourly_rate_from_monthly(-1)

    def test_salary_overtime(self):
        # 4000 / 173.33 = 23.0774/h
        result = calc_overtime_for_salary(4000, WorkingTime(overtime_hours=10))
        assert result.hourly_rate == 23.08
        assert result.overtime_surcharge == 57.69
        assert result.overtime_pay == 288.46

    def test_named_scheme(self):
        result = calc_overtime_for_salary(4000, WorkingTime(holiday_hours=1), "construction", month_hours=200)
        # 20/h at 200%
        assert result.holiday_bonus == 40.0
        assert result.scheme == "construction"

"""Tests for deriving calculation inputs from employee master records."""

from datetime import date

import pytest

from lohncalc.sdk.employee import (
    EmployeeRecord,
    age_on,
    build_employee_input,
    is_east_german_state,
    normalize_state,
    period_end,
)
from lohncalc.sdk.errors import InvalidInput
from lohncalc.sdk.rates import rates
from lohncalc.sdk.schemas import PayrollPeriod, TaxClass


class TestStates:

    @pytest.mark.parametrize("value,code", [
        ("BY", "BY"),
        ("sn", "SN"),
        ("Thüringen", "TH"),
        ("thueringen", "TH"),
        ("Baden-Württemberg", "BW"),
        ("Nordrhein Westfalen", "NW"),
    ])
    def test_codes_and_names(self, value, code):
        assert normalize_state(value) == code

    def test_empty_is_none(self):
        assert normalize_state(None) is None
        assert normalize_state("  ") is None

    def test_unknown(self):
        with pytest.raises(InvalidInput, match="Unknown federal state"):
            normalize_state("Atlantis")

    def test_east_states(self):
        assert is_east_german_state("Sachsen")
        assert is_east_german_state("MV")
        assert not is_east_german_state("BE")
        assert not is_east_german_state("HH")
        assert not is_east_german_state(None)


class TestAge:

    def test_before_birthday(self):
        assert age_on(date(1990, 6, 15), date(2025, 6, 14)) == 34

    def test_on_birthday(self):
        assert age_on(date(1990, 6, 15), date(2025, 6, 15)) == 35

    def test_born_after_reference(self):
        with pytest.raises(InvalidInput):
            age_on(date(2030, 1, 1), date(2025, 1, 1))

    def test_period_end(self):
        assert period_end(PayrollPeriod(year=2024, month=2)) == date(2024, 2, 29)
        assert period_end(PayrollPeriod(year=2025, month=12)) == date(2025, 12, 31)


class TestBuildEmployeeInput:

    def test_bavarian_church_member(self):
        record = EmployeeRecord(id="e1", state="Bayern", church_tax=True, gross_salary=4000)
        employee = build_employee_input(record, PayrollPeriod(year=2025, month=3), rates(2025))
        assert employee.church_tax_rate == 8
        assert employee.is_east_germany is False
        assert employee.gross_salary == 4000

    def test_no_church_rate_without_membership(self):
        record = EmployeeRecord(id="e1", state="BY")
        employee = build_employee_input(record, PayrollPeriod(year=2025, month=3), rates(2025))
        assert employee.church_tax is False
        assert employee.church_tax_rate is None

    def test_east_state(self):
        record = EmployeeRecord(id="e1", state="SN")
        employee = build_employee_input(record, PayrollPeriod(year=2024, month=1), rates(2024))
        assert employee.is_east_germany is True

    def test_age_at_period_end(self):
        record = EmployeeRecord(id="e1", date_of_birth=date(2002, 3, 31))
        march = build_employee_input(record, PayrollPeriod(year=2025, month=3), rates(2025))
        february = build_employee_input(record, PayrollPeriod(year=2025, month=2), rates(2025))
        assert march.age == 23
        assert february.age == 22

    def test_default_age(self):
        employee = build_employee_input(EmployeeRecord(id="e1"), PayrollPeriod(year=2025, month=1), rates(2025))
        assert employee.age == 30

    def test_childless_from_allowances(self):
        period = PayrollPeriod(year=2025, month=1)
        with_children = build_employee_input(EmployeeRecord(id="e1", child_allowances=1), period, rates(2025))
        without = build_employee_input(EmployeeRecord(id="e2"), period, rates(2025))
        assert with_children.is_childless is False
        assert without.is_childless is True

    def test_camel_case_record(self):
        record = EmployeeRecord.model_validate({
            "id": "e1",
            "firstName": "Kim",
            "dateOfBirth": "1980-01-01",
            "taxClass": "3",
            "grossSalary": 5200,
        })
        employee = build_employee_input(record, PayrollPeriod(year=2025, month=6), rates(2025))
        assert employee.tax_class == TaxClass.III
        assert employee.age == 45
        assert employee.gross_salary == 5200

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            EmployeeRecord(id="e1", salary=4000)

"""Tests for rate table loading and the year-keyed provider."""

import threading

import pytest

from lohncalc.sdk.errors import InvalidInput, RateTableError, UnknownRateYear
from lohncalc.sdk.rates import (
    RateTableProvider,
    available_years,
    get_packaged_rates_dir,
    get_provider,
    load_rate_table,
    publish,
    rates,
)


def write_table(directory, year, source_year=2025, **replacements):
    """Write a copy of a packaged table under another year."""
    text = (get_packaged_rates_dir() / f"{source_year}.yaml").read_text()
    text = text.replace(f"year: {source_year}", f"year: {year}")
    for old, new in replacements.items():
        text = text.replace(old, new)
    path = directory / f"{year}.yaml"
    path.write_text(text)
    return path


class TestPackagedTables:
    """Shipped years load and carry the right constants."""

    def test_all_shipped_years_available(self):
        assert available_years() == [2024, 2025, 2026]

    @pytest.mark.parametrize("year", [2024, 2025, 2026])
    def test_each_year_validates(self, year):
        table = load_rate_table(get_packaged_rates_dir() / f"{year}.yaml")
        assert table.year == year
        assert table.social_insurance.care.childless_surcharge == 0.6
        assert table.social_insurance.care.childless_surcharge_min_age == 23

    def test_2024_ceilings(self):
        ceilings = rates(2024).ceilings
        assert ceilings.pension(is_east_germany=False) == 7550
        assert ceilings.pension(is_east_germany=True) == 7450
        assert ceilings.health == 5175

    def test_2025_ceilings_are_nationwide(self):
        ceilings = rates(2025).ceilings
        assert ceilings.pension(False) == ceilings.pension(True) == 8050
        assert ceilings.health == 5512.5

    def test_year_as_string(self):
        assert rates("2025").year == 2025

    def test_church_rate_by_state(self):
        church = rates(2025).church_tax
        assert church.rate_for_state("BY") == 8
        assert church.rate_for_state("bw") == 8
        assert church.rate_for_state("NW") == 9
        assert church.rate_for_state(None) == 9


class TestUnknownYear:

    def test_unknown_year_raises(self):
        with pytest.raises(UnknownRateYear) as exc_info:
            rates(1999)
        assert exc_info.value.code == "unknown_rate_year"
        assert exc_info.value.year == 1999
        assert 2025 in exc_info.value.available

    def test_malformed_year_is_invalid_input(self):
        with pytest.raises(InvalidInput):
            rates("twenty")


class TestLoadErrors:

    def test_missing_file(self, tmp_path):
        with pytest.raises(RateTableError, match="not found"):
            load_rate_table(tmp_path / "2030.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "2030.yaml"
        path.write_text("year: [2030\n")
        with pytest.raises(RateTableError, match="Invalid YAML"):
            load_rate_table(path)

    def test_unknown_field_rejected(self, tmp_path):
        path = write_table(tmp_path, 2030, **{"minimum_wage:": "bogus_field: 1\nminimum_wage:"})
        with pytest.raises(RateTableError, match="Invalid rate table"):
            load_rate_table(path)

    def test_year_must_match_file_name(self, tmp_path):
        path = write_table(tmp_path, 2030)
        path.rename(tmp_path / "2031.yaml")
        with pytest.raises(RateTableError, match="declares year 2030"):
            load_rate_table(tmp_path / "2031.yaml")

    def test_zones_must_ascend(self, tmp_path):
        path = write_table(tmp_path, 2030, **{"up_to: 17443": "up_to: 99999"})
        with pytest.raises(RateTableError):
            load_rate_table(path)


class TestExtraRatesDirectory:
    """A configured directory adds and overrides years."""

    def test_env_var_adds_year(self, tmp_path, monkeypatch):
        extra = tmp_path / "rates"
        extra.mkdir()
        write_table(extra, 2030)
        monkeypatch.setenv("LOHN_CALC_RATES_PATH", str(extra))

        assert 2030 in available_years()
        assert rates(2030).income_tax.basic_allowance == 12096

    def test_extra_directory_overrides_packaged_year(self, tmp_path, monkeypatch):
        extra = tmp_path / "rates"
        extra.mkdir()
        write_table(extra, 2025, source_year=2025, **{"minimum_wage: 12.82": "minimum_wage: 99"})
        monkeypatch.setenv("LOHN_CALC_RATES_PATH", str(extra))

        assert rates(2025).minimum_wage == 99

    def test_missing_directory_is_skipped(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOHN_CALC_RATES_PATH", str(tmp_path / "nope"))
        assert available_years() == [2024, 2025, 2026]


class TestPublish:
    """Hot-loading swaps the mapping without touching existing tables."""

    def test_publish_new_year(self, tmp_path):
        table = load_rate_table(write_table(tmp_path, 2030))
        publish(table)
        assert rates(2030) is table

    def test_publish_does_not_alter_obtained_tables(self, tmp_path):
        before = rates(2025)
        replacement = load_rate_table(
            write_table(tmp_path, 2025, **{"minimum_wage: 12.82": "minimum_wage: 20"})
        )

        publish(replacement)

        assert before.minimum_wage == 12.82
        assert rates(2025).minimum_wage == 20

    def test_tables_are_frozen(self):
        table = rates(2025)
        with pytest.raises(Exception):
            table.minimum_wage = 1

    def test_provider_is_shared(self):
        assert get_provider() is get_provider()

    def test_concurrent_publish_keeps_every_year(self, tmp_path):
        provider = RateTableProvider()
        tables = [load_rate_table(write_table(tmp_path, year)) for year in range(2030, 2040)]

        threads = [threading.Thread(target=provider.publish, args=(t,)) for t in tables]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert provider.available_years() == list(range(2030, 2040))

"""
Tests for analytics_config.

Covers:
- Packaged defaults.yaml and catalog.yaml
- AnalyticsConfig validation and dict coercion
- Catalog parse errors
- Checksum determinism
"""

from decimal import Decimal

import pytest
import yaml

from analytics_config import (
    DEFAULT_SETTINGS_PATH,
    AnalyticsConfig,
    PaymentWindowPolicy,
    compute_checksum,
    get_default_config,
    load_catalog,
    load_config,
    parse_catalog,
    parse_config,
)
from analytics_kernel.domain.records import ValuationMethod
from analytics_kernel.exceptions import ConfigurationError


def catalog_data(**source_overrides):
    source = {
        "id": "ledger",
        "display_name": "Ledger",
        "date_field": "posted",
        "fields": [
            {"id": "posted", "name": "entry_date", "source_table": "lines", "type": "date"},
            {"id": "memo", "name": "description", "source_table": "lines", "type": "text"},
        ],
    }
    source.update(source_overrides)
    return {"version": 1, "data_sources": [source]}


class TestDefaults:
    def test_packaged_defaults_match_dataclass_defaults(self):
        assert load_config(DEFAULT_SETTINGS_PATH) == AnalyticsConfig()

    def test_default_config_is_cached(self):
        assert get_default_config() is get_default_config()

    def test_fiscal_calendar(self):
        assert AnalyticsConfig(fiscal_year_start_month=7).fiscal_calendar.start_month == 7

    def test_to_dict_round_trips(self):
        config = AnalyticsConfig(payment_window=PaymentWindowPolicy.ALL_TIME, expiring_lot_days=10)
        assert AnalyticsConfig.from_dict(config.to_dict()) == config


class TestFromDict:
    def test_coercion(self):
        config = parse_config(
            {
                "analytics": {
                    "declining_balance_factor": 1.5,
                    "payment_window": "trailing_days",
                    "default_valuation_method": "average",
                }
            }
        )
        assert config.declining_balance_factor == Decimal("1.5")
        assert config.payment_window == PaymentWindowPolicy.TRAILING_DAYS
        assert config.default_valuation_method == ValuationMethod.AVERAGE

    def test_section_is_optional(self):
        assert parse_config({"default_currency": "EUR"}).default_currency == "EUR"

    def test_unknown_keys(self):
        with pytest.raises(ConfigurationError) as exc_info:
            AnalyticsConfig.from_dict({"default_currency": "USD", "colour": "blue"})
        assert "colour" in exc_info.value.reason

    def test_bad_enum_value(self):
        with pytest.raises(ConfigurationError):
            AnalyticsConfig.from_dict({"payment_window": "last_tuesday"})

    @pytest.mark.parametrize(
        "overrides",
        [
            {"default_currency": "ZZZ"},
            {"fiscal_year_start_month": 13},
            {"declining_balance_factor": Decimal("0")},
            {"payment_window_days": 0},
            {"cancellation_check_interval": 0},
            {"expiring_lot_days": -1},
            {"internal_decimal_places": 4},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigurationError):
            AnalyticsConfig(**overrides)

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigurationError):
            parse_config({"analytics": ["USD"]})


class TestLoadConfigFile:
    def test_yaml_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump({"analytics": {"default_currency": "GBP", "expiring_lot_days": 7}}))
        config = load_config(path)
        assert config.default_currency == "GBP"
        assert config.expiring_lot_days == 7

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == AnalyticsConfig()

    def test_top_level_list_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_load_is_logged_with_checksum(self, tmp_path, captured_logs):
        path = tmp_path / "settings.yaml"
        path.write_text("analytics: {default_currency: USD}\n")
        load_config(path)
        records = [r for r in captured_logs() if r["message"] == "analytics_config_loaded"]
        assert records[0]["checksum"] == compute_checksum(AnalyticsConfig().to_dict())


class TestCatalogParsing:
    def test_minimal_catalog(self):
        definition = parse_catalog(catalog_data())
        source = definition.data_sources[0]
        assert source.id == "ledger"
        assert [f.id for f in source.fields] == ["posted", "memo"]
        assert source.fields[0].display_name == "posted"
        assert source.fields[0].derived is False

    def test_duplicate_field_ids(self):
        data = catalog_data()
        data["data_sources"][0]["fields"].append(
            {"id": "memo", "source_table": "lines", "type": "text"}
        )
        with pytest.raises(ConfigurationError) as exc_info:
            parse_catalog(data)
        assert "memo" in exc_info.value.reason

    def test_unknown_type(self):
        data = catalog_data()
        data["data_sources"][0]["fields"][1]["type"] = "uuid"
        with pytest.raises(ConfigurationError):
            parse_catalog(data)

    def test_missing_key(self):
        data = catalog_data()
        del data["data_sources"][0]["fields"][1]["source_table"]
        with pytest.raises(ConfigurationError) as exc_info:
            parse_catalog(data)
        assert exc_info.value.source == "catalog:ledger"

    def test_date_field_must_be_a_date(self):
        with pytest.raises(ConfigurationError):
            parse_catalog(catalog_data(date_field="memo"))

    def test_source_without_fields(self):
        with pytest.raises(ConfigurationError):
            parse_catalog(catalog_data(fields=[]))

    def test_duplicate_sources(self):
        data = catalog_data()
        data["data_sources"].append(data["data_sources"][0])
        with pytest.raises(ConfigurationError):
            parse_catalog(data)

    def test_load_from_path(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text(yaml.safe_dump(catalog_data()))
        assert load_catalog(path).data_sources[0].display_name == "Ledger"

    def test_packaged_catalog(self):
        definition = load_catalog()
        assert definition.version == 1
        assert len(definition.data_sources) == 5


class TestChecksum:
    def test_deterministic_and_key_order_independent(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})

    def test_changes_with_content(self):
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_catalog_checksum(self):
        assert parse_catalog(catalog_data()).checksum == parse_catalog(catalog_data()).checksum
        assert parse_catalog(catalog_data()).checksum != parse_catalog(catalog_data(display_name="GL")).checksum

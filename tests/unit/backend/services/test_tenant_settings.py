"""
Unit Tests for tenant settings parsing.

Covers the JSON blob decoding, the legacy snake_case fallback and the
typed TenantSettings view. Registry reads and writes against a database
are in the integration tests.
"""

from crm.backend.services.settings import (
    TenantSettings,
    build_settings,
    normalize_settings,
    parse_settings_blob,
)


class TestParseSettingsBlob:
    def test_valid_json(self):
        assert parse_settings_blob('{"smtpHost": "smtp.example.com"}') == {"smtpHost": "smtp.example.com"}

    def test_invalid_json_gives_empty_mapping(self):
        assert parse_settings_blob("{not json") == {}

    def test_non_object_gives_empty_mapping(self):
        assert parse_settings_blob("[1, 2]") == {}

    def test_empty_values(self):
        assert parse_settings_blob(None) == {}
        assert parse_settings_blob("") == {}


class TestLegacyKeys:
    def test_snake_case_used_when_camel_case_missing(self):
        resolved = normalize_settings({"smtp_host": "legacy.example.com"})
        assert resolved == {"smtpHost": "legacy.example.com"}

    def test_camel_case_wins(self):
        resolved = normalize_settings({"smtpHost": "new.example.com", "smtp_host": "legacy.example.com"})
        assert resolved["smtpHost"] == "new.example.com"

    def test_blank_camel_case_falls_back_to_legacy(self):
        resolved = normalize_settings({"smtpHost": "  ", "smtp_host": "legacy.example.com"})
        assert resolved["smtpHost"] == "legacy.example.com"

    def test_renamed_keys(self):
        resolved = normalize_settings({"bank_iban": "FR76...", "invoice_footer_text": "Merci"})
        assert resolved == {"iban": "FR76...", "invoiceFooter": "Merci"}

    def test_unknown_keys_dropped(self):
        assert normalize_settings({"somethingElse": 1}) == {}


class TestBuildSettings:
    def test_defaults(self):
        settings = build_settings({})

        assert settings.invoice_prefix == "FAC"
        assert settings.quote_prefix == "DEV"
        assert settings.payment_terms == 30
        assert settings.default_vat_rate == 20.0
        assert settings.smtp_configured is False

    def test_invalid_field_ignored_not_fatal(self):
        settings = build_settings({"paymentTerms": "bientôt", "invoicePrefix": "F"})

        assert settings.payment_terms == 30
        assert settings.invoice_prefix == "F"

    def test_legacy_blob_end_to_end(self):
        settings = build_settings(parse_settings_blob(
            '{"smtp_host": "smtp.example.com", "smtp_username": "crm", "next_invoice_number": 42}'
        ))

        assert settings.smtp_configured is True
        assert settings.next_invoice_number == 42


class TestTenantSettings:
    def test_allowed_telegram_users(self):
        settings = TenantSettings(telegram_allowed_users="123, 456,abc, -5,")
        assert settings.allowed_telegram_users == [123, 456]

    def test_empty_allow_list(self):
        assert TenantSettings().allowed_telegram_users == []

    def test_public_dict_is_camel_case(self):
        data = TenantSettings(owner_name="Jean").public_dict()

        assert data["ownerName"] == "Jean"
        assert "owner_name" not in data
        assert data["nextInvoiceNumber"] == 1

    def test_public_dict_without_secrets(self):
        settings = TenantSettings(smtp_host="smtp.example.com", smtp_password="s3cret", openai_api_key="sk-1")

        data = settings.public_dict(include_secrets=False)

        assert data["smtpHost"] == "smtp.example.com"
        assert data["smtpPassword"] == ""
        assert data["openaiApiKey"] == ""
        assert settings.smtp_password == "s3cret"

"""Unit tests for phone/amount normalisation and request validation."""

import math

import pytest

from stk_gateway.config import settings
from stk_gateway.engine.errors import FormatError
from stk_gateway.engine.normalizer import build_payment_request, normalize_phone, validate_amount


class TestNormalizePhone:
    @pytest.mark.parametrize("raw,expected", [
        ("0712345678", "254712345678"),
        ("0701234567", "254701234567"),
        ("0110123456", "254110123456"),
        ("0712 345 678", "254712345678"),
        ("071-234-5678", "254712345678"),
    ])
    def test_local_format_rewritten_to_country_code(self, raw, expected):
        assert normalize_phone(raw) == expected

    @pytest.mark.parametrize("raw", ["254712345678", "254110123456", "254799999999"])
    def test_international_format_unchanged(self, raw):
        assert normalize_phone(raw) == raw

    def test_plus_prefix_stripped(self):
        assert normalize_phone("+254 712 345 678") == "254712345678"

    @pytest.mark.parametrize("raw", [
        "123456789",
        "254812345678",
        "0812345678",
        "07123456789",
        "25471234567",
        "",
        "07123abc78",
    ])
    def test_invalid_numbers_rejected(self, raw):
        with pytest.raises(FormatError) as exc_info:
            normalize_phone(raw)
        assert exc_info.value.field == "phone_number"


class TestValidateAmount:
    @pytest.mark.parametrize("amount", [1, 100.5, 70000, 69999.99, "250"])
    def test_valid_amounts(self, amount):
        assert validate_amount(amount) is True

    @pytest.mark.parametrize("amount", [0, -10, 0.99, 70000.01, 70001, math.nan, math.inf, -math.inf])
    def test_out_of_range_or_non_finite(self, amount):
        assert validate_amount(amount) is False

    @pytest.mark.parametrize("amount", [None, "abc", True, [100]])
    def test_non_numeric(self, amount):
        assert validate_amount(amount) is False

    def test_limits_follow_current_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "max_amount", 500)

        assert validate_amount(501) is False
        with pytest.raises(FormatError, match="between 1 and 500 KES"):
            build_payment_request(501, "0712345678", "ORDER123", "Payment")

    def test_explicit_limits(self):
        assert validate_amount(5, lower=10, upper=20) is False
        assert validate_amount(15, lower=10, upper=20) is True


class TestBuildPaymentRequest:
    def test_valid_request_is_normalised(self):
        request = build_payment_request(100, "0712345678", "ORDER123", "Payment")
        assert request.amount == 100.0
        assert request.phone_number == "254712345678"
        assert request.account_reference == "ORDER123"
        assert request.transaction_desc == "Payment"

    def test_request_is_immutable(self):
        request = build_payment_request(100, "0712345678", "ORDER123", "Payment")
        with pytest.raises(AttributeError):
            request.amount = 5

    @pytest.mark.parametrize("kwargs,field", [
        ({"amount": 0}, "amount"),
        ({"phone_number": "123456789"}, "phone_number"),
        ({"account_reference": ""}, "account_reference"),
        ({"account_reference": "ORDER-123"}, "account_reference"),
        ({"account_reference": "ABCDEFGHIJKLM"}, "account_reference"),
        ({"transaction_desc": ""}, "transaction_desc"),
        ({"transaction_desc": "Fourteen chars"}, "transaction_desc"),
    ])
    def test_invalid_fields(self, kwargs, field):
        params = {
            "amount": 100,
            "phone_number": "0712345678",
            "account_reference": "ORDER123",
            "transaction_desc": "Payment",
        }
        params.update(kwargs)
        with pytest.raises(FormatError) as exc_info:
            build_payment_request(**params)
        assert exc_info.value.field == field

"""
Unit tests for bcrypt hashing and phone number helpers.
"""

import pytest

from domofon.auth import PasswordHandler, normalize_phone, mask_phone


class TestPasswordHandler:
    """Tests for PasswordHandler class."""

    @pytest.mark.unit
    def test_hash_round_trip(self, password_handler):
        """Test a hash verifies its own password and nothing else."""
        hashed = password_handler.hash("TestPassword123!")

        assert hashed.startswith("$2b$04$")
        assert password_handler.verify("TestPassword123!", hashed) is True
        assert password_handler.verify("TestPassword123?", hashed) is False

    @pytest.mark.unit
    def test_default_cost_factor_is_12(self):
        """Test the default work factor ends up in the hash."""
        hashed = PasswordHandler().hash("TestPassword123!")

        assert PasswordHandler.cost_of(hashed) == 12

    @pytest.mark.unit
    def test_hashes_are_salted(self, password_handler):
        """Test the same password hashes differently each time."""
        first = password_handler.hash("TestPassword123!")
        second = password_handler.hash("TestPassword123!")

        assert first != second
        assert password_handler.verify("TestPassword123!", second) is True

    @pytest.mark.unit
    def test_cyrillic_password(self, password_handler):
        """Test hashing a non-ASCII password."""
        hashed = password_handler.hash("Пароль123!ёжик")

        assert password_handler.verify("Пароль123!ёжик", hashed) is True

    @pytest.mark.unit
    @pytest.mark.parametrize("password, message", [
        ("", "cannot be empty"),
        ("A" * 73, "longer than 72 bytes"),
        ("ж" * 37, "longer than 72 bytes"),  # 74 bytes in UTF-8
    ])
    def test_rejected_passwords(self, password_handler, password, message):
        """Test empty and over-long passwords are refused."""
        with pytest.raises(ValueError, match=message):
            password_handler.hash(password)

    @pytest.mark.unit
    def test_verify_never_raises(self, password_handler):
        """Test bad hashes and missing input simply fail verification."""
        assert password_handler.verify("whatever", "not-a-bcrypt-hash") is False
        assert password_handler.verify("whatever", None) is False
        assert password_handler.verify("", "$2b$04$abc") is False

    @pytest.mark.unit
    def test_needs_rehash(self, password_handler):
        """Test needs_rehash for hashes made with another cost."""
        hashed = password_handler.hash("TestPassword123!")

        assert password_handler.needs_rehash(hashed) is False
        assert PasswordHandler(rounds=5).needs_rehash(hashed) is True
        assert password_handler.needs_rehash("garbage") is True
        assert PasswordHandler.cost_of("garbage") is None


class TestNormalizePhone:
    """Tests for normalize_phone function."""

    @pytest.mark.unit
    def test_normalize_e164(self):
        """Test an already normalized number is unchanged."""
        assert normalize_phone("+71234567890") == "+71234567890"

    @pytest.mark.unit
    def test_normalize_without_plus(self):
        """Test a country-prefixed number without +."""
        assert normalize_phone("71234567890") == "+71234567890"

    @pytest.mark.unit
    def test_normalize_trunk_prefix(self):
        """Test Russian 8-prefixed national format."""
        assert normalize_phone("8 (123) 456-78-90") == "+71234567890"

    @pytest.mark.unit
    def test_normalize_ten_digit_national(self):
        """Test a bare national number gets the default country code."""
        assert normalize_phone("123 456 78 90") == "+71234567890"

    @pytest.mark.unit
    def test_normalize_mixed_format(self):
        """Test spaces, dashes and parentheses are stripped."""
        assert normalize_phone("+7 (123) 456-78-90") == "+71234567890"

    @pytest.mark.unit
    def test_normalize_other_default_country(self):
        """Test a non-Russian default country code."""
        assert normalize_phone("1199999999", default_country_code="55") == "+551199999999"
        assert normalize_phone("551199999999", default_country_code="55") == "+551199999999"
        # The 8-prefix rule only applies to +7
        assert normalize_phone("81234567890", default_country_code="55") is None

    @pytest.mark.unit
    def test_normalize_foreign_e164_kept(self):
        """Test a foreign number with + is kept."""
        assert normalize_phone("+12025551234") == "+12025551234"

    @pytest.mark.unit
    def test_normalize_too_short(self):
        """Test too few digits is invalid."""
        assert normalize_phone("123456") is None
        assert normalize_phone("+7123") is None

    @pytest.mark.unit
    def test_normalize_too_long(self):
        """Test more than 15 digits is invalid."""
        assert normalize_phone("+7123456789012345") is None

    @pytest.mark.unit
    def test_normalize_with_letters(self):
        """Test letters make the number invalid."""
        assert normalize_phone("+7123abc4567890") is None

    @pytest.mark.unit
    def test_normalize_misplaced_plus(self):
        """Test a + anywhere but the front is invalid."""
        assert normalize_phone("7123+4567890") is None

    @pytest.mark.unit
    def test_normalize_empty(self):
        """Test empty input."""
        assert normalize_phone("") is None
        assert normalize_phone(None) is None


class TestMaskPhone:
    """Tests for mask_phone function."""

    @pytest.mark.unit
    def test_mask_keeps_prefix_and_last_digits(self):
        """Test masking a full number."""
        assert mask_phone("+71234567890") == "+7******7890"

    @pytest.mark.unit
    def test_mask_short_and_missing(self):
        """Test masking short and missing values."""
        assert mask_phone("12345") == "*****"
        assert mask_phone(None) == "<none>"

"""
Test volunteer input normalization
"""

import pytest

from volunteer_booking.shared.validators import sanitize_string, validate_email, validate_phone


class TestValidateEmail:
    def test_normalizes_case_and_whitespace(self):
        assert validate_email("  Lucia.Perez@Example.COM ") == "lucia.perez@example.com"

    @pytest.mark.parametrize("value", ["lucia", "lucia@", "@example.com", "lucia@example"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            validate_email(value)


class TestValidatePhone:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("612 345 678", "+34612345678"),
            ("+34 612-345-678", "+34612345678"),
            ("0034612345678", "+34612345678"),
            ("+44 20 7946 0958", "+442079460958"),
        ],
    )
    def test_normalizes_to_e164(self, value, expected):
        assert validate_phone(value) == expected

    def test_empty_phone_is_optional(self):
        assert validate_phone("") is None
        assert validate_phone(None) is None

    @pytest.mark.parametrize("value", ["12345", "+1", "61234567890123"])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            validate_phone(value)


def test_sanitize_string_escapes_html():
    assert sanitize_string('<img src=x onerror="alert(1)">') == "&lt;img src=x onerror=&quot;alert(1)&quot;&gt;"
    assert sanitize_string(None) is None

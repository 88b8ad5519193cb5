"""Tests for form validators."""

import pytest

from reflect.utils.validators import (
    VALIDATORS,
    ValidationError,
    require,
    sanitize_text,
    validate_burnout_score,
    validate_email,
    validate_intensity,
    validate_name,
    validate_number,
    validate_password,
    validate_reflection,
    validate_url,
)


class TestValidateEmail:
    """Tests for validate_email."""

    def test_valid_email_is_trimmed(self):
        result = validate_email("  ana@example.com ")
        assert result.valid is True
        assert result.value == "ana@example.com"

    @pytest.mark.parametrize("value", [None, "", 42])
    def test_missing_email(self, value):
        result = validate_email(value)
        assert result.valid is False
        assert result.error == "Email is required"

    def test_whitespace_only(self):
        assert validate_email("   ").error == "Email cannot be empty"

    def test_bad_format(self):
        assert validate_email("not-an-email").error == "Invalid email format"

    def test_domain_without_dot(self):
        assert validate_email("ana@localhost").error == "Invalid email domain"

    def test_too_long(self):
        email = "a" * 250 + "@example.com"
        assert validate_email(email).error == "Email is too long (max 254 characters)"

    def test_script_fragment_rejected(self):
        result = validate_email("onclick=x@example.com")
        assert result.valid is False


class TestValidatePassword:
    """Tests for validate_password."""

    def test_strong_password(self):
        result = validate_password("Str0ng!Horse#9")
        assert result.valid is True
        assert result.strength == "strong"

    def test_weak_but_valid(self):
        result = validate_password("Abcdef1!")
        assert result.valid is True
        assert result.strength == "weak"

    def test_medium(self):
        assert validate_password("Abcdefg1!x").strength == "medium"

    def test_too_short(self):
        assert validate_password("Ab1!").error == "Password must be at least 8 characters long"

    def test_missing_uppercase(self):
        assert "uppercase" in validate_password("abcdefg1!").error

    def test_missing_number(self):
        assert "number" in validate_password("Abcdefgh!").error

    def test_missing_special(self):
        assert "special character" in validate_password("Abcdefgh1").error

    def test_common_password_rejected(self):
        result = validate_password("Password123!")
        assert result.valid is False
        assert "too common" in result.error


class TestValidateName:
    """Tests for validate_name."""

    def test_valid_name(self):
        assert validate_name(" Mary-Jo O'Neil ").value == "Mary-Jo O'Neil"

    def test_single_letter(self):
        assert validate_name("A").error == "Name must be at least 2 characters long"

    def test_digits_rejected(self):
        assert validate_name("R2D2").valid is False

    def test_too_long(self):
        assert validate_name("a" * 101).error == "Name is too long (max 100 characters)"


class TestValidateUrl:
    """Tests for validate_url."""

    def test_https_url(self):
        assert validate_url("https://example.com/path").valid is True

    def test_javascript_scheme(self):
        assert validate_url("javascript:alert(1)").error == "URL contains invalid protocol"

    def test_ftp_rejected(self):
        assert validate_url("ftp://example.com").error == "URL must use HTTP or HTTPS protocol"

    def test_relative_url(self):
        assert validate_url("/just/a/path").error == "Invalid URL format"


class TestValidateReflection:
    """Tests for validate_reflection."""

    def test_trimmed_value(self):
        assert validate_reflection("  felt calmer  ").value == "felt calmer"

    def test_blank(self):
        assert validate_reflection("   ").error == "Reflection cannot be empty"

    def test_too_long(self):
        result = validate_reflection("x" * 10_001)
        assert result.error == "Reflection is too long (max 10,000 characters)"

    @pytest.mark.parametrize("text", ["<iframe src=x>", "<SCRIPT>", "<embed>"])
    def test_markup_rejected(self, text):
        assert validate_reflection(text).error == "Reflection contains invalid content"


class TestValidateNumber:
    """Tests for numeric validators."""

    def test_within_bounds(self):
        result = validate_number("7", min=1, max=10)
        assert result.valid is True
        assert result.value == 7.0

    def test_below_min(self):
        assert validate_number(0, min=1).error == "Must be at least 1"

    def test_above_max(self):
        assert validate_number(11, max=10).error == "Must be at most 10"

    @pytest.mark.parametrize("value", [None, True, "abc", float("nan")])
    def test_not_a_number(self, value):
        assert validate_number(value).error == "Must be a valid number"

    def test_integer_required(self):
        assert validate_number(2.5, integer=True).error == "Must be a whole number"

    def test_burnout_score_range(self):
        assert validate_burnout_score(10).value == 10
        assert validate_burnout_score(11).valid is False

    def test_intensity_range(self):
        assert validate_intensity(5).value == 5
        assert validate_intensity(0).valid is False


class TestHelpers:
    """Tests for require, sanitize_text and the registry."""

    def test_require_returns_value(self):
        assert require(validate_intensity(3), "intensity") == 3

    def test_require_raises(self):
        with pytest.raises(ValidationError) as exc:
            require(validate_intensity(9), "intensity")
        assert exc.value.field == "intensity"
        assert "intensity" in str(exc.value)

    def test_sanitize_text(self):
        assert sanitize_text("<b>'hi'</b>") == "&lt;b&gt;&#x27;hi&#x27;&lt;&#x2F;b&gt;"

    def test_sanitize_non_string(self):
        assert sanitize_text(None) == ""

    def test_registry_names(self):
        assert {"email", "password", "name", "url", "reflection"} <= set(VALIDATORS)

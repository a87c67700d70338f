"""
Testes unitários para o módulo de validação (common/validation.py).

Testa:
- Sanitização de strings
- Validação de inteiros, floats e booleanos
- Conversão de datas ISO
"""

from datetime import datetime

import pytest

from backend.atendimento.common.validation import (
    ValidationError,
    parse_datetime,
    parse_datetime_safe,
    sanitize_string,
    validate_boolean,
    validate_float,
    validate_integer,
)


class TestSanitizeString:

    def test_strip_whitespace(self):
        assert sanitize_string("  Março  ") == "Março"

    def test_escape_html(self):
        assert sanitize_string("<b>x</b>") == "&lt;b&gt;x&lt;/b&gt;"

    def test_max_length(self):
        with pytest.raises(ValidationError, match="máximo"):
            sanitize_string("a" * 11, max_length=10)

    def test_allow_empty(self):
        assert sanitize_string("   ", allow_empty=True) == ""

    def test_not_string_raises(self):
        with pytest.raises(ValidationError):
            sanitize_string(123)


class TestValidateInteger:

    def test_string_integer(self):
        assert validate_integer("42") == 42

    def test_limits(self):
        with pytest.raises(ValidationError, match="mínimo"):
            validate_integer(0, min_value=1)
        with pytest.raises(ValidationError, match="máximo"):
            validate_integer(6, max_value=5)

    def test_rejects_bool_and_fraction(self):
        with pytest.raises(ValidationError):
            validate_integer(True)
        with pytest.raises(ValidationError):
            validate_integer(4.5)

    def test_none(self):
        assert validate_integer(None, allow_none=True) is None
        with pytest.raises(ValidationError):
            validate_integer(None)


class TestValidateFloatAndBoolean:

    def test_float(self):
        assert validate_float("1.5") == 1.5
        with pytest.raises(ValidationError):
            validate_float("abc")

    @pytest.mark.parametrize("value, expected", [
        ("true", True), ("sim", True), ("1", True), (1, True),
        ("false", False), ("não", False), ("", False), (None, False),
    ])
    def test_boolean(self, value, expected):
        assert validate_boolean(value) is expected

    def test_boolean_invalid(self):
        with pytest.raises(ValidationError):
            validate_boolean("talvez")


class TestParseDatetime:

    def test_iso(self):
        assert parse_datetime("2024-03-01T08:30:00") == datetime(2024, 3, 1, 8, 30)

    def test_date_only(self):
        assert parse_datetime("2024-03-01") == datetime(2024, 3, 1)

    def test_timezone_becomes_naive(self):
        assert parse_datetime("2024-03-01T08:30:00Z").tzinfo is None

    def test_invalid(self):
        with pytest.raises(ValidationError, match="inicio"):
            parse_datetime("01/03/2024", "inicio")

    def test_safe(self):
        assert parse_datetime_safe(None) is None
        assert parse_datetime_safe("lixo") is None
        assert parse_datetime_safe("2024-03-01 08:30:00.000000") == datetime(2024, 3, 1, 8, 30)

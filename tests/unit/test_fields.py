"""Tests for positional field access and coercion."""

from furlong.parser.fields import (
    get_bool,
    get_field,
    get_float,
    get_int,
    get_optional_int,
    parse_float,
    parse_int,
    parse_optional_float,
    split_csv_line,
    split_fixed_width,
)


class TestSplitCsvLine:
    def test_plain_fields(self):
        assert split_csv_line("SAR,20240815,5") == ["SAR", "20240815", "5"]

    def test_quoted_comma_kept(self):
        assert split_csv_line('SAR,"Smith, J.",5') == ["SAR", "Smith, J.", "5"]

    def test_doubled_quote_escape(self):
        assert split_csv_line('"He said ""go""",x') == ['He said "go"', "x"]

    def test_empty_fields_preserved(self):
        assert split_csv_line("a,,c,") == ["a", "", "c", ""]

    def test_fixed_width_splits_on_whitespace(self):
        assert split_fixed_width("SAR  20240815\t5 1 Name") == ["SAR", "20240815", "5", "1", "Name"]


class TestGetField:
    def test_strips_whitespace(self):
        assert get_field(["  SAR  "], 0) == "SAR"

    def test_out_of_range_returns_default(self):
        assert get_field(["a"], 5) == ""
        assert get_field(["a"], 5, "UNK") == "UNK"

    def test_negative_index_returns_default(self):
        assert get_field(["a", "b"], -1, "x") == "x"

    def test_blank_returns_default(self):
        assert get_field(["   "], 0, "d") == "d"


class TestNumericCoercion:
    def test_parse_int_truncates_float_text(self):
        assert parse_int("5.7") == 5

    def test_parse_int_junk_uses_default(self):
        assert parse_int("abc", 3) == 3

    def test_thousands_separator(self):
        assert parse_float("80,000") == 80000.0

    def test_nan_and_inf_rejected(self):
        assert parse_optional_float("nan") is None
        assert parse_optional_float("inf") is None
        assert parse_float("-inf", 1.5) == 1.5

    def test_get_int_and_float(self):
        fields = ["5", "2.5", ""]
        assert get_int(fields, 0) == 5
        assert get_float(fields, 1) == 2.5
        assert get_int(fields, 2, 9) == 9

    def test_optional_int_missing(self):
        assert get_optional_int(["", "x"], 0) is None
        assert get_optional_int(["", "x"], 1) is None


class TestGetBool:
    def test_truthy_codes(self):
        for value in ("Y", "1", "T", "true", "yes"):
            assert get_bool([value], 0) is True

    def test_falsy_codes(self):
        for value in ("N", "0", "", "maybe"):
            assert get_bool([value], 0) is False

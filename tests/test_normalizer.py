"""Tests for amount and date normalization."""
import unittest
from datetime import date, datetime
from decimal import Decimal

from ledgerflow.parsing.normalizer import (
    has_amount_sign,
    looks_like_amount_token,
    normalize_date,
    parse_amount,
    safe_parse_amount,
)
from ledgerflow.utils.exceptions import InvalidAmountError, InvalidDateError


class TestParseAmount(unittest.TestCase):
    """Test parse_amount functionality."""

    def test_parenthesized_currency_is_negative(self):
        self.assertEqual(parse_amount("($1,250.00)"), Decimal("-1250.00"))

    def test_credit_marker_is_positive(self):
        self.assertEqual(parse_amount("500.00 CR"), Decimal("500.00"))

    def test_debit_marker_is_negative(self):
        self.assertEqual(parse_amount("500.00 DR"), Decimal("-500.00"))

    def test_trailing_minus_is_negative(self):
        self.assertEqual(parse_amount("1,234.56-"), Decimal("-1234.56"))

    def test_leading_minus(self):
        self.assertEqual(parse_amount("-54.32"), Decimal("-54.32"))

    def test_plain_positive(self):
        self.assertEqual(parse_amount("2,000.00"), Decimal("2000.00"))

    def test_credit_wins_over_parentheses(self):
        """A CR marker forces the value positive even when parenthesized."""
        self.assertEqual(parse_amount("(100.00) CR"), Decimal("100.00"))

    def test_credit_word_is_not_a_marker(self):
        with self.assertRaises(InvalidAmountError):
            parse_amount("Credit")

    def test_other_currency_symbols_removed(self):
        self.assertEqual(parse_amount("€ 12.50"), Decimal("12.50"))

    def test_numbers_taken_as_is(self):
        self.assertEqual(parse_amount(-42), Decimal("-42"))
        self.assertEqual(parse_amount(12.5), Decimal("12.5"))
        self.assertEqual(parse_amount(Decimal("3.10")), Decimal("3.10"))

    def test_invalid_values_raise(self):
        for value in ("", "   ", "abc", "CR", "NaN", "Infinity", None, True):
            with self.subTest(value=value):
                with self.assertRaises(InvalidAmountError):
                    parse_amount(value)

    def test_non_finite_number_raises(self):
        with self.assertRaises(InvalidAmountError):
            parse_amount(float("inf"))

    def test_safe_parse_returns_none(self):
        self.assertIsNone(safe_parse_amount("n/a"))
        self.assertEqual(safe_parse_amount("(5.00)"), Decimal("-5.00"))


class TestAmountShape(unittest.TestCase):
    """Test amount sign and shape checks."""

    def test_has_amount_sign(self):
        self.assertTrue(has_amount_sign("(12.00)"))
        self.assertTrue(has_amount_sign("-12.00"))
        self.assertTrue(has_amount_sign("12.00-"))
        self.assertTrue(has_amount_sign("12.00 cr"))
        self.assertFalse(has_amount_sign("12.00"))

    def test_looks_like_amount_token(self):
        for token in ("5.75", "2,500.00", "(45.00)", "-12", "$9.99", "100.00 CR", "1234"):
            with self.subTest(token=token):
                self.assertTrue(looks_like_amount_token(token))

        for token in ("STORE", "12/01", "1,23.00", "5.7"):
            with self.subTest(token=token):
                self.assertFalse(looks_like_amount_token(token))


class TestNormalizeDate(unittest.TestCase):
    """Test normalize_date functionality."""

    def test_iso_date(self):
        self.assertEqual(normalize_date("2024-01-15"), "2024-01-15")

    def test_iso_timestamp(self):
        self.assertEqual(normalize_date("2024-01-15T10:30:00Z"), "2024-01-15")

    def test_month_first_triple(self):
        self.assertEqual(normalize_date("03/04/2024"), "2024-03-04")

    def test_day_first_when_month_is_impossible(self):
        self.assertEqual(normalize_date("31/12/2024"), "2024-12-31")

    def test_two_digit_years(self):
        self.assertEqual(normalize_date("01/15/24"), "2024-01-15")
        self.assertEqual(normalize_date("01/15/85"), "1985-01-15")

    def test_dotted_and_dashed_triples(self):
        self.assertEqual(normalize_date("12.05.2023"), "2023-12-05")
        self.assertEqual(normalize_date("12-05-2023"), "2023-12-05")

    def test_written_dates(self):
        self.assertEqual(normalize_date("Jan 15, 2024"), "2024-01-15")
        self.assertEqual(normalize_date("15 March 2024"), "2024-03-15")

    def test_excel_serial(self):
        self.assertEqual(normalize_date(45000), "2023-03-15")
        self.assertEqual(normalize_date(45000.75), "2023-03-15")

    def test_date_objects(self):
        self.assertEqual(normalize_date(datetime(2024, 5, 1, 10, 0)), "2024-05-01")
        self.assertEqual(normalize_date(date(2024, 5, 2)), "2024-05-02")

    def test_invalid_dates_raise(self):
        for value in ("not a date", "", "13/13/2024", "2024", 500, None):
            with self.subTest(value=value):
                with self.assertRaises(InvalidDateError):
                    normalize_date(value)


if __name__ == "__main__":
    unittest.main()

import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from budgetbuilder.money import (
    CurrencyFormat,
    clamp_min,
    clamp_range,
    format_currency,
    parse_numeric_input,
)


def test_parse_numeric_input_fallbacks():
    assert parse_numeric_input('12.5') == 12.5
    assert parse_numeric_input(' 7 ') == 7.0
    assert parse_numeric_input(3) == 3.0
    assert parse_numeric_input('') == 0.0
    assert parse_numeric_input(None, 1.0) == 1.0
    assert parse_numeric_input('abc', 4.0) == 4.0
    assert parse_numeric_input(float('nan'), 2.0) == 2.0
    assert parse_numeric_input('inf') == 0.0
    assert parse_numeric_input(True, 9.0) == 9.0


def test_clamps():
    assert clamp_min(-3, 0) == 0
    assert clamp_min(5, 1) == 5
    assert clamp_range(150, 0, 100) == 100
    assert clamp_range(-1, 0, 100) == 0
    assert clamp_range(42, 0, 100) == 42


def test_format_currency_uses_configured_fraction_digits():
    cents = CurrencyFormat(currency='USD', locale='en-US',
                           min_fraction_digits=2, max_fraction_digits=2)
    whole = CurrencyFormat(currency='USD', locale='en_US')
    assert format_currency(1234.5, cents) == '$1,234.50'
    assert format_currency(1234, whole) == '$1,234'
    assert format_currency('not a number', cents) == '$0.00'


def test_format_currency_default_budget_locale():
    out = format_currency(27000, CurrencyFormat())
    assert '27.000' in out
    assert ',' not in out


def test_currency_format_from_mapping():
    fmt = CurrencyFormat.from_mapping({'currency': 'EUR', 'locale': 'es-ES',
                                       'min_fraction_digits': 2, 'max_fraction_digits': 2})
    assert fmt == CurrencyFormat('EUR', 'es-ES', 2, 2)
    assert CurrencyFormat.from_mapping({}) == CurrencyFormat()

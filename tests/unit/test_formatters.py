from datetime import date
from decimal import Decimal

from orderdesk.utils.formatters import format_date, format_money, format_number, format_qty


def test_format_number_groups_thousands_and_trims_zeros():
    assert format_number(1500) == '1,500'
    assert format_number(Decimal('1500.50')) == '1,500.5'
    assert format_number('1234567.25') == '1,234,567.25'
    assert format_number(None) == '0'


def test_format_number_keeps_unparseable_input():
    assert format_number('n/a') == 'n/a'


def test_format_money():
    assert format_money(Decimal('150.00')) == '₹150'
    assert format_money(-20, symbol='$') == '-$20'


def test_format_qty():
    assert format_qty(7) == '7'
    assert format_qty('12000') == '12,000'
    assert format_qty(None) == '0'


def test_format_date():
    assert format_date(date(2024, 3, 5)) == '05/03/2024'
    assert format_date(None) == '-'

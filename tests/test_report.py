"""Balance reporting."""

import logging
from decimal import Decimal
from unittest.mock import Mock

import pytest

from liquidity_swap.report import PositionBalances, fetch_position_balances, report_deposited, report_final_balances


def _mock_a_token(symbol: str, decimals: int, raw_balance: int) -> Mock:
    token = Mock()
    token.symbol = symbol
    token.decimals = decimals
    token.convert_to_decimals = lambda x: Decimal(x) / Decimal(10**decimals)
    token.fetch_raw_balance_of.return_value = raw_balance
    return token


@pytest.fixture
def aweth() -> Mock:
    return _mock_a_token("aWETH", 18, 1_234_567_890_000_000_000)


@pytest.fixture
def ausdc() -> Mock:
    return _mock_a_token("aUSDC", 6, 32_012_345_678)


def test_final_balances_logged_with_decimals(aweth, ausdc, caplog):
    """Logged balances are balanceOf() converted with the token decimals."""
    balances = fetch_position_balances(aweth, ausdc, "0x1234567890123456789012345678901234567890")
    assert balances == PositionBalances(from_a_token=1_234_567_890_000_000_000, to_a_token=32_012_345_678)

    with caplog.at_level(logging.INFO):
        from_amount, to_amount = report_final_balances(aweth, ausdc, balances)

    assert from_amount == Decimal("1.23456789")
    assert to_amount == Decimal("32012.345678")
    assert "Final balances 1.23456789 aWETH, 32012.345678 aUSDC" in caplog.text


def test_deposited_logged(caplog):
    aweth = _mock_a_token("aWETH", 18, 0)
    with caplog.at_level(logging.INFO):
        amount = report_deposited(aweth, 10 * 10**18)
    assert amount == Decimal(10)
    assert "Successfully deposited 10 in aWETH" in caplog.text

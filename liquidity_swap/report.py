"""Human readable progress output of a collateral swap run.

Everything is written to the logger, converted to decimals using
the token's own ``decimals``.
"""

import logging
from decimal import Decimal
from typing import NamedTuple

from eth_typing import HexAddress
from web3 import Web3

from liquidity_swap.token import TokenDetails

logger = logging.getLogger(__name__)


class PositionBalances(NamedTuple):
    """aToken balances of the wallet at one point of time, raw units."""

    #: Collateral we swap from, e.g. aWETH
    from_a_token: int

    #: Collateral we swap to, e.g. aDAI
    to_a_token: int


def fetch_position_balances(
    from_a_token: TokenDetails,
    to_a_token: TokenDetails,
    address: HexAddress | str,
) -> PositionBalances:
    """Read both aToken balances of the address."""
    return PositionBalances(
        from_a_token=from_a_token.fetch_raw_balance_of(address),
        to_a_token=to_a_token.fetch_raw_balance_of(address),
    )


def report_native_balance(web3: Web3, address: HexAddress | str) -> Decimal:
    balance = web3.from_wei(web3.eth.get_balance(address), "ether")
    logger.info("Balance was set to %s ETH", balance)
    return balance


def report_wrapped(amount: Decimal, weth_symbol: str = "WETH"):
    logger.info("Deposited %s ETH as %s", amount, weth_symbol)


def report_deposited(a_token: TokenDetails, raw_balance: int) -> Decimal:
    """Log the aToken balance after the deposit."""
    amount = a_token.convert_to_decimals(raw_balance)
    logger.info("Successfully deposited %s in %s", amount, a_token.symbol)
    return amount


def report_final_balances(
    from_a_token: TokenDetails,
    to_a_token: TokenDetails,
    balances: PositionBalances,
) -> tuple[Decimal, Decimal]:
    """Log the collateral balances after the swap.

    :return:
        The logged amounts as (from aToken, to aToken)
    """
    from_amount = from_a_token.convert_to_decimals(balances.from_a_token)
    to_amount = to_a_token.convert_to_decimals(balances.to_a_token)
    logger.info(
        "Final balances %s %s, %s %s",
        from_amount,
        from_a_token.symbol,
        to_amount,
        to_a_token.symbol,
    )
    return from_amount, to_amount

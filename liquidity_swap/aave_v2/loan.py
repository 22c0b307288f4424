"""Aave v2 deposits."""

from eth_typing import HexAddress
from web3.contract.contract import Contract, ContractFunction

from liquidity_swap.aave_v2.constants import AAVE_V2_REFERRAL_CODE
from liquidity_swap.aave_v2.deployment import AaveV2Deployment


def deposit(
    aave_v2_deployment: AaveV2Deployment,
    *,
    token: Contract,
    amount: int,
    wallet_address: HexAddress,
) -> tuple[ContractFunction, ContractFunction]:
    """
    Deposits an Aave v2 reserve token as collateral and receive aToken back.

    Example:

    .. code-block:: python

        approve_fn, deposit_fn = deposit(
            aave_v2_deployment=deployment,
            token=weth,
            amount=10 * 10**18,
            wallet_address=hot_wallet.address,
        )

        execute_pending_transactions(
            web3,
            hot_wallet,
            [
                PendingTransaction(approve_fn, "Set allowance for LendingPool"),
                PendingTransaction(deposit_fn, "Deposit to AToken"),
            ],
        )

    :param aave_v2_deployment:
        Resolved lending pool, see :py:func:`liquidity_swap.aave_v2.deployment.fetch_deployment`
    :param token:
        Aave v2 reserve token you want to deposit.
    :param amount:
        The raw amount of token to deposit.
    :param wallet_address:
        Your wallet address. aTokens are minted to this address.
    :return:
        A tuple of 2 contract functions for approve and deposit transaction.
    """
    lending_pool = aave_v2_deployment.lending_pool

    approve_function = token.functions.approve(lending_pool.address, amount)

    # https://github.com/aave/protocol-v2/blob/master/contracts/protocol/lendingpool/LendingPool.sol#L104
    # address asset
    # uint256 amount
    # address onBehalfOf
    # uint16 referralCode
    deposit_function = lending_pool.functions.deposit(token.address, amount, wallet_address, AAVE_V2_REFERRAL_CODE)

    return approve_function, deposit_function

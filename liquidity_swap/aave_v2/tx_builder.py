"""Transaction plans for Aave v2 lending pool operations.

Each operation returns an ordered ``list[PendingTransaction]``.
Allowance transactions are only included when the current allowance
is not enough, so the length of the list depends on the chain state.

Example:

.. code-block:: python

    builder = LendingPoolTxBuilder(deployment, swap_adapter=adapter)

    txs = builder.deposit(reserve=weth, amount=Decimal(10), user=hot_wallet.address)
    execute_pending_transactions(web3, hot_wallet, txs)

    txs = builder.swap_collateral(
        from_asset=weth,
        to_asset=dai,
        from_a_token=aweth,
        from_amount=swap_tx.amount_in,
        min_to_amount=min_to_amount,
        swap_all=True,
        augustus=swap_tx.to,
        swap_calldata=swap_tx.calldata,
        user=hot_wallet.address,
    )
    execute_pending_transactions(web3, hot_wallet, txs)
"""

import logging
from decimal import Decimal

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

from liquidity_swap.aave_v2.adapter import swap_and_deposit
from liquidity_swap.aave_v2.constants import AAVE_V2_REFERRAL_CODE, MAX_AMOUNT, SWAP_ALL_SURPLUS_BPS, SWAP_AND_DEPOSIT_GAS_LIMIT
from liquidity_swap.aave_v2.deployment import AaveV2Deployment
from liquidity_swap.paraswap.augustus import get_augustus_from_amount_offset
from liquidity_swap.token import TokenDetails
from liquidity_swap.tx import PendingTransaction

logger = logging.getLogger(__name__)


class LendingPoolTxBuilder:
    """Build deposit and collateral swap transaction plans."""

    def __init__(self, deployment: AaveV2Deployment, swap_adapter: Contract):
        """
        :param deployment:
            Resolved lending pool

        :param swap_adapter:
            ParaSwapLiquiditySwapAdapter used by :py:meth:`swap_collateral`
        """
        self.deployment = deployment
        self.swap_adapter = swap_adapter

    def _fetch_allowance(self, token: TokenDetails, owner: HexAddress | str, spender: HexAddress | str) -> int:
        return token.fetch_raw_allowance(owner, spender)

    def _approve_if_needed(
        self,
        token: TokenDetails,
        owner: HexAddress | str,
        spender: HexAddress | str,
        raw_amount: int,
        approve_amount: int,
        description: str,
    ) -> list[PendingTransaction]:
        allowance = self._fetch_allowance(token, owner, spender)
        if allowance >= raw_amount:
            logger.info("%s allowance %d for %s is enough", token.symbol, allowance, spender)
            return []
        func = token.contract.functions.approve(Web3.to_checksum_address(spender), approve_amount)
        return [PendingTransaction(func, description)]

    def deposit(
        self,
        reserve: TokenDetails,
        amount: Decimal,
        user: HexAddress | str,
        on_behalf_of: HexAddress | str | None = None,
        referral_code: int = AAVE_V2_REFERRAL_CODE,
    ) -> list[PendingTransaction]:
        """Deposit a reserve token to the lending pool.

        The lending pool is approved for the maximum amount if the current allowance is short.

        :param reserve:
            Underlying ERC-20, e.g. WETH

        :param amount:
            Amount in human-readable decimals

        :param user:
            Wallet sending the transactions

        :param on_behalf_of:
            Who receives the aTokens, default to ``user``
        """
        assert isinstance(amount, Decimal), f"Give amounts in decimal, got {type(amount)}"
        raw_amount = reserve.convert_to_raw(amount)
        lending_pool = self.deployment.lending_pool

        txs = self._approve_if_needed(
            reserve,
            user,
            lending_pool.address,
            raw_amount,
            MAX_AMOUNT,
            f"Set allowance for LendingPool on {reserve.symbol}",
        )

        func = lending_pool.functions.deposit(
            reserve.address,
            raw_amount,
            Web3.to_checksum_address(on_behalf_of or user),
            referral_code,
        )
        txs.append(PendingTransaction(func, f"Deposit {amount} {reserve.symbol} to AToken"))
        return txs

    def swap_collateral(
        self,
        from_asset: TokenDetails,
        to_asset: TokenDetails,
        from_a_token: TokenDetails,
        from_amount: Decimal,
        min_to_amount: Decimal,
        swap_all: bool,
        augustus: HexAddress | str,
        swap_calldata: bytes,
        user: HexAddress | str,
    ) -> list[PendingTransaction]:
        """Swap aToken collateral to another reserve using the liquidity swap adapter.

        With ``swap_all`` the adapter overwrites ``fromAmount`` in the Augustus calldata
        with the aToken balance at the execution time, so interest accrued
        after the quote is swapped too. The approved amount gets a small surplus for it.

        :param from_asset:
            Underlying reserve we swap from

        :param to_asset:
            Underlying reserve we swap to

        :param from_a_token:
            aToken of ``from_asset`` that is pulled from ``user``

        :param from_amount:
            Quoted sell amount in human-readable decimals

        :param min_to_amount:
            Minimum amount to receive in human-readable decimals

        :param swap_all:
            Swap the whole aToken balance

        :param augustus:
            Augustus Swapper address

        :param swap_calldata:
            Augustus calldata from ParaSwap

        :raise UnknownAugustusFunction:
            If ``swap_all`` is set and the calldata is not a known Augustus function
        """
        assert isinstance(from_amount, Decimal), f"Give amounts in decimal, got {type(from_amount)}"
        assert isinstance(min_to_amount, Decimal), f"Give amounts in decimal, got {type(min_to_amount)}"

        raw_from_amount = from_asset.convert_to_raw(from_amount)
        if swap_all:
            raw_from_amount = raw_from_amount * (10_000 + SWAP_ALL_SURPLUS_BPS) // 10_000
            offset = get_augustus_from_amount_offset(swap_calldata)
        else:
            offset = 0

        raw_min_to_amount = to_asset.convert_to_raw(min_to_amount)

        txs = self._approve_if_needed(
            from_a_token,
            user,
            self.swap_adapter.address,
            raw_from_amount,
            raw_from_amount,
            f"Set allowance for adapter on {from_a_token.symbol}",
        )

        func = swap_and_deposit(
            self.swap_adapter,
            from_asset=from_asset.address,
            to_asset=to_asset.address,
            amount_to_swap=raw_from_amount,
            min_amount_to_receive=raw_min_to_amount,
            swap_all_balance_offset=offset,
            swap_calldata=swap_calldata,
            augustus=augustus,
        )
        txs.append(
            PendingTransaction(
                func,
                f"Swap {from_asset.symbol} collateral to {to_asset.symbol} using swapAndDeposit",
                gas_limit=SWAP_AND_DEPOSIT_GAS_LIMIT,
            )
        )

        logger.info(
            "Collateral swap plan %s -> %s, amount %d, min out %d, offset %d, %d transactions",
            from_asset.symbol,
            to_asset.symbol,
            raw_from_amount,
            raw_min_to_amount,
            offset,
            len(txs),
        )
        return txs

"""Collateral swap run on a forked chain.

One run goes through the stages in :py:class:`RunStage` strictly in order:

- create a throwaway wallet
- ask ParaSwap for a WETH -> reserve price route and build the Augustus calldata
- create a fork and fund the wallet
- wrap ETH, deposit WETH to Aave v2 and swap the aWETH collateral with
  ``ParaSwapLiquiditySwapAdapter.swapAndDeposit()``
- read the final aToken balances

Every transaction is confirmed before the next one is sent.
The first failure aborts the run and is returned in :py:class:`CollateralSwapResult`.

Example:

.. code-block:: python

    config = SwapRunConfig.from_env()
    result = run_collateral_swap(config, variant=SwapVariant.tx_builder)
    result.raise_for_error()
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable

import requests
from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ContractLogicError, TimeExhausted

from liquidity_swap.aave_v2 import loan
from liquidity_swap.aave_v2.adapter import AdapterDeploymentFailed, deploy_adapter, get_deployed_adapter, swap_and_deposit
from liquidity_swap.aave_v2.constants import SWAP_AND_DEPOSIT_GAS_LIMIT
from liquidity_swap.aave_v2.deployment import AaveV2Deployment, fetch_deployment
from liquidity_swap.aave_v2.reserves import fetch_aave_reserve_list, find_reserve_by_symbol
from liquidity_swap.aave_v2.tx_builder import LendingPoolTxBuilder
from liquidity_swap.addresses import DEFAULT_NETWORK_ADDRESSES, NetworkAddresses, UnknownReserve, UnsupportedNetwork, get_network_addresses
from liquidity_swap.config import ConfigurationError, SwapRunConfig
from liquidity_swap.confirmation import ChainTransactionFailed, execute_pending_transactions
from liquidity_swap.hotwallet import HotWallet
from liquidity_swap.paraswap.api import ParaSwapAPIError
from liquidity_swap.paraswap.augustus import UnknownAugustusFunction
from liquidity_swap.paraswap.quote import ParaSwapQuote, fetch_paraswap_quote
from liquidity_swap.paraswap.swap import ParaSwapSwapTransaction, fetch_paraswap_swap_transaction
from liquidity_swap.provider.anvil import AnvilFork
from liquidity_swap.provider.fork import ForkError, ForkSession
from liquidity_swap.provider.tenderly import TenderlyFork
from liquidity_swap.report import (
    PositionBalances,
    fetch_position_balances,
    report_deposited,
    report_final_balances,
    report_native_balance,
    report_wrapped,
)
from liquidity_swap.token import TokenDetailError, TokenDetails, TokenReference, fetch_erc20_details, fetch_weth_details
from liquidity_swap.tx import PendingTransaction

logger = logging.getLogger(__name__)


#: Failures that abort a run and are reported in :py:attr:`CollateralSwapResult.error`.
#:
#: Anything else is a programming error and propagates.
RUN_ABORTING_EXCEPTIONS = (
    ConfigurationError,
    UnsupportedNetwork,
    UnknownReserve,
    ParaSwapAPIError,
    UnknownAugustusFunction,
    ForkError,
    AdapterDeploymentFailed,
    ChainTransactionFailed,
    ContractLogicError,
    TimeExhausted,
    TokenDetailError,
    requests.RequestException,
)


class SwapVariant(enum.Enum):
    """How the deposit and the collateral swap transactions are put together."""

    #: Call the lending pool and the adapter directly
    adapter = "adapter"

    #: Use :py:class:`liquidity_swap.aave_v2.tx_builder.LendingPoolTxBuilder` transaction plans
    tx_builder = "tx_builder"


class RunStage(enum.Enum):
    """Stages of a run, in the execution order."""

    network = "network"
    wallet = "wallet"
    quote = "quote"
    build = "build"
    fork = "fork"
    fund = "fund"
    adapter = "adapter"
    wrap = "wrap"
    deposit = "deposit"
    swap = "swap"
    report = "report"
    done = "done"


@dataclass
class CollateralSwapResult:
    """What happened during a run.

    Fields are filled as the run progresses, so a failed run
    tells how far it got.
    """

    variant: SwapVariant

    #: The stage being executed, or :py:attr:`RunStage.done`
    stage: RunStage = RunStage.network

    #: Throwaway wallet of this run
    wallet_address: HexAddress | None = None

    #: Fork of this run
    fork_id: str | None = None

    quote: ParaSwapQuote | None = None

    swap_tx: ParaSwapSwapTransaction | None = None

    #: aToken balances after the deposit
    balances_before: PositionBalances | None = None

    #: aToken balances after the swap
    balances_after: PositionBalances | None = None

    #: The failure that aborted the run
    error: Exception | None = None

    def is_success(self) -> bool:
        return self.error is None and self.stage == RunStage.done

    def raise_for_error(self):
        """Re-raise the failure, if any."""
        if self.error is not None:
            raise self.error


#: Creates an uninitialised fork session for a run
ForkFactory = Callable[[SwapRunConfig], ForkSession]


def create_fork_session(config: SwapRunConfig) -> ForkSession:
    """Create a Tenderly or Anvil fork session based on ``FORK_PROVIDER``.

    :raise ConfigurationError:
        If the provider credentials are missing
    """
    config.validate_fork_credentials()
    if config.fork_provider == "anvil":
        return AnvilFork(config.json_rpc_url)
    return TenderlyFork(
        account=config.tenderly_account,
        project=config.tenderly_project,
        access_key=config.tenderly_key,
        network_id=config.network_id,
    )


def resolve_destination_reserve(network: NetworkAddresses, symbol: str) -> TokenReference:
    """Find the reserve we swap to.

    Look up our address table first, then the reserve list published by Aave.

    :raise UnknownReserve:
        If neither knows the symbol
    """
    try:
        return network.get_reserve(symbol)
    except UnknownReserve:
        logger.info("Reserve %s not in the address table of %s, checking Aave reserve list", symbol, network.name)
        reserves = fetch_aave_reserve_list()
        return find_reserve_by_symbol(reserves, symbol, network.chain_id)


def _get_adapter(
    web3: Web3,
    hot_wallet: HotWallet,
    config: SwapRunConfig,
    network: NetworkAddresses,
) -> Contract:
    if config.adapter_artifact:
        logger.info("Deploying adapter from %s", config.adapter_artifact)
        return deploy_adapter(web3, hot_wallet, config.adapter_artifact, network.lending_pool_addresses_provider)

    if not network.swap_adapter:
        raise AdapterDeploymentFailed(f"No deployed adapter on {network.name}, set SWAP_ADAPTER_ARTIFACT")

    logger.info("Using the deployed adapter at %s", network.swap_adapter)
    return get_deployed_adapter(web3, network.swap_adapter)


def _deposit_and_swap_with_adapter(
    web3: Web3,
    hot_wallet: HotWallet,
    result: CollateralSwapResult,
    deployment: AaveV2Deployment,
    adapter: Contract,
    weth: TokenDetails,
    to_token: TokenDetails,
    raw_deposit_amount: int,
) -> TokenDetails:
    swap_tx = result.swap_tx

    result.stage = RunStage.deposit
    approve_fn, deposit_fn = loan.deposit(
        deployment,
        token=weth.contract,
        amount=raw_deposit_amount,
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

    a_from = deployment.fetch_a_token(weth.address)
    a_to = deployment.fetch_a_token(to_token.address)
    result.balances_before = fetch_position_balances(a_from, a_to, hot_wallet.address)
    report_deposited(a_from, result.balances_before.from_a_token)

    result.stage = RunStage.swap
    approve_adapter_fn = a_from.contract.functions.approve(adapter.address, swap_tx.raw_amount_in)
    swap_fn = swap_and_deposit(
        adapter,
        from_asset=weth.address,
        to_asset=to_token.address,
        amount_to_swap=swap_tx.raw_amount_in,
        min_amount_to_receive=swap_tx.raw_min_amount_out,
        swap_all_balance_offset=swap_tx.get_from_amount_offset(),
        swap_calldata=swap_tx.calldata,
        augustus=swap_tx.to,
    )
    execute_pending_transactions(
        web3,
        hot_wallet,
        [
            PendingTransaction(approve_adapter_fn, "Set allowance for adapter"),
            PendingTransaction(swap_fn, "Perform swap using swapAndDeposit", gas_limit=SWAP_AND_DEPOSIT_GAS_LIMIT),
        ],
    )
    return a_from


def _deposit_and_swap_with_tx_builder(
    web3: Web3,
    hot_wallet: HotWallet,
    result: CollateralSwapResult,
    config: SwapRunConfig,
    deployment: AaveV2Deployment,
    adapter: Contract,
    weth: TokenDetails,
    to_token: TokenDetails,
) -> TokenDetails:
    swap_tx = result.swap_tx
    builder = LendingPoolTxBuilder(deployment, swap_adapter=adapter)

    result.stage = RunStage.deposit
    execute_pending_transactions(
        web3,
        hot_wallet,
        builder.deposit(reserve=weth, amount=config.deposit_amount, user=hot_wallet.address),
    )

    a_from = deployment.fetch_a_token(weth.address)
    a_to = deployment.fetch_a_token(to_token.address)
    result.balances_before = fetch_position_balances(a_from, a_to, hot_wallet.address)
    report_deposited(a_from, result.balances_before.from_a_token)

    result.stage = RunStage.swap
    raw_min_to_amount = swap_tx.raw_min_amount_out * (100 - config.max_slippage) // 100
    txs = builder.swap_collateral(
        from_asset=weth,
        to_asset=to_token,
        from_a_token=a_from,
        from_amount=swap_tx.amount_in,
        min_to_amount=to_token.convert_to_decimals(raw_min_to_amount),
        swap_all=True,
        augustus=swap_tx.to,
        swap_calldata=swap_tx.calldata,
        user=hot_wallet.address,
    )
    execute_pending_transactions(web3, hot_wallet, txs)
    return a_from


def run_collateral_swap(
    config: SwapRunConfig,
    address_tables: dict[int, NetworkAddresses] = DEFAULT_NETWORK_ADDRESSES,
    fork_factory: ForkFactory = create_fork_session,
    variant: SwapVariant = SwapVariant.adapter,
    close_fork: bool = True,
) -> CollateralSwapResult:
    """Swap freshly deposited WETH collateral to another Aave v2 reserve on a fork.

    No ParaSwap call is retried and no transaction is compensated:
    the first failure ends the run.

    :param config:
        Amounts, endpoints and fork credentials

    :param address_tables:
        Contract addresses per chain id

    :param fork_factory:
        Creates the fork session for this run.
        Called only after the swap transaction has been built.

    :param variant:
        Call the contracts directly or use the transaction builder

    :param close_fork:
        Tear down the fork after the run.
        Set ``False`` to inspect the fork afterwards.

    :return:
        Outcome of the run with the error set on failure
    """
    result = CollateralSwapResult(variant=variant)
    fork = None

    try:
        network = get_network_addresses(config.network_id, address_tables)

        result.stage = RunStage.wallet
        hot_wallet = HotWallet.create_random()
        result.wallet_address = hot_wallet.address

        result.stage = RunStage.quote
        to_reserve = resolve_destination_reserve(network, config.to_symbol)
        result.quote = fetch_paraswap_quote(
            buy_token=to_reserve,
            sell_token=network.weth,
            amount_in=config.swap_amount,
            user_address=hot_wallet.address,
            api_url=config.paraswap_api,
        )

        result.stage = RunStage.build
        result.swap_tx = fetch_paraswap_swap_transaction(
            result.quote,
            user_address=hot_wallet.address,
            slippage_bps=config.slippage_bps,
            api_url=config.paraswap_api,
        )
        offset = result.swap_tx.get_from_amount_offset()
        logger.info("fromAmountOffset: %d", offset)

        result.stage = RunStage.fork
        fork = fork_factory(config)
        fork.init()
        result.fork_id = fork.fork_id
        web3 = fork.create_web3()

        result.stage = RunStage.fund
        fork.fund_account(hot_wallet.address)
        report_native_balance(web3, hot_wallet.address)
        hot_wallet.sync_nonce(web3)

        result.stage = RunStage.adapter
        deployment = fetch_deployment(web3, network.lending_pool_addresses_provider)
        adapter = _get_adapter(web3, hot_wallet, config, network)

        result.stage = RunStage.wrap
        weth = fetch_weth_details(web3, network.weth.address)
        to_token = fetch_erc20_details(web3, to_reserve.address)
        raw_deposit_amount = weth.convert_to_raw(config.deposit_amount)
        execute_pending_transactions(
            web3,
            hot_wallet,
            [PendingTransaction(weth.contract.functions.deposit(), "Deposit to WETH", value=raw_deposit_amount)],
        )
        report_wrapped(config.deposit_amount, weth.symbol)

        if variant == SwapVariant.adapter:
            a_from = _deposit_and_swap_with_adapter(web3, hot_wallet, result, deployment, adapter, weth, to_token, raw_deposit_amount)
        else:
            a_from = _deposit_and_swap_with_tx_builder(web3, hot_wallet, result, config, deployment, adapter, weth, to_token)

        logger.info("Swap performed successfully!")

        result.stage = RunStage.report
        a_to = deployment.fetch_a_token(to_token.address)
        result.balances_after = fetch_position_balances(a_from, a_to, hot_wallet.address)
        report_final_balances(a_from, a_to, result.balances_after)

        result.stage = RunStage.done
    except RUN_ABORTING_EXCEPTIONS as e:
        logger.exception("Collateral swap failed at stage %s", result.stage.value)
        result.error = e
    finally:
        if fork is not None and close_fork and fork.is_initialised():
            try:
                fork.close()
            except ForkError as e:
                logger.warning("Could not tear down fork %s: %s", fork.fork_id, e)

    return result

"""Collateral swap runs with mocked ParaSwap, fork and chain."""

import logging
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest
import requests
from hexbytes import HexBytes
from web3 import Web3

from liquidity_swap.aave_v2.adapter import ZERO_PERMIT
from liquidity_swap.aave_v2.constants import LENDING_POOL_ABI, MAX_AMOUNT, SWAP_AND_DEPOSIT_GAS_LIMIT
from liquidity_swap.aave_v2.tx_builder import LendingPoolTxBuilder
from liquidity_swap.abi import get_deployed_contract
from liquidity_swap.addresses import DEFAULT_NETWORK_ADDRESSES, MAINNET_DAI, MAINNET_WETH, UnknownReserve
from liquidity_swap.config import SwapRunConfig
from liquidity_swap.flow import RunStage, SwapVariant, create_fork_session, run_collateral_swap
from liquidity_swap.hotwallet import HotWallet
from liquidity_swap.paraswap.api import ParaSwapQuoteError, ParaSwapTransactionBuildError
from liquidity_swap.paraswap.augustus import UnknownAugustusFunction
from liquidity_swap.provider.anvil import AnvilFork
from liquidity_swap.provider.fork import ForkError
from liquidity_swap.provider.tenderly import TenderlyFork
from liquidity_swap.token import TokenDetails

WETH = Web3.to_checksum_address(MAINNET_WETH.address)
DAI = Web3.to_checksum_address(MAINNET_DAI.address)
AWETH = Web3.to_checksum_address("0x030bA81f1c18d280636F32af80b9AAd02Cf0854e")
ADAI = Web3.to_checksum_address("0x028171bCA77440897B824Ca71D1c56caC55b68A3")
LENDING_POOL = Web3.to_checksum_address("0x7d2768dE32b0b80b7a3454c06BdAc94A69DDc7A9")
ADAPTER = Web3.to_checksum_address(DEFAULT_NETWORK_ADDRESSES[1].swap_adapter)
AUGUSTUS = Web3.to_checksum_address("0xDEF171Fe48CF0115B1d80b88dc8eAB59176FEe57")


@pytest.fixture
def config() -> SwapRunConfig:
    return SwapRunConfig(swap_amount=Decimal("10.01"), deposit_amount=Decimal(10))


@pytest.fixture
def price_route() -> dict:
    return {
        "srcToken": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        "srcDecimals": 18,
        "srcAmount": "10010000000000000000",
        "destToken": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
        "destDecimals": 18,
        "destAmount": "32032000000000000000000",
        "priceWithSlippage": "31711680000000000000000",
        "others": [],
    }


@pytest.fixture
def swap_response() -> dict:
    return {
        "to": "0xDEF171Fe48CF0115B1d80b88dc8eAB59176FEe57",
        # Augustus V5 megaSwap
        "data": "0x46c67b6d" + "00" * 64 + (10_010_000_000_000_000_000).to_bytes(32, "big").hex(),
        "value": "0",
    }


def _json_response(data: dict) -> Mock:
    mock_response = Mock()
    mock_response.json.return_value = data
    mock_response.raise_for_status = Mock()
    return mock_response


def _failing_fork(fork_id: str) -> Mock:
    """Fork that can be created but not funded."""
    fork = Mock()
    fork.fork_id = None

    def _init():
        fork.fork_id = fork_id

    fork.init.side_effect = _init
    fork.fund_account.side_effect = ForkError(f"Could not fund on {fork_id}")
    return fork


@patch("liquidity_swap.paraswap.swap.requests.post")
@patch("liquidity_swap.paraswap.quote.requests.get")
def test_quote_error_stops_before_fork(mock_get, mock_post, config):
    """A message in the price route fails the run before any fork exists."""
    mock_get.return_value = _json_response({"message": "Token not found"})
    fork_factory = Mock()

    result = run_collateral_swap(config, fork_factory=fork_factory)

    assert not result.is_success()
    assert result.stage == RunStage.quote
    assert isinstance(result.error, ParaSwapQuoteError)
    assert result.wallet_address is not None
    assert result.quote is None
    assert result.fork_id is None
    fork_factory.assert_not_called()
    mock_post.assert_not_called()

    with pytest.raises(ParaSwapQuoteError):
        result.raise_for_error()


@patch("liquidity_swap.paraswap.swap.requests.post")
@patch("liquidity_swap.paraswap.quote.requests.get")
def test_build_error_stops_before_fork(mock_get, mock_post, config, price_route):
    """A message in the transaction build response fails the run after the quote."""
    mock_get.return_value = _json_response({"priceRoute": price_route})
    mock_post.return_value = _json_response({"message": "Unable to build transaction"})
    fork_factory = Mock()

    result = run_collateral_swap(config, fork_factory=fork_factory, variant=SwapVariant.tx_builder)

    assert result.stage == RunStage.build
    assert isinstance(result.error, ParaSwapTransactionBuildError)
    assert result.quote is not None
    assert result.quote.get_sell_amount() == Decimal("10.01")
    assert result.swap_tx is None
    fork_factory.assert_not_called()


@patch("liquidity_swap.paraswap.swap.requests.post")
@patch("liquidity_swap.paraswap.quote.requests.get")
def test_unknown_augustus_function_stops_before_fork(mock_get, mock_post, config, price_route):
    mock_get.return_value = _json_response({"priceRoute": price_route})
    mock_post.return_value = _json_response({"to": "0xDEF171Fe48CF0115B1d80b88dc8eAB59176FEe57", "data": "0xdeadbeef"})
    fork_factory = Mock()

    result = run_collateral_swap(config, fork_factory=fork_factory)

    assert result.stage == RunStage.build
    assert isinstance(result.error, UnknownAugustusFunction)
    fork_factory.assert_not_called()


@patch("liquidity_swap.paraswap.swap.requests.post")
@patch("liquidity_swap.paraswap.quote.requests.get")
def test_two_runs_are_independent(mock_get, mock_post, config, price_route, swap_response):
    """Every run gets its own wallet and fork."""
    mock_get.return_value = _json_response({"priceRoute": price_route})
    mock_post.return_value = _json_response(swap_response)
    forks = [_failing_fork("fork-1"), _failing_fork("fork-2")]
    fork_factory = Mock(side_effect=forks)

    first = run_collateral_swap(config, fork_factory=fork_factory)
    second = run_collateral_swap(config, fork_factory=fork_factory)

    assert fork_factory.call_count == 2
    assert first.wallet_address != second.wallet_address
    assert (first.fork_id, second.fork_id) == ("fork-1", "fork-2")

    for result, fork in zip((first, second), forks):
        assert result.stage == RunStage.fund
        assert isinstance(result.error, ForkError)
        fork.init.assert_called_once_with()
        fork.fund_account.assert_called_once_with(result.wallet_address)
        # Torn down even on failure
        fork.close.assert_called_once_with()


@patch("liquidity_swap.paraswap.swap.requests.post")
@patch("liquidity_swap.paraswap.quote.requests.get")
def test_keep_fork_open(mock_get, mock_post, config, price_route, swap_response):
    mock_get.return_value = _json_response({"priceRoute": price_route})
    mock_post.return_value = _json_response(swap_response)
    fork = _failing_fork("fork-1")

    run_collateral_swap(config, fork_factory=lambda c: fork, close_fork=False)

    fork.close.assert_not_called()


def test_unsupported_network():
    """Chains without an address table fail immediately."""
    config = SwapRunConfig(network_id=5)
    result = run_collateral_swap(config, fork_factory=Mock())
    assert result.stage == RunStage.network
    assert isinstance(result.error, KeyError)
    assert result.wallet_address is None


@patch("liquidity_swap.flow.fetch_aave_reserve_list")
def test_unknown_reserve(mock_fetch_reserve_list):
    """Reserve list is consulted when the symbol is not in our table, then the run fails."""
    mock_fetch_reserve_list.return_value = []
    config = SwapRunConfig(to_symbol="NOPE")
    result = run_collateral_swap(config, fork_factory=Mock())
    assert result.stage == RunStage.quote
    assert isinstance(result.error, UnknownReserve)
    mock_fetch_reserve_list.assert_called_once()


def test_injected_address_tables(config):
    """Address tables are taken from the argument."""
    result = run_collateral_swap(config, address_tables={}, fork_factory=Mock())
    assert result.stage == RunStage.network
    assert 1 in DEFAULT_NETWORK_ADDRESSES


def test_create_fork_session():
    tenderly = create_fork_session(SwapRunConfig(tenderly_account="a", tenderly_project="p", tenderly_key="k"))
    assert isinstance(tenderly, TenderlyFork)
    assert tenderly.network_id == 1

    anvil = create_fork_session(SwapRunConfig(fork_provider="anvil", json_rpc_url="https://mainnet.example.com"))
    assert isinstance(anvil, AnvilFork)
    assert not anvil.is_initialised()


@patch("liquidity_swap.paraswap.swap.requests.post")
@patch("liquidity_swap.paraswap.quote.requests.get")
def test_missing_fork_credentials(mock_get, mock_post, config, price_route, swap_response):
    """Missing Tenderly credentials fail the run at the fork stage."""
    mock_get.return_value = _json_response({"priceRoute": price_route})
    mock_post.return_value = _json_response(swap_response)

    result = run_collateral_swap(config)

    assert result.stage == RunStage.fork
    assert "TENDERLY_KEY" in str(result.error)


@patch("liquidity_swap.provider.tenderly.requests.request")
@patch("liquidity_swap.paraswap.swap.requests.post")
@patch("liquidity_swap.paraswap.quote.requests.get")
def test_fork_teardown_network_error(mock_get, mock_post, mock_request, price_route, swap_response, caplog):
    """Unreachable Tenderly on teardown is logged and the funding error is still reported."""
    mock_get.return_value = _json_response({"priceRoute": price_route})
    mock_post.return_value = _json_response(swap_response)

    funding_failed = _json_response({"error": {"message": "Internal server error"}})
    funding_failed.status_code = 500
    funding_failed.text = "Internal server error"
    funding_failed.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
    mock_request.side_effect = [
        _json_response({"simulation_fork": {"id": "fork-1"}}),
        funding_failed,
        requests.ConnectionError("tenderly unreachable"),
    ]
    config = SwapRunConfig(tenderly_account="aave", tenderly_project="swaps", tenderly_key="secret")

    result = run_collateral_swap(config)

    assert result.stage == RunStage.fund
    assert result.fork_id == "fork-1"
    assert isinstance(result.error, ForkError)
    assert "500" in str(result.error)
    assert [c.args[0] for c in mock_request.call_args_list] == ["POST", "POST", "DELETE"]
    assert "Could not tear down fork fork-1" in caplog.text


class _FakeChain:
    """Records executed transaction plans and serves aToken balances."""

    def __init__(self, web3: Web3):
        self.plans = []
        self.balances = {AWETH: 10 * 10**18, ADAI: 0}
        self.fork = Mock()
        self.fork.fork_id = None
        self.fork.init.side_effect = self._init
        self.fork.create_web3.return_value = web3

    def _init(self):
        self.fork.fork_id = "fork-1"

    def execute(self, web3, hot_wallet, txs):
        txs = list(txs)
        self.plans.append(txs)
        if any(tx.get_function_name() == "swapAndDeposit" for tx in txs):
            # Dust of interest left, rest swapped to 32012.345678 DAI
            self.balances = {AWETH: 5 * 10**15, ADAI: 32_012_345_678 * 10**12}
        return []

    def balance_of(self, token, address, block_identifier="latest"):
        return self.balances[token.address]

    def get_executed(self) -> list:
        return [tx for plan in self.plans for tx in plan]


def _token(web3: Web3, abi_file: str, address: str, symbol: str) -> TokenDetails:
    return TokenDetails(get_deployed_contract(web3, abi_file, address), symbol, symbol, 0, 18)


@pytest.fixture
def fake_chain() -> _FakeChain:
    """Mainnet contracts on an unconnected Web3, with transaction execution and balance reads faked."""
    web3 = Web3()
    chain = _FakeChain(web3)

    weth = _token(web3, "IWETH.json", WETH, "WETH")
    dai = _token(web3, "IERC20.json", DAI, "DAI")
    a_tokens = {
        WETH: _token(web3, "IERC20.json", AWETH, "aWETH"),
        DAI: _token(web3, "IERC20.json", ADAI, "aDAI"),
    }

    deployment = Mock()
    deployment.lending_pool = get_deployed_contract(web3, LENDING_POOL_ABI, LENDING_POOL)
    deployment.fetch_a_token.side_effect = lambda address: a_tokens[address]

    with (
        patch("liquidity_swap.flow.fetch_deployment", return_value=deployment),
        patch("liquidity_swap.flow.fetch_weth_details", return_value=weth),
        patch("liquidity_swap.flow.fetch_erc20_details", return_value=dai),
        patch("liquidity_swap.flow.execute_pending_transactions", side_effect=chain.execute),
        patch("liquidity_swap.flow.report_native_balance"),
        patch.object(HotWallet, "sync_nonce"),
        patch.object(TokenDetails, "fetch_raw_balance_of", autospec=True, side_effect=chain.balance_of),
        patch.object(LendingPoolTxBuilder, "_fetch_allowance", return_value=0),
    ):
        yield chain


def _assert_balances_reported(result, caplog):
    assert result.balances_before.from_a_token == 10 * 10**18
    assert result.balances_before.to_a_token == 0
    assert result.balances_after.from_a_token == 5 * 10**15
    assert result.balances_after.to_a_token == 32_012_345_678 * 10**12
    assert "Successfully deposited 10 in aWETH" in caplog.text
    assert "Final balances 0.005 aWETH, 32012.345678 aDAI" in caplog.text


@patch("liquidity_swap.paraswap.swap.requests.post")
@patch("liquidity_swap.paraswap.quote.requests.get")
def test_swap_and_deposit_with_adapter(mock_get, mock_post, config, price_route, swap_response, fake_chain, caplog):
    """Wrap, deposit and swap the collateral calling the contracts directly."""
    mock_get.return_value = _json_response({"priceRoute": price_route})
    mock_post.return_value = _json_response(swap_response)
    caplog.set_level(logging.INFO)

    result = run_collateral_swap(config, fork_factory=lambda c: fake_chain.fork, variant=SwapVariant.adapter)

    assert result.error is None
    assert result.is_success()
    assert result.stage == RunStage.done
    wallet = result.wallet_address

    # One plan per step, executed in this order
    assert [[tx.get_function_name() for tx in plan] for plan in fake_chain.plans] == [
        ["deposit"],
        ["approve", "deposit"],
        ["approve", "swapAndDeposit"],
    ]

    wrap, approve, deposit, approve_adapter, swap = fake_chain.get_executed()
    assert wrap.func.address == WETH
    assert wrap.value == 10 * 10**18

    assert approve.func.address == WETH
    assert approve.func.args == (LENDING_POOL, 10 * 10**18)
    assert deposit.func.address == LENDING_POOL
    assert deposit.func.args == (WETH, 10 * 10**18, wallet, 0)

    assert approve_adapter.func.address == AWETH
    assert approve_adapter.func.args == (ADAPTER, 10_010_000_000_000_000_000)

    # Minimum out is priceWithSlippage, swap-all offset of megaSwap
    assert swap.func.address == ADAPTER
    assert swap.func.args == (
        WETH,
        DAI,
        10_010_000_000_000_000_000,
        31_711_680_000_000_000_000_000,
        4 + 2 * 32,
        HexBytes(swap_response["data"]),
        AUGUSTUS,
        tuple(ZERO_PERMIT),
    )
    assert swap.gas_limit == SWAP_AND_DEPOSIT_GAS_LIMIT

    _assert_balances_reported(result, caplog)
    fake_chain.fork.close.assert_called_once_with()


@patch("liquidity_swap.paraswap.swap.requests.post")
@patch("liquidity_swap.paraswap.quote.requests.get")
def test_swap_collateral_with_tx_builder(mock_get, mock_post, config, price_route, swap_response, fake_chain, caplog):
    """Wrap, deposit and swap the collateral using the transaction builder."""
    mock_get.return_value = _json_response({"priceRoute": price_route})
    mock_post.return_value = _json_response(swap_response)
    caplog.set_level(logging.INFO)

    result = run_collateral_swap(config, fork_factory=lambda c: fake_chain.fork, variant=SwapVariant.tx_builder)

    assert result.error is None
    assert result.stage == RunStage.done
    wallet = result.wallet_address

    assert [[tx.get_function_name() for tx in plan] for plan in fake_chain.plans] == [
        ["deposit"],
        ["approve", "deposit"],
        ["approve", "swapAndDeposit"],
    ]

    wrap, approve, deposit, approve_adapter, swap = fake_chain.get_executed()
    assert wrap.value == 10 * 10**18
    assert approve.func.args == (LENDING_POOL, MAX_AMOUNT)
    assert deposit.func.args == (WETH, 10 * 10**18, wallet, 0)

    # Swap-all approves and swaps 0.05% over the quoted amount
    swap_all_amount = 10_010_000_000_000_000_000 * 10_005 // 10_000
    assert approve_adapter.func.address == AWETH
    assert approve_adapter.func.args == (ADAPTER, swap_all_amount)

    # priceWithSlippage reduced by the 10% max slippage
    min_to_amount = 31_711_680_000_000_000_000_000 * (100 - 10) // 100
    assert swap.func.address == ADAPTER
    assert swap.func.args == (
        WETH,
        DAI,
        swap_all_amount,
        min_to_amount,
        4 + 2 * 32,
        HexBytes(swap_response["data"]),
        AUGUSTUS,
        tuple(ZERO_PERMIT),
    )
    assert swap.gas_limit == SWAP_AND_DEPOSIT_GAS_LIMIT

    _assert_balances_reported(result, caplog)

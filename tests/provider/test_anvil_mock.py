"""Anvil fork session without launching Anvil."""

from unittest.mock import Mock, patch

import pytest

from liquidity_swap.provider.anvil import AnvilFork, RPCRequestError, make_anvil_custom_rpc_request, set_balance
from liquidity_swap.provider.fork import ForkError


@pytest.fixture
def anvil_launch() -> Mock:
    launch = Mock()
    launch.port = 20_123
    launch.json_rpc_url = "http://localhost:20123"
    return launch


@patch("liquidity_swap.provider.anvil.launch_anvil")
def test_anvil_fork_init(mock_launch_anvil, anvil_launch):
    """Fork id is derived from the Anvil port."""
    mock_launch_anvil.return_value = anvil_launch

    fork = AnvilFork("https://mainnet.example.com", fork_block_number=13_000_000)
    fork.init()

    assert fork.fork_id == "anvil-20123"
    assert fork.get_rpc_url() == "http://localhost:20123"
    mock_launch_anvil.assert_called_once_with("https://mainnet.example.com", fork_block_number=13_000_000)

    fork.close()
    anvil_launch.close.assert_called_once()
    assert not fork.is_initialised()


@patch("liquidity_swap.provider.anvil.set_balance")
@patch("liquidity_swap.provider.anvil.launch_anvil")
def test_anvil_fund_account(mock_launch_anvil, mock_set_balance, anvil_launch):
    """Funding sets the balance to 100 ETH."""
    mock_launch_anvil.return_value = anvil_launch

    fork = AnvilFork("https://mainnet.example.com")
    fork.init()
    fork.fund_account("0x1234567890123456789012345678901234567890")

    _, address, raw_amount = mock_set_balance.call_args.args
    assert address == "0x1234567890123456789012345678901234567890"
    assert raw_amount == 100 * 10**18


@patch("liquidity_swap.provider.anvil.set_balance")
@patch("liquidity_swap.provider.anvil.launch_anvil")
def test_anvil_fund_account_failure(mock_launch_anvil, mock_set_balance, anvil_launch):
    mock_launch_anvil.return_value = anvil_launch
    mock_set_balance.side_effect = RPCRequestError("Method not found")

    fork = AnvilFork("https://mainnet.example.com")
    fork.init()

    with pytest.raises(ForkError, match="Method not found"):
        fork.fund_account("0x1234567890123456789012345678901234567890")


def test_anvil_custom_rpc_request():
    web3 = Mock()
    web3.provider.make_request.return_value = {"jsonrpc": "2.0", "id": 1, "result": True}
    set_balance(web3, "0x1234567890123456789012345678901234567890", 10**18)
    web3.provider.make_request.assert_called_once_with("anvil_setBalance", ("0x1234567890123456789012345678901234567890", "0xde0b6b3a7640000"))

    web3.provider.make_request.return_value = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "Method not found"}}
    with pytest.raises(RPCRequestError, match="Method not found"):
        make_anvil_custom_rpc_request(web3, "anvil_setBalance", [])


@patch("liquidity_swap.provider.anvil.launch_anvil")
def test_anvil_close_failure(mock_launch_anvil, anvil_launch):
    """Anvil process that does not die is reported as ForkError."""
    mock_launch_anvil.return_value = anvil_launch
    anvil_launch.close.side_effect = AssertionError("Could not terminate the process in 30 seconds")

    fork = AnvilFork("https://mainnet.example.com")
    fork.init()

    with pytest.raises(ForkError, match="anvil-20123"):
        fork.close()

    assert not fork.is_initialised()

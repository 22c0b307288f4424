"""Network address tables."""

import pytest

from liquidity_swap.addresses import DEFAULT_NETWORK_ADDRESSES, NetworkAddresses, UnknownReserve, UnsupportedNetwork, get_network_addresses
from liquidity_swap.token import TokenReference


def test_mainnet_addresses():
    network = get_network_addresses(1)
    assert network.lending_pool_addresses_provider == "0xB53C1a33016B2DC2fF3653530bfF1848a515c8c5"
    assert network.swap_adapter == "0x135896DE8421be2ec868E0b811006171D9df802A"
    assert network.weth.address == "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
    assert network.get_reserve("dai").address == "0x6B175474E89094C44Da98b954EedeAC495271d0F"
    assert network.get_reserve("USDC").decimals == 6


def test_unknown_reserve():
    with pytest.raises(UnknownReserve):
        get_network_addresses(1).get_reserve("YFI")


def test_injected_tables():
    weth = TokenReference(chain_id=31337, address="0x0000000000000000000000000000000000000001", symbol="WETH", decimals=18)
    tables = {
        31337: NetworkAddresses(
            chain_id=31337,
            name="Local",
            weth=weth,
            lending_pool_addresses_provider="0x0000000000000000000000000000000000000002",
        )
    }
    network = get_network_addresses(31337, tables)
    assert network.swap_adapter is None
    assert network.weth == weth

    with pytest.raises(UnsupportedNetwork):
        get_network_addresses(31337, DEFAULT_NETWORK_ADDRESSES)

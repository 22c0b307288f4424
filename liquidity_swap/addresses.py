"""Per-network contract address tables.

The tables are passed around as a ``dict[int, NetworkAddresses]`` mapping,
so tests and scripts can inject their own deployments.
:py:data:`DEFAULT_NETWORK_ADDRESSES` is only used as a default argument.
"""

from dataclasses import dataclass, field

from eth_typing import HexAddress

from liquidity_swap.token import TokenReference


class UnsupportedNetwork(KeyError):
    """We do not have an address table for the chain id."""


class UnknownReserve(KeyError):
    """We do not know the reserve token by its symbol."""


@dataclass(frozen=True, slots=True)
class NetworkAddresses:
    """Contracts and reserve tokens we touch on one chain."""

    #: Chain id
    chain_id: int

    #: Human readable name
    name: str

    #: Wrapped native token (WETH9)
    weth: TokenReference

    #: Aave v2 LendingPoolAddressesProvider
    lending_pool_addresses_provider: HexAddress

    #: Already deployed ParaSwapLiquiditySwapAdapter.
    #:
    #: ``None`` if the adapter must be deployed from an artifact.
    swap_adapter: HexAddress | None = None

    #: Known Aave v2 reserves by their upper case symbol
    reserves: dict[str, TokenReference] = field(default_factory=dict)

    def get_reserve(self, symbol: str) -> TokenReference:
        """Look up a reserve token by its symbol, case insensitive.

        :raise UnknownReserve:
            If the reserve is not in our table
        """
        try:
            return self.reserves[symbol.upper()]
        except KeyError:
            raise UnknownReserve(f"Reserve {symbol} not known on {self.name}. Known reserves: {list(self.reserves.keys())}")


def _mainnet_token(address: str, symbol: str, decimals: int) -> TokenReference:
    return TokenReference(chain_id=1, address=HexAddress(address), symbol=symbol, decimals=decimals)


#: Ethereum mainnet WETH9
MAINNET_WETH = _mainnet_token("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "WETH", 18)

#: Ethereum mainnet DAI
MAINNET_DAI = _mainnet_token("0x6B175474E89094C44Da98b954EedeAC495271d0F", "DAI", 18)


# https://docs.aave.com/developers/v/2.0/deployed-contracts/deployed-contracts
DEFAULT_NETWORK_ADDRESSES: dict[int, NetworkAddresses] = {
    1: NetworkAddresses(
        chain_id=1,
        name="Ethereum",
        weth=MAINNET_WETH,
        lending_pool_addresses_provider=HexAddress("0xB53C1a33016B2DC2fF3653530bfF1848a515c8c5"),
        swap_adapter=HexAddress("0x135896DE8421be2ec868E0b811006171D9df802A"),
        reserves={
            "WETH": MAINNET_WETH,
            "DAI": MAINNET_DAI,
            "USDC": _mainnet_token("0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "USDC", 6),
            "USDT": _mainnet_token("0xdAC17F958D2ee523a2206206994597C13D831ec7", "USDT", 6),
            "WBTC": _mainnet_token("0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599", "WBTC", 8),
        },
    ),
}


def get_network_addresses(
    chain_id: int,
    address_tables: dict[int, NetworkAddresses] = DEFAULT_NETWORK_ADDRESSES,
) -> NetworkAddresses:
    """Get the address table for a chain.

    :raise UnsupportedNetwork:
        If the chain is not in the given tables
    """
    try:
        return address_tables[chain_id]
    except KeyError:
        raise UnsupportedNetwork(f"No Aave v2 address table for chain ID {chain_id}. Supported chains: {list(address_tables.keys())}")

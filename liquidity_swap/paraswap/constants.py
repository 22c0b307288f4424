"""ParaSwap contract addresses and constants."""

from eth_typing import HexAddress

#: ParaSwap API endpoint
PARASWAP_API_URL = "https://apiv5.paraswap.io"

#: Partner name Aave uses for its integrations
AAVE_PARTNER = "aave"

#: DEXes we do not route through by default
DEFAULT_EXCLUDED_DEXS = ("Balancer",)

#: Augustus methods we do not route through by default
DEFAULT_EXCLUDED_CONTRACT_METHODS = ("simpleSwap",)

#: Augustus Swapper v5 contract addresses per chain
#:
#: This is the main router contract that executes swaps.
AUGUSTUS_SWAPPER: dict[int, HexAddress] = {
    1: HexAddress("0xDEF171Fe48CF0115B1d80b88dc8eAB59176FEe57"),  # Ethereum
    137: HexAddress("0xDEF171Fe48CF0115B1d80b88dc8eAB59176FEe57"),  # Polygon
    43114: HexAddress("0xDEF171Fe48CF0115B1d80b88dc8eAB59176FEe57"),  # Avalanche
}


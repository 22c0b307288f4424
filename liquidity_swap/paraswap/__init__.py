"""ParaSwap (Velora) DEX aggregator integration.

ParaSwap routes a swap across multiple decentralised exchanges and
builds the calldata for its Augustus Swapper router contract. Aave's liquidity
swap adapter executes this calldata to swap one collateral into another.

For more information see `ParaSwap developer documentation <https://developers.velora.xyz>`__.

Key components:

- :py:mod:`liquidity_swap.paraswap.constants` - Contract addresses and API configuration
- :py:mod:`liquidity_swap.paraswap.api` - API helpers and error handling
- :py:mod:`liquidity_swap.paraswap.quote` - Price route quoting
- :py:mod:`liquidity_swap.paraswap.swap` - Swap transaction building
- :py:mod:`liquidity_swap.paraswap.augustus` - Augustus calldata introspection
"""

"""Aave v2 constants."""

#: Use this amount to approve or withdraw everything
MAX_AMOUNT = 2**256 - 1

#: We do not have an Aave referral code
AAVE_V2_REFERRAL_CODE = 0

#: Gas limit for ``swapAndDeposit()``.
#:
#: The node gas estimation is not reliable for multi-hop Augustus routes.
SWAP_AND_DEPOSIT_GAS_LIMIT = 5_000_000

#: When swapping the whole aToken balance, approve this much more than quoted.
#:
#: aToken balance keeps accruing interest between the quote and the swap.
#: In basis points, 5 = 0.05%.
SWAP_ALL_SURPLUS_BPS = 5

#: ABI file of the lending pool
LENDING_POOL_ABI = "aave_v2/ILendingPool.json"

#: ABI file of the lending pool addresses provider
ADDRESSES_PROVIDER_ABI = "aave_v2/ILendingPoolAddressesProvider.json"

#: ABI file of the liquidity swap adapter
SWAP_ADAPTER_ABI = "aave_v2/ParaSwapLiquiditySwapAdapter.json"

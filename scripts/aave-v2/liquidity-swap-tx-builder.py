"""Aave v2 collateral swap WETH -> any reserve using transaction plans.

- Same as ``liquidity-swap-swap-and-deposit.py``, but the deposit and the swap
  go through :py:class:`liquidity_swap.aave_v2.tx_builder.LendingPoolTxBuilder`
- Swaps the whole aWETH balance with extra ``SWAP_MAX_SLIPPAGE`` percent tolerance
- The reserve is picked with ``SWAP_TO_SYMBOL``

To run:

.. code-block:: shell

    export TENDERLY_ACCOUNT=...
    export TENDERLY_PROJECT=...
    export TENDERLY_KEY=...
    export SWAP_TO_SYMBOL=USDC
    python scripts/aave-v2/liquidity-swap-tx-builder.py
"""

import logging
import sys

from liquidity_swap.config import SwapRunConfig
from liquidity_swap.flow import SwapVariant, run_collateral_swap
from liquidity_swap.utils import setup_console_logging

logger = logging.getLogger(__name__)


def main():
    setup_console_logging()
    config = SwapRunConfig.from_env()
    result = run_collateral_swap(config, variant=SwapVariant.tx_builder)
    if not result.is_success():
        logger.error("Swap failed at stage %s: %s", result.stage.value, result.error)
        sys.exit(1)

    before, after = result.balances_before, result.balances_after
    logger.info("aWETH raw balance %d -> %d", before.from_a_token, after.from_a_token)


if __name__ == "__main__":
    main()

"""Aave v2 collateral swap WETH -> DAI using ParaSwapLiquiditySwapAdapter directly.

- Creates a throwaway wallet and a mainnet fork (Tenderly or :ref:`Anvil`)
- Wraps 10 ETH, deposits WETH to Aave v2
- Swaps all aWETH to aDAI with ``swapAndDeposit()``

To run on a Tenderly fork:

.. code-block:: shell

    export TENDERLY_ACCOUNT=...
    export TENDERLY_PROJECT=...
    export TENDERLY_KEY=...
    python scripts/aave-v2/liquidity-swap-swap-and-deposit.py

To run on a local Anvil fork, deploying the adapter from a compiled artifact:

.. code-block:: shell

    export FORK_PROVIDER=anvil
    export JSON_RPC_ETHEREUM=...
    export SWAP_ADAPTER_ARTIFACT=~/aave-protocol-v2/artifacts/contracts/adapters/ParaSwapLiquiditySwapAdapter.sol/ParaSwapLiquiditySwapAdapter.json
    python scripts/aave-v2/liquidity-swap-swap-and-deposit.py

See :py:mod:`liquidity_swap.config` for all environment variables.
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
    result = run_collateral_swap(config, variant=SwapVariant.adapter)
    if not result.is_success():
        logger.error("Swap failed at stage %s: %s", result.stage.value, result.error)
        sys.exit(1)

    logger.info("All ok, wallet %s, fork %s", result.wallet_address, result.fork_id)


if __name__ == "__main__":
    main()

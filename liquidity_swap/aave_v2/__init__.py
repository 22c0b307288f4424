"""Aave v2 lending pool and ParaSwap liquidity swap adapter integration.

- :py:mod:`liquidity_swap.aave_v2.deployment` resolves the lending pool from the addresses provider

- :py:mod:`liquidity_swap.aave_v2.loan` prepares the deposit calls

- :py:mod:`liquidity_swap.aave_v2.adapter` deploys and calls ``ParaSwapLiquiditySwapAdapter``

- :py:mod:`liquidity_swap.aave_v2.tx_builder` turns deposits and collateral swaps into transaction plans
"""

"""Mainnet fork provisioning.

- :py:mod:`liquidity_swap.provider.tenderly` for remote Tenderly forks

- :py:mod:`liquidity_swap.provider.anvil` for local Anvil forks
"""

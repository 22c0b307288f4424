"""Run configuration from environment variables.

.. code-block:: shell

    export TENDERLY_ACCOUNT=...
    export TENDERLY_PROJECT=...
    export TENDERLY_KEY=...
    export SWAP_TO_SYMBOL=DAI
    python scripts/aave-v2/liquidity-swap-swap-and-deposit.py

Or with a local Anvil fork:

.. code-block:: shell

    export FORK_PROVIDER=anvil
    export JSON_RPC_ETHEREUM=...
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Mapping

from liquidity_swap.paraswap.constants import PARASWAP_API_URL


class ConfigurationError(Exception):
    """Environment variables are missing or malformed."""


#: Supported ``FORK_PROVIDER`` values
FORK_PROVIDERS = ("tenderly", "anvil")


@dataclass(frozen=True, slots=True)
class SwapRunConfig:
    """All knobs of one collateral swap run."""

    #: Chain id of the forked network
    network_id: int = 1

    #: ParaSwap API base URL
    paraswap_api: str = PARASWAP_API_URL

    #: ``tenderly`` or ``anvil``
    fork_provider: str = "tenderly"

    tenderly_account: str | None = None

    tenderly_project: str | None = None

    tenderly_key: str | None = None

    #: Upstream node for Anvil
    json_rpc_url: str | None = None

    #: How much ETH is wrapped and deposited as collateral
    deposit_amount: Decimal = Decimal(10)

    #: How much WETH we ask ParaSwap to sell.
    #:
    #: Slightly more than :py:attr:`deposit_amount`, as we swap all collateral
    #: including interest.
    swap_amount: Decimal = Decimal("10.01")

    #: Reserve we swap the collateral to
    to_symbol: str = "DAI"

    #: Extra slippage tolerance on top of ParaSwap's own, in percents.
    #:
    #: Used by the transaction builder variant.
    max_slippage: int = 10

    #: ParaSwap slippage when it does not give ``priceWithSlippage``, in BPS
    slippage_bps: int = 100

    #: Deploy the adapter from this compilation artifact instead of using the deployed one
    adapter_artifact: Path | None = None

    def __post_init__(self):
        if self.fork_provider not in FORK_PROVIDERS:
            raise ConfigurationError(f"FORK_PROVIDER must be one of {FORK_PROVIDERS}, got {self.fork_provider}")
        if not 0 <= self.max_slippage < 100:
            raise ConfigurationError(f"SWAP_MAX_SLIPPAGE must be a percent, got {self.max_slippage}")
        for name, amount in (("SWAP_DEPOSIT_AMOUNT", self.deposit_amount), ("SWAP_AMOUNT", self.swap_amount)):
            if not Decimal(amount).is_finite():
                raise ConfigurationError(f"{name} must be a finite number, got {amount}")
        if self.deposit_amount <= 0 or self.swap_amount <= 0:
            raise ConfigurationError("Deposit and swap amounts must be positive")

    def validate_fork_credentials(self):
        """Check we have what the selected fork provider needs.

        :raise ConfigurationError:
            If credentials are missing
        """
        if self.fork_provider == "tenderly":
            missing = [
                name
                for name, value in (
                    ("TENDERLY_ACCOUNT", self.tenderly_account),
                    ("TENDERLY_PROJECT", self.tenderly_project),
                    ("TENDERLY_KEY", self.tenderly_key),
                )
                if not value
            ]
            if missing:
                raise ConfigurationError(f"Tenderly fork needs environment variables: {', '.join(missing)}")
        elif self.fork_provider == "anvil":
            if not self.json_rpc_url:
                raise ConfigurationError("Anvil fork needs JSON_RPC_ETHEREUM environment variable")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> "SwapRunConfig":
        """Read the configuration from environment variables.

        :raise ConfigurationError:
            If a value cannot be parsed
        """

        def _get(name: str) -> str | None:
            # Treat empty variables as unset
            return environ.get(name) or None

        try:
            kwargs = {}
            if _get("FORK_NETWORK_ID"):
                kwargs["network_id"] = int(_get("FORK_NETWORK_ID"))
            if _get("PARASWAP_API"):
                kwargs["paraswap_api"] = _get("PARASWAP_API")
            if _get("FORK_PROVIDER"):
                kwargs["fork_provider"] = _get("FORK_PROVIDER").lower()
            if _get("SWAP_DEPOSIT_AMOUNT"):
                kwargs["deposit_amount"] = Decimal(_get("SWAP_DEPOSIT_AMOUNT"))
            if _get("SWAP_AMOUNT"):
                kwargs["swap_amount"] = Decimal(_get("SWAP_AMOUNT"))
            if _get("SWAP_TO_SYMBOL"):
                kwargs["to_symbol"] = _get("SWAP_TO_SYMBOL")
            if _get("SWAP_MAX_SLIPPAGE"):
                kwargs["max_slippage"] = int(_get("SWAP_MAX_SLIPPAGE"))
            if _get("SWAP_SLIPPAGE_BPS"):
                kwargs["slippage_bps"] = int(_get("SWAP_SLIPPAGE_BPS"))
            if _get("SWAP_ADAPTER_ARTIFACT"):
                kwargs["adapter_artifact"] = Path(_get("SWAP_ADAPTER_ARTIFACT"))
        except ArithmeticError as e:
            # decimal.InvalidOperation
            raise ConfigurationError(f"Bad amount in environment: {e}") from e
        except ValueError as e:
            raise ConfigurationError(f"Bad number in environment: {e}") from e

        return cls(
            tenderly_account=_get("TENDERLY_ACCOUNT"),
            tenderly_project=_get("TENDERLY_PROJECT"),
            tenderly_key=_get("TENDERLY_KEY"),
            json_rpc_url=_get("JSON_RPC_ETHEREUM"),
            **kwargs,
        )

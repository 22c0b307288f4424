"""Fork session interface."""

import abc
from decimal import Decimal

from eth_typing import HexAddress
from web3 import HTTPProvider, Web3


#: How much ETH we credit for a test wallet by default
DEFAULT_FUND_AMOUNT = Decimal(100)


class ForkError(Exception):
    """Could not create, fund or tear down a fork."""


class ForkSession(abc.ABC):
    """An ephemeral mutable copy of a live chain.

    - Created once per run with :py:meth:`init`

    - Exposes a JSON-RPC endpoint with :py:meth:`get_rpc_url`

    - Can credit any address with native currency using :py:meth:`fund_account`

    A fork session is never shared between runs.
    """

    #: Identifier of the fork, set by :py:meth:`init`
    fork_id: str | None = None

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.fork_id}>"

    @abc.abstractmethod
    def init(self):
        """Create the fork."""

    @abc.abstractmethod
    def get_rpc_url(self) -> str:
        """JSON-RPC URL of the fork."""

    @abc.abstractmethod
    def fund_account(self, address: HexAddress | str):
        """Credit the address with a fixed amount of native currency."""

    def close(self):
        """Release the fork.

        Not all fork providers need this.
        """

    def is_initialised(self) -> bool:
        return self.fork_id is not None

    def create_web3(self) -> Web3:
        """Create a Web3 connection to the fork."""
        assert self.is_initialised(), f"Call init() first: {self}"
        return Web3(HTTPProvider(self.get_rpc_url()))

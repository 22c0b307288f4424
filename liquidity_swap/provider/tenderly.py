"""Tenderly fork provisioning.

- `Tenderly <https://tenderly.co>`__ is software-as-a-service debugger for EVM chains

- Forks are created through Tenderly REST API and exposed as a JSON-RPC endpoint

To use you need Tenderly access key, account and project name:

.. code-block:: shell

    export TENDERLY_ACCOUNT=...
    export TENDERLY_PROJECT=...
    export TENDERLY_KEY=...
"""

import datetime
import logging
from decimal import Decimal

import requests
from eth_typing import HexAddress

from liquidity_swap.provider.fork import DEFAULT_FUND_AMOUNT, ForkError, ForkSession

logger = logging.getLogger(__name__)


#: Tenderly REST API
TENDERLY_API_URL = "https://api.tenderly.co/api/v1"

#: Tenderly fork JSON-RPC
TENDERLY_RPC_URL = "https://rpc.tenderly.co/fork"


class TenderlyFork(ForkSession):
    """Remote fork of a live chain on Tenderly.

    Example:

    .. code-block:: python

        fork = TenderlyFork(account, project, access_key, network_id=1)
        fork.init()
        web3 = fork.create_web3()
        fork.fund_account(hot_wallet.address)
    """

    def __init__(
        self,
        account: str,
        project: str,
        access_key: str,
        network_id: int = 1,
        fund_amount: Decimal = DEFAULT_FUND_AMOUNT,
        api_url: str = TENDERLY_API_URL,
        api_timeout: datetime.timedelta = datetime.timedelta(seconds=60),
    ):
        """
        :param account:
            Tenderly account (user or organisation) slug

        :param project:
            Tenderly project slug

        :param access_key:
            Tenderly API access key

        :param network_id:
            Chain id of the forked chain

        :param fund_amount:
            How much ETH :py:meth:`fund_account` credits
        """
        assert account, "Tenderly account missing"
        assert project, "Tenderly project missing"
        assert access_key, "Tenderly access key missing"
        self.account = account
        self.project = project
        self.access_key = access_key
        self.network_id = network_id
        self.fund_amount = fund_amount
        self.api_url = api_url.rstrip("/")
        self.api_timeout = api_timeout
        self.fork_id = None

    def get_project_url(self) -> str:
        return f"{self.api_url}/account/{self.account}/project/{self.project}"

    def _request(self, method: str, url: str, json: dict | None = None) -> dict:
        try:
            response = requests.request(
                method,
                url,
                json=json,
                headers={"X-Access-Key": self.access_key},
                timeout=self.api_timeout.total_seconds(),
            )
        except requests.RequestException as e:
            raise ForkError(f"Tenderly API unreachable: {method} {url}: {e}") from e

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise ForkError(f"Tenderly API error: {method} {url}: {response.status_code} {response.text}") from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ForkError(f"Tenderly API returned non-JSON: {method} {url}: {response.text}") from e

    def init(self):
        """Create a new fork at the latest block."""
        assert self.fork_id is None, f"Fork already created: {self.fork_id}"
        data = self._request(
            "POST",
            f"{self.get_project_url()}/fork",
            json={"network_id": str(self.network_id)},
        )
        try:
            self.fork_id = data["simulation_fork"]["id"]
        except (KeyError, TypeError) as e:
            raise ForkError(f"Tenderly did not return a fork id: {data}") from e
        logger.info("Created fork ID %s", self.fork_id)

    def get_rpc_url(self) -> str:
        assert self.fork_id, "Fork not initialised"
        return f"{TENDERLY_RPC_URL}/{self.fork_id}"

    def fund_account(self, address: HexAddress | str):
        """Credit the address with :py:attr:`fund_amount` ETH."""
        assert self.fork_id, "Fork not initialised"
        self._request(
            "POST",
            f"{self.get_project_url()}/fork/{self.fork_id}/balance",
            json={"accounts": [address], "amount": int(self.fund_amount)},
        )
        logger.info("Funded %s with %s ETH on fork %s", address, self.fund_amount, self.fork_id)

    def close(self):
        """Delete the fork from Tenderly."""
        if self.fork_id is None:
            return
        self._request("DELETE", f"{self.get_project_url()}/fork/{self.fork_id}")
        logger.info("Deleted fork ID %s", self.fork_id)
        self.fork_id = None

"""Anvil fork provisioning.

_ ..anvil:

- `Anvil <https://github.com/foundry-rs/foundry/tree/master?tab=readme-ov-file#anvil>`__
  is a local testnet node implementation in Rust from Foundry project

- An alternative to Tenderly when you have your own mainnet JSON-RPC node

To install Anvil:

.. code-block:: shell

    curl -L https://foundry.paradigm.xyz | bash
    PATH=~/.foundry/bin:$PATH
    foundryup

For more information see `Anvil reference <https://book.getfoundry.sh/reference/anvil/>`__.
"""

import logging
import os
import shutil
import sys
import time
import warnings
from dataclasses import dataclass
from decimal import Decimal
from subprocess import DEVNULL, PIPE
from typing import Any, Optional

import psutil
import requests
from eth_typing import HexAddress
from requests.exceptions import ConnectionError as RequestsConnectionError
from web3 import HTTPProvider, Web3

from liquidity_swap.provider.fork import DEFAULT_FUND_AMOUNT, ForkError, ForkSession
from liquidity_swap.utils import find_free_port, shutdown_hard

logger = logging.getLogger(__name__)


class InvalidArgumentWarning(Warning):
    """Unknown Anvil command line argument."""


class RPCRequestError(Exception):
    """Anvil custom RPC method failed."""


#: Mappings between Anvil command line parameters and our internal argument names
CLI_FLAGS = {
    "port": "--port",
    "host": "--host",
    "fork": "--fork-url",
    "fork_block_number": "--fork-block-number",
    "hardfork": "--hardfork",
    "chain_id": "--chain-id",
    "gas_limit": "--gas-limit",
    "block_time": "--block-time",
}


def _launch(cmd: str, **kwargs) -> tuple[psutil.Popen, list[str]]:
    """Launches the RPC client.

    :param cmd: command string to execute as subprocess
    """
    cmd_list = cmd.split(" ")
    for key, value in [(k, v) for k, v in kwargs.items() if v]:
        try:
            cmd_list.extend([CLI_FLAGS[key], str(value)])
        except KeyError:
            warnings.warn(
                f'Ignoring invalid commandline setting for anvil: "{key}" with value "{value}".',
                InvalidArgumentWarning,
            )

    # Do not leak the API key of the forked node in the logs
    logger.info("Launching anvil: %s", " ".join(c for c in cmd_list if not c.startswith("http")))
    out = DEVNULL if sys.platform == "win32" else PIPE
    env = os.environ.copy()
    env["RUST_BACKTRACE"] = "1"  # Get tracebacks from crashed anvil
    return psutil.Popen(cmd_list, stdin=DEVNULL, stdout=out, stderr=out, env=env), cmd_list


def make_anvil_custom_rpc_request(web3: Web3, method: str, args: Optional[list] = None) -> Any:
    """Make a request to special named EVM JSON-RPC endpoint.

    - `See the Anvil custom RPC methods here <https://book.getfoundry.sh/reference/anvil/>`__.

    :param method:
        RPC endpoint name

    :param args:
        JSON-RPC call arguments

    :return:
        RPC result

    :raise RPCRequestError:
        In the case RPC method errors
    """

    if args is None:
        args = ()

    try:
        response = web3.provider.make_request(method, tuple(args))  # type: ignore
        if "result" in response:
            return response["result"]
    except (AttributeError, RequestsConnectionError):
        raise RPCRequestError("Web3 is not connected.")

    raise RPCRequestError(response["error"]["message"])


def set_balance(web3: Web3, address: str, raw_amount: int):
    """Call anvil_setBalance on Anvil"""
    assert type(raw_amount) == int
    make_anvil_custom_rpc_request(web3, "anvil_setBalance", [address, hex(raw_amount)])


@dataclass
class AnvilLaunch:
    """Control Anvil processes launched on background.

    Comes with a helpful :py:meth:`close` method when it is time to put Anvil rest.
    """

    #: Which port was bound by the Anvil
    port: int

    #: Used command-line to spin up anvil
    cmd: list[str]

    #: Where does Anvil listen to JSON-RPC
    json_rpc_url: str

    #: UNIX process that we opened
    process: psutil.Popen

    def close(self, log_level: Optional[int] = None, block=True, block_timeout=30) -> tuple[bytes, bytes]:
        """Close the background Anvil process.

        :param log_level:
            Dump Anvil messages to logging

        :param block:
            Block the execution until anvil is gone

        :param block_timeout:
            How long time we try to kill Anvil until giving up.

        :return:
            Anvil stdout, stderr as bytes
        """
        stdout, stderr = shutdown_hard(
            self.process,
            log_level=log_level,
            block=block,
            block_timeout=block_timeout,
            check_port=self.port,
        )
        logger.info("Anvil shutdown %s", self.json_rpc_url)
        return stdout, stderr


def launch_anvil(
    fork_url: Optional[str] = None,
    cmd="anvil",
    port: tuple = (19999, 29999, 25),
    launch_wait_seconds=20.0,
    attempts=3,
    hardfork: str | None = "cancun",
    gas_limit: Optional[int] = None,
    fork_block_number: Optional[int] = None,
    test_request_timeout=3.0,
) -> AnvilLaunch:
    """Creates Anvil mainnet fork.

    When called, a subprocess is started on the background.
    To stop this process, call :py:meth:`AnvilLaunch.close`.

    This function waits `launch_wait_seconds` in order to `anvil` process to start
    and complete the chain fork.

    :param fork_url:
        HTTP JSON-RPC URL of the network we want to fork.

    :param cmd:
        Override `anvil` command. If not given we look up from `PATH`.

    :param port:
        (min port, max port, opening attempts) to pick a random free port

    :param launch_wait_seconds:
        How long we wait anvil to start until giving up

    :param attempts:
        How many attempts we do to start anvil.

        Anvil launch may fail without any output if the forked JSON-RPC node
        is throttling us. In this case we kill the process and try again.

    :param fork_block_number:
        Fork at a specific block height of the parent chain.
    """

    anvil = shutil.which(cmd)
    assert anvil is not None, f"anvil command not in PATH {os.environ.get('PATH')}"

    port = find_free_port(*port)
    url = f"http://localhost:{port}"

    args = dict(
        port=port,
        fork=fork_url,
        hardfork=hardfork,
        gas_limit=gas_limit,
        fork_block_number=fork_block_number,
    )

    attempts_left = attempts
    current_block = chain_id = None
    process = final_cmd = None

    while attempts_left > 0:
        process, final_cmd = _launch(cmd, **args)

        # Wait until Anvil is responsive
        timeout = time.time() + launch_wait_seconds

        # Use shorter read timeout here - otherwise requests will wait > 10s if something is wrong
        web3 = Web3(HTTPProvider(url, request_kwargs={"timeout": test_request_timeout}))
        while time.time() < timeout:
            try:
                current_block = web3.eth.block_number
                chain_id = web3.eth.chain_id
                break
            except (requests.exceptions.ConnectionError, requests.exceptions.ReadTimeout):
                time.sleep(0.1)
                continue

        if current_block is None:
            logger.error("Could not read the latest block from anvil %s within %f seconds, shutting down and dumping output", url, launch_wait_seconds)
            stdout, stderr = shutdown_hard(
                process,
                log_level=logging.ERROR,
                block=True,
                check_port=port,
            )

            if len(stdout) == 0:
                attempts_left -= 1
                if attempts_left > 0:
                    logger.info("anvil did not start properly, try again, attempts left %d", attempts_left)
                    continue

            raise ForkError(f"Could not read block number from Anvil after the launch with command '{cmd}': at {url}, stdout is {len(stdout)} bytes, stderr is {len(stderr)} bytes")
        else:
            break

    logger.info(f"anvil forked network {chain_id}, the current block is {current_block:,}, Anvil JSON-RPC is {url}")
    return AnvilLaunch(port, final_cmd, url, process)


class AnvilFork(ForkSession):
    """Local fork of a live chain using Anvil.

    Example:

    .. code-block:: python

        fork = AnvilFork(os.environ["JSON_RPC_ETHEREUM"])
        fork.init()
        try:
            web3 = fork.create_web3()
            fork.fund_account(hot_wallet.address)
        finally:
            fork.close()
    """

    def __init__(
        self,
        fork_url: str,
        fund_amount: Decimal = DEFAULT_FUND_AMOUNT,
        fork_block_number: int | None = None,
    ):
        assert fork_url, "Anvil needs JSON-RPC URL to fork"
        self.fork_url = fork_url
        self.fund_amount = fund_amount
        self.fork_block_number = fork_block_number
        self.launch: AnvilLaunch | None = None
        self.fork_id = None

    def init(self):
        assert self.launch is None, "Anvil already launched"
        self.launch = launch_anvil(self.fork_url, fork_block_number=self.fork_block_number)
        self.fork_id = f"anvil-{self.launch.port}"
        logger.info("Created fork ID %s", self.fork_id)

    def get_rpc_url(self) -> str:
        assert self.launch, "Anvil not launched"
        return self.launch.json_rpc_url

    def fund_account(self, address: HexAddress | str):
        """Set the ETH balance of the address to :py:attr:`fund_amount`."""
        web3 = self.create_web3()
        raw_amount = web3.to_wei(self.fund_amount, "ether")
        try:
            set_balance(web3, address, raw_amount)
        except RPCRequestError as e:
            raise ForkError(f"Could not fund {address} on {self.fork_id}: {e}") from e
        logger.info("Funded %s with %s ETH on fork %s", address, self.fund_amount, self.fork_id)

    def close(self):
        if self.launch is None:
            return
        launch = self.launch
        self.launch = None
        try:
            launch.close()
        except AssertionError as e:
            raise ForkError(f"Could not shut down Anvil fork {self.fork_id}: {e}") from e
        finally:
            self.fork_id = None

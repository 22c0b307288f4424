"""ParaSwapLiquiditySwapAdapter deployment and calls.

The adapter swaps aToken collateral through Augustus Swapper and deposits
the output back to the lending pool in a single transaction.

- `ParaSwapLiquiditySwapAdapter.sol <https://github.com/aave/protocol-v2/blob/master/contracts/adapters/ParaSwapLiquiditySwapAdapter.sol>`__
"""

import logging
from pathlib import Path
from typing import NamedTuple

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract
from web3.contract.contract import ContractFunction

from liquidity_swap.aave_v2.constants import SWAP_ADAPTER_ABI
from liquidity_swap.abi import ZERO_BYTES32, get_contract, get_deployed_contract
from liquidity_swap.confirmation import assert_transaction_success_with_explanation
from liquidity_swap.hotwallet import HotWallet

logger = logging.getLogger(__name__)


class PermitSignature(NamedTuple):
    """EIP-2612 permit for the aToken.

    Passed as the last ``swapAndDeposit()`` argument.
    """

    amount: int
    deadline: int
    v: int
    r: bytes
    s: bytes


#: Placeholder permit when the allowance has been set with ``approve()``
ZERO_PERMIT = PermitSignature(amount=0, deadline=0, v=0, r=ZERO_BYTES32, s=ZERO_BYTES32)


class AdapterDeploymentFailed(Exception):
    """The adapter artifact could not be deployed."""


def get_deployed_adapter(web3: Web3, address: HexAddress | str) -> Contract:
    """Get an already deployed adapter."""
    return get_deployed_contract(web3, SWAP_ADAPTER_ABI, address)


def deploy_adapter(
    web3: Web3,
    hot_wallet: HotWallet,
    artifact_path: Path | str,
    addresses_provider: HexAddress | str,
) -> Contract:
    """Deploy a fresh ParaSwapLiquiditySwapAdapter.

    :param artifact_path:
        Hardhat or Foundry compilation artifact with ``abi`` and ``bytecode``

    :param addresses_provider:
        Aave v2 LendingPoolAddressesProvider the adapter is bound to

    :raise AdapterDeploymentFailed:
        If the artifact has no bytecode or the deployment did not produce a contract

    :return:
        Deployed adapter
    """
    artifact_path = Path(artifact_path).absolute()
    Adapter = get_contract(web3, artifact_path)
    if not Adapter.bytecode:
        raise AdapterDeploymentFailed(f"Artifact {artifact_path} does not contain bytecode")

    constructor = Adapter.constructor(Web3.to_checksum_address(addresses_provider))
    tx = constructor.build_transaction(
        {
            "from": hot_wallet.address,
            "chainId": web3.eth.chain_id,
        }
    )
    signed_tx = hot_wallet.sign_transaction_with_new_nonce(tx)
    tx_hash = web3.eth.send_raw_transaction(signed_tx.raw_transaction)
    receipt = assert_transaction_success_with_explanation(web3, tx_hash)

    address = receipt.get("contractAddress")
    if not address:
        raise AdapterDeploymentFailed(f"Deployment {tx_hash.hex()} did not create a contract")

    logger.info("Deployed adapter at %s", address)
    return Adapter(address)


def swap_and_deposit(
    adapter: Contract,
    *,
    from_asset: HexAddress | str,
    to_asset: HexAddress | str,
    amount_to_swap: int,
    min_amount_to_receive: int,
    swap_all_balance_offset: int,
    swap_calldata: bytes,
    augustus: HexAddress | str,
    permit: PermitSignature = ZERO_PERMIT,
) -> ContractFunction:
    """Prepare a ``swapAndDeposit()`` call.

    The caller must have approved the adapter to pull ``amount_to_swap``
    of the ``from_asset`` aToken, unless ``permit`` is given.

    :param from_asset:
        Underlying reserve we swap from, not the aToken

    :param to_asset:
        Underlying reserve we swap to

    :param amount_to_swap:
        Raw amount of ``from_asset``

    :param min_amount_to_receive:
        Raw amount of ``to_asset``, the call reverts if the swap gives less

    :param swap_all_balance_offset:
        Byte offset of ``fromAmount`` in ``swap_calldata``.

        Non-zero makes the adapter swap the whole aToken balance.
        Zero swaps exactly ``amount_to_swap``.

    :param swap_calldata:
        Augustus calldata from ParaSwap

    :param augustus:
        Augustus Swapper address the calldata is for

    :return:
        Bound contract function
    """
    return adapter.functions.swapAndDeposit(
        Web3.to_checksum_address(from_asset),
        Web3.to_checksum_address(to_asset),
        amount_to_swap,
        min_amount_to_receive,
        swap_all_balance_offset,
        swap_calldata,
        Web3.to_checksum_address(augustus),
        tuple(permit),
    )

"""ABI loading from the bundled interface files.

Provides functions to load ABI files and construct :py:class:`web3.contract.Contract` types.
The results are cached for the speedup.

Bundled files live in ``liquidity_swap/abi``. Compiled artifacts, like the
ParaSwap liquidity swap adapter with its bytecode, can be loaded from
any absolute path.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Optional, Type, Union

from eth_typing import HexAddress
from web3 import Web3
from web3.contract.contract import Contract

# How big are our ABI and contract caches
_CACHE_SIZE = 512


#: 32 zero bytes used as an empty ``bytes32`` argument
ZERO_BYTES32 = b"\x00" * 32


@lru_cache(maxsize=_CACHE_SIZE)
def get_abi_by_filename(fname: str | Path) -> dict | list:
    """Reads a embedded ABI file and returns it.

    Example::

        abi = get_abi_by_filename("IERC20.json")

    Loaded ABI files are cache in in-process memory to speed up future loading.

    :param fname:
        Relative path inside the bundled ``abi`` folder, or an absolute path
        to a Hardhat/Foundry artifact.

    :return:
        Full contract interface, including ``bytecode`` if the file has one.
    """

    here = Path(__file__).resolve().parent
    # Absolute paths win over the bundled folder when joined
    abi_path = here / "abi" / Path(fname)
    with open(abi_path, "rt", encoding="utf-8") as f:
        abi = json.load(f)
    return abi


@lru_cache(maxsize=_CACHE_SIZE)
def get_contract(
    web3: Web3,
    fname: str | Path,
    bytecode: Optional[str] = None,
) -> Type[Contract]:
    """Get Contract proxy class from ABI JSON file.

    Read ABI file from

    - Our bundled interfaces in the Python package

    - Filesystem using absolute path

    - ABI file can be a solc compiling artifact or Etherscan copy-pasted ABI.

    Any results are cached. Web3 connection is part of the cache key.

    Example:

    .. code-block:: python

        IERC20 = get_contract(web3, "IERC20.json")

    :param web3:
        Web3 instance

    :param fname:
        Solidity compiler artifact or a plain ABI list.

    :param bytecode:
        Override bytecode payload for the contract

    :return:
        Contract proxy class
    """

    contract_interface = get_abi_by_filename(fname)

    if type(contract_interface) == list:
        # Etherscan
        abi = contract_interface
        bytecode = None
    else:
        # Solc output
        abi = contract_interface["abi"]

        if bytecode is None:
            bytecode = contract_interface.get("bytecode")

        if type(bytecode) == dict:
            # Sol 0.8 / Forge
            # Contains keys object, sourceMap, linkReferences
            bytecode = bytecode["object"]

    return web3.eth.contract(abi=abi, bytecode=bytecode)


def get_deployed_contract(
    web3: Web3,
    fname: str | Path,
    address: Union[HexAddress, str],
) -> Contract:
    """Get a Contract proxy object for a contract deployed at a specific address.

    :param web3:
        Web3 instance

    :param fname:
        ABI file name, see :py:func:`get_abi_by_filename`

    :param address:
        Ethereum address of the deployed contract

    :return:
        `web3.contract.Contract` proxy
    """
    assert isinstance(web3, Web3), f"Got {type(web3)} instead of Web3"
    assert address, f"get_deployed_contract() address was None"

    address = Web3.to_checksum_address(address)

    Contract = get_contract(web3, fname)
    return Contract(address)

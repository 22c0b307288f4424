"""ERC-20 token helpers.

- :py:class:`TokenReference` describes a token before we have a chain connection,
  e.g. when asking a price route from ParaSwap before the fork exists

- :py:class:`TokenDetails` wraps an on-chain ERC-20 contract and deals with
  token value decimal conversions
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from functools import cached_property
from typing import Any, Optional, Union

import cachetools
from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from liquidity_swap.abi import get_deployed_contract

logger = logging.getLogger(__name__)

#: List of exceptions JSON-RPC provider can through when ERC-20 field look-up fails
_call_missing_exceptions = (BadFunctionCallOutput, ValueError, ContractLogicError)

#: By default we cache 1024 token details using LRU in the process memory.
DEFAULT_TOKEN_CACHE = cachetools.LRUCache(1024)


def convert_to_decimals(raw_amount: int, decimals: int) -> Decimal:
    """Convert raw token units to decimals.

    Example:

    .. code-block:: python

        assert convert_to_decimals(10**18, 18) == Decimal(1)
    """
    assert type(raw_amount) == int, f"Got {type(raw_amount)}, expected int: {raw_amount}"
    return Decimal(raw_amount) / Decimal(10**decimals)


def convert_to_raw(decimal_amount: Decimal, decimals: int) -> int:
    """Convert decimalised token amount to raw uint256.

    Example:

    .. code-block:: python

        assert convert_to_raw(Decimal("10.01"), 18) == 10_010_000_000_000_000_000
    """
    return int(Decimal(decimal_amount) * 10**decimals)


@dataclass(frozen=True, slots=True)
class TokenReference:
    """Token known by its address and decimals, without a chain connection.

    Used for price routing before a fork exists.
    """

    #: The EVM chain id where this token lives
    chain_id: int

    #: Checksummed ERC-20 address
    address: HexAddress

    #: Token symbol e.g. ``WETH``
    symbol: str

    #: Number of decimals
    decimals: int

    def convert_to_decimals(self, raw_amount: int) -> Decimal:
        return convert_to_decimals(raw_amount, self.decimals)

    def convert_to_raw(self, decimal_amount: Decimal) -> int:
        return convert_to_raw(decimal_amount, self.decimals)


@dataclass
class TokenDetails:
    """ERC-20 token Python presentation.

    - A helper class to work with ERC-20 tokens.

    - Read on-chain data, deal with token value decimal conversions.

    Example how to get aWETH details on a mainnet fork:

    .. code-block:: python

        aweth = fetch_erc20_details(web3, "0x030bA81f1c18d280636F32af80b9AAd02Cf0854e")
        assert aweth.symbol == "aWETH"
        assert aweth.decimals == 18
    """

    #: The underlying ERC-20 contract proxy class instance
    contract: Contract

    #: Token name e.g. ``Aave interest bearing WETH``
    name: Optional[str] = None

    #: Token symbol e.g. ``aWETH``
    symbol: Optional[str] = None

    #: Token supply as raw units
    total_supply: Optional[int] = None

    #: Number of decimals
    decimals: Optional[int] = None

    #: Extra metadata, e.g. related to caching this result
    extra_data: dict[str, Any] = field(default_factory=dict)

    def __eq__(self, other):
        """Token is the same if it's on the same chain and has the same contract address."""
        assert isinstance(other, TokenDetails)
        return (self.contract.address == other.contract.address) and (self.chain_id == other.chain_id)

    def __hash__(self):
        return hash((self.chain_id, self.contract.address))

    def __repr__(self):
        return f"<{self.name} ({self.symbol}) at {self.contract.address}, {self.decimals} decimals, on chain {self.chain_id}>"

    @cached_property
    def chain_id(self) -> int:
        """The EVM chain id where this token lives."""
        return self.contract.w3.eth.chain_id

    @cached_property
    def address(self) -> HexAddress:
        """The address of this token."""
        return self.contract.address

    def convert_to_decimals(self, raw_amount: int) -> Decimal:
        """Convert raw token units to decimals."""
        return convert_to_decimals(raw_amount, self.decimals)

    def convert_to_raw(self, decimal_amount: Decimal) -> int:
        """Convert decimalised token amount to raw uint256."""
        return convert_to_raw(decimal_amount, self.decimals)

    def fetch_raw_balance_of(self, address: HexAddress | str, block_identifier="latest") -> int:
        """Get an address token balance.

        :return:
            Raw token amount.
        """
        address = Web3.to_checksum_address(address)
        return self.contract.functions.balanceOf(address).call(block_identifier=block_identifier)

    def fetch_raw_allowance(self, owner: HexAddress | str, spender: HexAddress | str) -> int:
        """How much ``spender`` may move from ``owner``, raw units."""
        return self.contract.functions.allowance(
            Web3.to_checksum_address(owner),
            Web3.to_checksum_address(spender),
        ).call()

    @staticmethod
    def generate_cache_key(chain_id: int, address: str) -> str:
        """Generate a cache key for this token.

        :return:
            Human readable {chain_id}-{address}
        """
        assert type(chain_id) == int, f"Bad chain id: {chain_id}"
        assert type(address) == str
        assert address.startswith("0x"), f"Bad token address: {address}"
        return f"{chain_id}-{address.lower()}"


class TokenDetailError(Exception):
    """Cannot extract token details for an ERC-20 token for some reason."""


def fetch_erc20_details(
    web3: Web3,
    token_address: Union[HexAddress, str],
    contract_name="IERC20.json",
    cache: cachetools.Cache | None = DEFAULT_TOKEN_CACHE,
    chain_id: int = None,
) -> TokenDetails:
    """Read token details from on-chain data.

    Connect to Web3 node and do RPC calls to extract the token info.

    :param web3:
        Web3 instance

    :param token_address:
        ERC-20 contract address

    :param contract_name:
        Contract ABI file to use.

    :param cache:
        Use this cache for cache token detail calls.

        Set to ``None`` to disable the cache.

    :param chain_id:
        Chain id hint for the cache.

        If not given do ``eth_chainId`` RPC call to figure out.

    :raise TokenDetailError:
        If the address does not look like ERC-20

    :return:
        Token info
    """

    if not chain_id:
        chain_id = web3.eth.chain_id

    erc_20 = get_deployed_contract(web3, contract_name, token_address)

    key = TokenDetails.generate_cache_key(chain_id, token_address)

    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return TokenDetails(
                erc_20,
                cached["name"],
                cached["symbol"],
                cached["supply"],
                cached["decimals"],
                extra_data={"cached": True},
            )

    logger.info("Fetching uncached token, chain %s, address %s", chain_id, token_address)

    try:
        symbol = erc_20.functions.symbol().call()
        name = erc_20.functions.name().call()
        decimals = erc_20.functions.decimals().call()
        supply = erc_20.functions.totalSupply().call()
    except _call_missing_exceptions as e:
        raise TokenDetailError(f"Token {token_address} on chain {chain_id} does not look like ERC-20: {e}") from e

    token_details = TokenDetails(erc_20, name, symbol, supply, decimals, extra_data={"cached": False})
    if cache is not None:
        cache[key] = {
            "name": name,
            "symbol": symbol,
            "supply": supply,
            "decimals": decimals,
        }
    return token_details


def fetch_weth_details(web3: Web3, weth_address: HexAddress | str) -> TokenDetails:
    """Get WETH9 token details with ``deposit()`` for wrapping native currency.

    :param weth_address:
        Wrapped native token of the chain, see :py:class:`liquidity_swap.addresses.NetworkAddresses`
    """
    return fetch_erc20_details(web3, weth_address, contract_name="IWETH.json")

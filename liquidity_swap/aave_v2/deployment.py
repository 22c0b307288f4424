"""Aave v2 deployments."""

from dataclasses import dataclass
from typing import NamedTuple

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

from liquidity_swap.aave_v2.constants import ADDRESSES_PROVIDER_ABI, LENDING_POOL_ABI
from liquidity_swap.abi import get_deployed_contract
from liquidity_swap.token import TokenDetails, fetch_erc20_details


class AaveV2ReserveData(NamedTuple):
    # https://github.com/aave/protocol-v2/blob/master/contracts/protocol/libraries/types/DataTypes.sol

    #: Packed reserve configuration bitmap
    configuration: int

    #: Liquidity index, ray
    liquidity_index: int

    #: Variable borrow index, ray
    variable_borrow_index: int

    #: Current supply rate, ray
    current_liquidity_rate: int

    #: Current variable borrow rate, ray
    current_variable_borrow_rate: int

    #: Current stable borrow rate, ray
    current_stable_borrow_rate: int

    #: UNIX timestamp of the last update
    last_update_timestamp: int

    #: aToken we receive when depositing this reserve
    a_token_address: HexAddress

    #: Stable debt token
    stable_debt_token_address: HexAddress

    #: Variable debt token
    variable_debt_token_address: HexAddress

    #: Interest rate strategy
    interest_rate_strategy_address: HexAddress

    #: Reserve id
    id: int


@dataclass(frozen=True)
class AaveV2Deployment:
    """Describe Aave v2 deployment."""

    #: The Web3 instance for which all the contracts here are bound
    web3: Web3

    #: LendingPoolAddressesProvider contract proxy
    addresses_provider: Contract

    #: LendingPool contract proxy
    lending_pool: Contract

    def get_reserve_data(self, asset: HexAddress | str) -> AaveV2ReserveData:
        """Read the reserve state of the asset from the lending pool."""
        data = self.lending_pool.functions.getReserveData(Web3.to_checksum_address(asset)).call()
        configuration, *rest = data
        # ReserveConfigurationMap is a single field struct
        if isinstance(configuration, (tuple, list)):
            configuration = configuration[0]
        return AaveV2ReserveData(configuration, *rest)

    def get_a_token_address(self, asset: HexAddress | str) -> HexAddress:
        """Get the aToken address for the reserve."""
        return self.get_reserve_data(asset).a_token_address

    def fetch_a_token(self, asset: HexAddress | str) -> TokenDetails:
        """Get the aToken details for the reserve."""
        return fetch_erc20_details(self.web3, self.get_a_token_address(asset))


def fetch_deployment(web3: Web3, addresses_provider_address: HexAddress | str) -> AaveV2Deployment:
    """Resolve the Aave v2 lending pool through its addresses provider.

    Example:

    .. code-block:: python

        deployment = fetch_deployment(web3, "0xB53C1a33016B2DC2fF3653530bfF1848a515c8c5")
        aweth_address = deployment.get_a_token_address(weth.address)
    """
    addresses_provider = get_deployed_contract(web3, ADDRESSES_PROVIDER_ABI, addresses_provider_address)
    lending_pool_address = addresses_provider.functions.getLendingPool().call()
    lending_pool = get_deployed_contract(web3, LENDING_POOL_ABI, lending_pool_address)
    return AaveV2Deployment(
        web3=web3,
        addresses_provider=addresses_provider,
        lending_pool=lending_pool,
    )

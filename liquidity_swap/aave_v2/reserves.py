"""Aave v2 reserve list published by Aave.

Used to resolve a reserve by its symbol when it is not in our
:py:class:`liquidity_swap.addresses.NetworkAddresses` table.

Example data:

.. code-block:: json

    {
      "proto": [
        {
          "aTokenAddress": "0x028171bCA77440897B824Ca71D1c56caC55b68A3",
          "aTokenSymbol": "aDAI",
          "stableDebtTokenAddress": "0x778A13D3eeb110A4f7bb6529F99c000119a08E92",
          "variableDebtTokenAddress": "0x6C3c78838c761c6Ac7bE9F59fe808ea2A6E4379d",
          "symbol": "DAI",
          "address": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
          "decimals": 18
        }
      ]
    }
"""

import datetime
import logging

import requests
from eth_typing import HexAddress

from liquidity_swap.addresses import UnknownReserve
from liquidity_swap.token import TokenReference

logger = logging.getLogger(__name__)


#: Aave v2 mainnet reserve list
AAVE_ADDRESSES_URL = "https://aave.github.io/aave-addresses/mainnet.json"


def fetch_aave_reserve_list(
    market: str = "proto",
    url: str = AAVE_ADDRESSES_URL,
    timeout: datetime.timedelta = datetime.timedelta(seconds=30),
) -> list[dict]:
    """Download the list of reserves in an Aave v2 market.

    :param market:
        Market name, ``proto`` is the main market

    :raise UnknownReserve:
        If the market is not in the list

    :raise requests.HTTPError:
        If the list cannot be downloaded
    """
    logger.info("Fetching Aave reserve list %s", url)
    response = requests.get(url, timeout=timeout.total_seconds())
    response.raise_for_status()
    data = response.json()
    try:
        return data[market]
    except KeyError:
        raise UnknownReserve(f"Market {market} not in {url}, we have {list(data.keys())}")


def find_reserve_by_symbol(reserves: list[dict], symbol: str, chain_id: int) -> TokenReference:
    """Find a reserve by its symbol, case insensitive.

    :raise UnknownReserve:
        If no reserve matches
    """
    for reserve in reserves:
        if reserve["symbol"].upper() == symbol.upper():
            return TokenReference(
                chain_id=chain_id,
                address=HexAddress(reserve["address"]),
                symbol=reserve["symbol"],
                decimals=int(reserve["decimals"]),
            )
    raise UnknownReserve(f"Reserve {symbol} not found in the Aave reserve list")

"""Fetching ParaSwap price routes.

See `ParaSwap API documentation <https://developers.velora.xyz>`__ for more details.
"""

import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal
from pprint import pformat
from typing import Iterable

import requests
from eth_typing import HexAddress

from liquidity_swap.paraswap.api import ParaSwapQuoteError, get_paraswap_api_url, parse_response
from liquidity_swap.paraswap.constants import AAVE_PARTNER, DEFAULT_EXCLUDED_CONTRACT_METHODS, DEFAULT_EXCLUDED_DEXS
from liquidity_swap.token import TokenDetails, TokenReference


logger = logging.getLogger(__name__)


#: Price route keys that only bloat the logs
NOISY_ROUTE_KEYS = ("others",)

#: Price route keys we need to build and check the swap
REQUIRED_ROUTE_KEYS = ("srcAmount", "destAmount")


@dataclass(slots=True, frozen=True)
class ParaSwapQuote:
    """ParaSwap price route response.

    Contains the optimal route and pricing information for a swap.
    The quote is fetched once per run and never modified.

    Example response data:

    .. code-block:: python

        {"blockNumber": 12345678, "network": 1, "srcToken": "0x...", "srcDecimals": 18, "srcAmount": "10010000000000000000", "destToken": "0x...", "destDecimals": 18, "destAmount": "35000000000000000000000", "bestRoute": [...], "others": [...], "gasCostUSD": "5.93", "contractAddress": "0xDEF171Fe48CF0115B1d80b88dc8eAB59176FEe57", "contractMethod": "multiSwap"}
    """

    #: Token we are going to receive (token out)
    buy_token: TokenReference | TokenDetails

    #: Token we are losing (token in)
    sell_token: TokenReference | TokenDetails

    #: Raw priceRoute data from ParaSwap /prices endpoint
    #:
    #: This is passed to the /transactions endpoint to build the swap tx.
    data: dict

    def get_raw_sell_amount(self) -> int:
        """Source amount in raw units, ``srcAmount``."""
        return int(self.data["srcAmount"])

    def get_raw_buy_amount(self) -> int:
        """Destination amount in raw units, ``destAmount``."""
        return int(self.data["destAmount"])

    def get_sell_amount(self) -> Decimal:
        """Get the sell amount from the quote in human-readable decimals."""
        return self.sell_token.convert_to_decimals(self.get_raw_sell_amount())

    def get_buy_amount(self) -> Decimal:
        """Get the buy amount from the quote in human-readable decimals."""
        return self.buy_token.convert_to_decimals(self.get_raw_buy_amount())

    def get_price(self) -> Decimal:
        """Get the price implied by the quote (buy amount / sell amount).

        :return:
            Price as buy_token per sell_token
        """
        return self.get_buy_amount() / self.get_sell_amount()

    def get_raw_price_with_slippage(self, slippage_bps: int) -> int:
        """Get the minimum destination amount we accept, raw units.

        Legacy ParaSwap API versions return ``priceWithSlippage`` in the route.
        Otherwise it is calculated from ``destAmount``.

        :param slippage_bps:
            Allowed slippage in basis points, used if the route has no ``priceWithSlippage``
        """
        price_with_slippage = self.data.get("priceWithSlippage")
        if price_with_slippage is not None:
            return int(price_with_slippage)
        return self.get_raw_buy_amount() * (10_000 - slippage_bps) // 10_000

    def get_loggable_route(self) -> dict:
        """Price route without the alternative routes in ``others``."""
        return {k: v for k, v in self.data.items() if k not in NOISY_ROUTE_KEYS}

    def pformat(self) -> str:
        """Pretty format the quote data for logging."""
        summary = {
            "Buy": self.buy_token.symbol,
            "Sell": self.sell_token.symbol,
            "Price": str(self.get_price()),
            "Buy amount": str(self.get_buy_amount()),
            "Sell amount": str(self.get_sell_amount()),
            "Contract method": self.data.get("contractMethod"),
        }
        return pformat(summary)


def fetch_paraswap_quote(
    buy_token: TokenReference | TokenDetails,
    sell_token: TokenReference | TokenDetails,
    amount_in: Decimal,
    user_address: HexAddress | str | None = None,
    exclude_dexs: Iterable[str] = DEFAULT_EXCLUDED_DEXS,
    exclude_contract_methods: Iterable[str] = DEFAULT_EXCLUDED_CONTRACT_METHODS,
    partner: str | None = AAVE_PARTNER,
    api_url: str | None = None,
    api_timeout: datetime.timedelta = datetime.timedelta(seconds=30),
) -> ParaSwapQuote:
    """Fetch a ParaSwap price route for selling an exact amount.

    This calls the ParaSwap /prices endpoint to get the optimal route
    and pricing for a swap. There is no retry: a failure aborts the caller.

    Example:

    .. code-block:: python

        from decimal import Decimal
        from liquidity_swap.addresses import MAINNET_DAI, MAINNET_WETH
        from liquidity_swap.paraswap.quote import fetch_paraswap_quote

        quote = fetch_paraswap_quote(
            buy_token=MAINNET_DAI,
            sell_token=MAINNET_WETH,
            amount_in=Decimal("10.01"),
        )

        print(f"Price: {quote.get_price()}")
        print(f"Will receive: {quote.get_buy_amount()} DAI")

    :param buy_token:
        Token to receive (destination token)

    :param sell_token:
        Token to sell (source token)

    :param amount_in:
        Amount of sell_token to swap (human-readable decimals)

    :param user_address:
        Address that will execute the swap

    :param exclude_dexs:
        DEX names ParaSwap must not route through

    :param exclude_contract_methods:
        Augustus functions ParaSwap must not use

    :param partner:
        Partner name for analytics tracking

    :param api_url:
        Override ParaSwap API base URL

    :param api_timeout:
        API request timeout

    :return:
        Quote containing route and pricing information

    :raise ParaSwapQuoteError:
        If the API returns an error
    """
    chain_id = buy_token.chain_id
    assert chain_id == sell_token.chain_id, "Tokens must be on the same chain"
    assert isinstance(amount_in, Decimal), f"Give amounts in decimal, got {type(amount_in)}"

    final_url = f"{get_paraswap_api_url(api_url)}/prices"

    params = {
        "srcToken": sell_token.address,
        "srcDecimals": sell_token.decimals,
        "destToken": buy_token.address,
        "destDecimals": buy_token.decimals,
        "amount": str(sell_token.convert_to_raw(amount_in)),
        "side": "SELL",
        "network": chain_id,
    }

    if user_address:
        params["userAddress"] = user_address

    if partner:
        params["partner"] = partner

    exclude_dexs = list(exclude_dexs or [])
    if exclude_dexs:
        params["excludeDEXS"] = ",".join(exclude_dexs)

    exclude_contract_methods = list(exclude_contract_methods or [])
    if exclude_contract_methods:
        params["excludeContractMethods"] = ",".join(exclude_contract_methods)

    logger.info("Fetching ParaSwap quote: %s -> %s, amount: %s", sell_token.symbol, buy_token.symbol, amount_in)
    logger.debug("ParaSwap quote request: %s params=%s", final_url, params)

    response = requests.get(final_url, params=params, timeout=api_timeout.total_seconds())
    data = parse_response(response, ParaSwapQuoteError, {"endpoint": final_url, "params": params})

    # API returns {"priceRoute": {...}}, extract the priceRoute
    price_route = data.get("priceRoute", data)

    # The route itself may carry the error
    if "message" in price_route:
        raise ParaSwapQuoteError(f"Error getting priceRoute: {price_route['message']}")

    missing = [key for key in REQUIRED_ROUTE_KEYS if key not in price_route]
    if missing:
        raise ParaSwapQuoteError(f"priceRoute is missing {missing}: {pformat(price_route)}")

    quote = ParaSwapQuote(
        buy_token=buy_token,
        sell_token=sell_token,
        data=price_route,
    )
    logger.info("priceRoute:\n%s", pformat(quote.get_loggable_route()))
    return quote

"""ParaSwap swap transaction building.

See `ParaSwap API documentation <https://developers.velora.xyz>`__ for more details.
"""

import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal
from pprint import pformat

import requests
from eth_typing import HexAddress
from hexbytes import HexBytes

from liquidity_swap.paraswap.api import ParaSwapTransactionBuildError, get_augustus_swapper, get_paraswap_api_url, parse_response
from liquidity_swap.paraswap.augustus import get_augustus_from_amount_offset
from liquidity_swap.paraswap.constants import AAVE_PARTNER, AUGUSTUS_SWAPPER
from liquidity_swap.paraswap.quote import ParaSwapQuote
from liquidity_swap.token import TokenDetails, TokenReference


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ParaSwapSwapTransaction:
    """ParaSwap swap transaction data.

    Contains all information needed to execute a swap on Augustus Swapper,
    directly or through the Aave liquidity swap adapter.
    """

    #: Token we are going to receive (token out)
    buy_token: TokenReference | TokenDetails

    #: Token we are losing (token in)
    sell_token: TokenReference | TokenDetails

    #: Amount of sell_token to spend, raw units
    raw_amount_in: int

    #: Minimum amount of buy_token to receive, raw units
    raw_min_amount_out: int

    #: Augustus Swapper contract address
    to: HexAddress

    #: Raw calldata to execute on Augustus Swapper
    calldata: HexBytes

    #: ETH value to send (0 for ERC-20 swaps)
    value: int

    #: Original price route from quote
    price_route: dict

    @property
    def amount_in(self) -> Decimal:
        """Amount of sell_token to spend (human-readable decimals)"""
        return self.sell_token.convert_to_decimals(self.raw_amount_in)

    @property
    def min_amount_out(self) -> Decimal:
        """Minimum amount of buy_token to receive (human-readable decimals)"""
        return self.buy_token.convert_to_decimals(self.raw_min_amount_out)

    def get_from_amount_offset(self) -> int:
        """Byte offset of ``fromAmount`` in the calldata.

        :raise UnknownAugustusFunction:
            If the calldata calls an Augustus function we do not know
        """
        return get_augustus_from_amount_offset(self.calldata)


def fetch_paraswap_swap_transaction(
    quote: ParaSwapQuote,
    user_address: HexAddress | str,
    slippage_bps: int = 100,
    partner: str | None = AAVE_PARTNER,
    ignore_checks: bool = True,
    api_url: str | None = None,
    api_timeout: datetime.timedelta = datetime.timedelta(seconds=30),
) -> ParaSwapSwapTransaction:
    """Build a ParaSwap swap transaction from a quote.

    This calls the ParaSwap /transactions endpoint to build the actual
    swap transaction calldata that can be executed on Augustus Swapper.

    Example:

    .. code-block:: python

        quote = fetch_paraswap_quote(buy_token=dai, sell_token=weth, amount_in=Decimal("10.01"))

        swap_tx = fetch_paraswap_swap_transaction(
            quote=quote,
            user_address=hot_wallet.address,
            slippage_bps=100,  # 1% slippage
        )

    :param quote:
        Quote from :py:func:`liquidity_swap.paraswap.quote.fetch_paraswap_quote`

    :param user_address:
        Address that will execute the swap

    :param slippage_bps:
        Allowed slippage in basis points (e.g., 100 = 1%).

        Ignored if the route carries ``priceWithSlippage``.

    :param partner:
        Partner name for analytics tracking

    :param ignore_checks:
        Do not let ParaSwap check balances and allowances of ``user_address``.

        The wallet does not have any balance yet when the transaction is built.

    :param api_url:
        Override ParaSwap API base URL

    :param api_timeout:
        API request timeout

    :return:
        Swap transaction data ready for execution

    :raise ParaSwapTransactionBuildError:
        If the API returns an error
    """
    chain_id = quote.buy_token.chain_id
    final_url = f"{get_paraswap_api_url(api_url)}/transactions/{chain_id}"

    raw_min_amount_out = quote.get_raw_price_with_slippage(slippage_bps)

    body = {
        "srcToken": quote.sell_token.address,
        "srcDecimals": quote.sell_token.decimals,
        "destToken": quote.buy_token.address,
        "destDecimals": quote.buy_token.decimals,
        "srcAmount": quote.data["srcAmount"],
        "destAmount": str(raw_min_amount_out),
        "priceRoute": quote.data,
        "userAddress": user_address,
    }

    if partner:
        body["partner"] = partner

    params = {}
    if ignore_checks:
        params["ignoreChecks"] = "true"
        params["ignoreGasEstimate"] = "true"

    logger.info(
        "Building ParaSwap swap tx: %s -> %s, min amount out raw: %d",
        quote.sell_token.symbol,
        quote.buy_token.symbol,
        raw_min_amount_out,
    )
    logger.debug("ParaSwap tx request: %s body=%s params=%s", final_url, pformat(body), params)

    response = requests.post(
        final_url,
        json=body,
        params=params,
        timeout=api_timeout.total_seconds(),
    )

    data = parse_response(response, ParaSwapTransactionBuildError, {"endpoint": final_url, "params": params})
    logger.info("txParams: to %s, data %d bytes", data.get("to"), len(HexBytes(data.get("data", "0x"))))

    if not data.get("to") or not data.get("data"):
        raise ParaSwapTransactionBuildError(f"Error getting txParams, response lacks to/data: {pformat(data)}")

    if chain_id in AUGUSTUS_SWAPPER and data["to"].lower() != get_augustus_swapper(chain_id).lower():
        logger.warning("ParaSwap returned an unknown Augustus address %s on chain %d", data["to"], chain_id)

    return ParaSwapSwapTransaction(
        buy_token=quote.buy_token,
        sell_token=quote.sell_token,
        raw_amount_in=quote.get_raw_sell_amount(),
        raw_min_amount_out=raw_min_amount_out,
        to=HexAddress(data["to"]),
        calldata=HexBytes(data["data"]),
        value=int(data.get("value", "0")),
        price_route=quote.data,
    )

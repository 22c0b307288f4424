"""ParaSwap API utilities."""

from pprint import pformat

import requests
from eth_typing import HexAddress

from liquidity_swap.paraswap.constants import AUGUSTUS_SWAPPER, PARASWAP_API_URL


class ParaSwapAPIError(Exception):
    """Error returned by ParaSwap API."""


class ParaSwapQuoteError(ParaSwapAPIError):
    """The ``/prices`` endpoint did not give us a price route."""


class ParaSwapTransactionBuildError(ParaSwapAPIError):
    """The ``/transactions`` endpoint did not give us a swap transaction."""


def get_paraswap_api_url(api_url: str | None = None) -> str:
    """Get ParaSwap API base URL.

    :param api_url:
        Override, e.g. from ``PARASWAP_API`` environment variable

    :return:
        ParaSwap API endpoint URL without the trailing slash
    """
    return (api_url or PARASWAP_API_URL).rstrip("/")


def get_augustus_swapper(chain_id: int) -> HexAddress:
    """Get Augustus Swapper contract address for a chain.

    :raise KeyError:
        If chain is not supported by ParaSwap
    """
    try:
        return AUGUSTUS_SWAPPER[chain_id]
    except KeyError:
        raise KeyError(f"ParaSwap does not support chain ID {chain_id}. Supported chains: {list(AUGUSTUS_SWAPPER.keys())}")


def get_error_message(data: dict) -> str | None:
    """Extract the error message from a ParaSwap JSON response.

    ParaSwap signals a logical failure with a ``message`` field.
    Newer API versions use ``error`` instead.

    :return:
        Error message, or ``None`` if the response looks like a success
    """
    if not isinstance(data, dict):
        return None
    return data.get("message") or data.get("error")


def parse_response(
    response: requests.Response,
    exception_class: type[ParaSwapAPIError],
    context: dict,
) -> dict:
    """Decode a ParaSwap API response or raise.

    :param exception_class:
        Which error to raise, depending on the endpoint

    :param context:
        Request parameters included in the exception message

    :raise ParaSwapAPIError:
        On HTTP errors, non-JSON payload or a ``message`` error field
    """
    try:
        data = response.json()
    except ValueError as e:
        raise exception_class(f"ParaSwap returned non-JSON response: {response.status_code} {response.text}\nRequest: {pformat(context)}") from e

    error_message = get_error_message(data)
    if error_message:
        raise exception_class(f"ParaSwap error: {error_message}\nRequest: {pformat(context)}")

    try:
        response.raise_for_status()
    except requests.HTTPError as e:
        raise exception_class(f"ParaSwap HTTP error: {response.status_code} {response.text}\nRequest: {pformat(context)}") from e

    return data

"""Augustus Swapper calldata introspection.

When swapping the whole collateral balance, the liquidity swap adapter
overwrites the ``fromAmount`` argument inside the Augustus calldata with the
actual aToken balance at execution time. For this it needs the byte offset
of ``fromAmount`` in the calldata, which depends on the called Augustus function.
"""

from hexbytes import HexBytes


class UnknownAugustusFunction(ValueError):
    """Calldata does not call an Augustus swap function we know."""


#: Function selector -> byte offset of ``fromAmount``
#:
#: Offsets are 4 selector bytes + n 32 byte words.
AUGUSTUS_FROM_AMOUNT_OFFSETS: dict[str, int] = {
    # Augustus V3 multiSwap
    "0xda8567c8": 4 + 3 * 32,
    # Augustus V4 swapOnUniswap
    "0x58b9d179": 4 + 0 * 32,
    # Augustus V4 swapOnUniswapFork
    "0x0863b7ac": 4 + 2 * 32,
    # Augustus V4 multiSwap
    "0x8f00eccb": 4 + 2 * 32,
    # Augustus V4 megaSwap
    "0xec1d21dd": 4 + 2 * 32,
    # Augustus V5 multiSwap
    "0xa94e78ef": 4 + 2 * 32,
    # Augustus V5 megaSwap
    "0x46c67b6d": 4 + 2 * 32,
    # Augustus V5 simpleSwap
    "0x54e3f31b": 4 + 2 * 32,
}


def get_function_selector(calldata: bytes | str) -> str:
    """Get 0x prefixed lowercase 4 byte selector of the calldata."""
    data = HexBytes(calldata)
    assert len(data) >= 4, f"Calldata too short: {data.hex()}"
    return "0x" + bytes(data[0:4]).hex()


def get_augustus_from_amount_offset(calldata: bytes | str) -> int:
    """Get the byte offset of ``fromAmount`` in Augustus calldata.

    Example:

    .. code-block:: python

        offset = get_augustus_from_amount_offset(swap_tx.calldata)
        adapter.functions.swapAndDeposit(..., offset, swap_tx.calldata, ...)

    :param calldata:
        Augustus calldata from ParaSwap ``/transactions`` endpoint

    :raise UnknownAugustusFunction:
        If the function selector is not a known Augustus swap function
    """
    selector = get_function_selector(calldata)
    try:
        return AUGUSTUS_FROM_AMOUNT_OFFSETS[selector]
    except KeyError:
        raise UnknownAugustusFunction(f"Unrecognized function selector for Augustus: {selector}")


def read_from_amount(calldata: bytes | str) -> int:
    """Read the ``fromAmount`` uint256 encoded in Augustus calldata."""
    data = HexBytes(calldata)
    offset = get_augustus_from_amount_offset(data)
    return int.from_bytes(data[offset : offset + 32], "big")

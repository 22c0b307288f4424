"""Revert reason extraction.

Further reading

- `Web3.py Patterns: Revert Reason Lookups <https://snakecharmers.ethereum.org/web3py-revert-reason-parsing/>`_

"""

import logging
from typing import Union

from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError

logger = logging.getLogger(__name__)


def fetch_transaction_revert_reason(
    web3: Web3,
    tx_hash: Union[HexBytes, str],
    unknown_error_message="<could not extract the revert reason>",
) -> str:
    """Gets a transaction revert reason.

    Ethereum nodes do not store the transaction failure reason in any database or index.
    We replay the transaction against the current state of the fork.
    The revert reason might be wrong if the state has moved on since.

    :param web3: Our JSON-RPC connection

    :param tx_hash: Transaction hash of which reason we extract by simulation.

    :param unknown_error_message:
        Return this message if the revert reason extraction fails.

    :return: The revert reason of the placeholder message if we could not extract the reason somehow.
    """

    tx = web3.eth.get_transaction(tx_hash)

    replay_tx = {
        "to": tx["to"],
        "from": tx["from"],
        "value": tx["value"],
        "data": tx.get("input", tx.get("data")),
        "gas": tx["gas"],
    }

    try:
        web3.eth.call(replay_tx)
    except ContractLogicError as e:
        return e.args[0]
    except ValueError as e:
        logger.debug("Revert exception result is: %s", e)
        data = e.args[0]
        if type(data) == str:
            return data
        return data.get("message", unknown_error_message)

    logger.error("Transaction %s succeeded when we tried to fetch its revert reason, maybe the fork state moved on", HexBytes(tx_hash).hex())
    return unknown_error_message

"""Broadcasting transactions and waiting for their receipts.

Fork runs submit one transaction at a time: each transaction must be
mined before the next one is signed and sent.
"""

import datetime
import logging

from hexbytes import HexBytes
from web3 import Web3
from web3.types import TxReceipt

from liquidity_swap.hotwallet import HotWallet
from liquidity_swap.revert_reason import fetch_transaction_revert_reason
from liquidity_swap.tx import PendingTransaction

logger = logging.getLogger(__name__)


class ChainTransactionFailed(Exception):
    """A transaction was mined, but reverted."""

    def __init__(self, msg: str, tx_hash: HexBytes, revert_reason: str):
        super().__init__(msg)
        self.tx_hash = tx_hash
        self.revert_reason = revert_reason


def assert_transaction_success_with_explanation(
    web3: Web3,
    tx_hash: HexBytes,
    timeout: datetime.timedelta = datetime.timedelta(minutes=2),
) -> TxReceipt:
    """Checks if a transaction succeeds and give a verbose explanation why not.

    Example usage:

    .. code-block:: python

        tx_hash = web3.eth.send_raw_transaction(signed_tx.raw_transaction)
        assert_transaction_success_with_explanation(web3, tx_hash)

    :param web3:
        Web3 instance

    :param tx_hash:
        A transaction (mined/not mined) we want to make sure has succeeded.

    :raise ChainTransactionFailed:
        With the revert reason replayed from the chain

    :return:
        Output transaction receipt if no error is raised
    """
    receipt = web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout.total_seconds())
    if receipt["status"] == 0:
        revert_reason = fetch_transaction_revert_reason(web3, tx_hash)
        raise ChainTransactionFailed(
            f"Transaction {HexBytes(tx_hash).hex()} failed\nRevert reason: {revert_reason}",
            tx_hash=HexBytes(tx_hash),
            revert_reason=revert_reason,
        )
    return receipt


def execute_pending_transactions(
    web3: Web3,
    hot_wallet: HotWallet,
    txs: list[PendingTransaction],
) -> list[TxReceipt]:
    """Sign, broadcast and confirm a transaction plan in order.

    - Every transaction is mined before the next one is signed,
      because the gas estimation of later steps needs the state of the earlier steps

    - The first failure aborts the rest of the plan

    :param txs:
        Ordered transaction plan

    :raise ChainTransactionFailed:
        On the first reverted transaction

    :return:
        Receipts in the same order as the plan
    """
    receipts = []
    for idx, pending in enumerate(txs, start=1):
        logger.info("Executing %d/%d: %s", idx, len(txs), pending.description)
        signed_tx = pending.sign(hot_wallet)
        tx_hash = web3.eth.send_raw_transaction(signed_tx.raw_transaction)
        receipt = assert_transaction_success_with_explanation(web3, tx_hash)
        logger.info("Transaction %s included in block %d, gas used %d", tx_hash.hex(), receipt["blockNumber"], receipt["gasUsed"])
        receipts.append(receipt)
    return receipts

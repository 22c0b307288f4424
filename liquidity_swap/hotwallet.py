"""Hot wallet management utilities.

- Create throwaway wallets for fork test runs

- Sign transactions with manual nonce management

"""

import logging
import secrets
from typing import NamedTuple, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract.contract import ContractFunction

from liquidity_swap.tx import get_tx_broadcast_data

logger = logging.getLogger(__name__)


class SignedTransactionWithNonce(NamedTuple):
    """A better signed transaction structure.

    Helper class to pass around the used nonce when signing txs from the wallet.

    - Retains more information about the transaction source,
      to allow us to diagnose broadcasting failures better
    """

    #: Bytes to broadcast
    raw_transaction: HexBytes

    #: Transaction hash
    hash: HexBytes

    #: What was the source nonce for this transaction
    nonce: int

    #: What was the source address for this transaction
    address: str

    #: Unencoded transaction data as a dict.
    #:
    #: If broadcast fails, retain the source so we can debug the cause,
    #: like the original gas parameters.
    source: Optional[dict] = None

    def __repr__(self):
        return f"<SignedTransactionWithNonce hash:{self.hash.hex()} nonce:{self.nonce}>"


class HotWallet:
    """Hot wallet for signing transactions.

    - A hot wallet maintains an plain text private key of an Ethereum address in the process memory
      using :py:class:`eth_account.signers.local.LocalAccount` and nonce counter.

    - Fork test runs create a fresh wallet with :py:meth:`create_random` and never persist the key.

    Example:

    .. code-block:: python

        hot_wallet = HotWallet.create_random()
        fork.fund_account(hot_wallet.address)
        hot_wallet.sync_nonce(web3)

        signed_tx = hot_wallet.sign_bound_call_with_new_nonce(weth.functions.deposit(), value=10**18)
        tx_hash = web3.eth.send_raw_transaction(signed_tx.raw_transaction)

    .. note ::

        This class is not thread safe. If multiple threads try to sign transactions
        at the same time, nonce tracking may be lost.
    """

    def __init__(self, account: LocalAccount):
        """Create a hot wallet from a local account."""
        self.account = account
        self.current_nonce: Optional[int] = None

    def __repr__(self):
        return f"<Hot wallet {self.account.address}>"

    @property
    def address(self) -> HexAddress:
        """Ethereum address of the wallet."""
        return self.account.address

    def sync_nonce(self, web3: Web3):
        """Initialise the current nonce from the on-chain data."""
        self.current_nonce = web3.eth.get_transaction_count(self.account.address)
        logger.info("Synced nonce for %s to %d", self.account.address, self.current_nonce)

    def allocate_nonce(self) -> int:
        """Get the next free available nonce to be used with a transaction.

        Increase the nonce counter
        """
        assert self.current_nonce is not None, f"Nonce is not yet synced from the blockchain: {self}"
        nonce = self.current_nonce
        self.current_nonce += 1
        return nonce

    def sign_transaction_with_new_nonce(self, tx: dict) -> SignedTransactionWithNonce:
        """Signs a transaction and allocates a nonce for it.

        :param tx:
            Ethereum transaction data as a dict.
            This is modified in-place to include nonce.

        :return:
            A transaction payload and nonce with used to generate this transaction.
        """
        assert type(tx) == dict
        assert "nonce" not in tx
        tx["nonce"] = self.allocate_nonce()
        _signed = self.account.sign_transaction(tx)

        return SignedTransactionWithNonce(
            raw_transaction=get_tx_broadcast_data(_signed),
            hash=HexBytes(_signed.hash),
            nonce=tx["nonce"],
            source=tx,
            address=self.address,
        )

    def sign_bound_call_with_new_nonce(
        self,
        func: ContractFunction,
        tx_params: dict | None = None,
        value: int | None = None,
    ) -> SignedTransactionWithNonce:
        """Signs a bound Web3 Contract call.

        Gas limit is estimated by the node unless given in ``tx_params``.
        Gas price fields are filled by web3.py from the node.

        Example:

        .. code-block:: python

            bound_func = aweth.functions.approve(adapter.address, amount)
            signed_tx = hot_wallet.sign_bound_call_with_new_nonce(bound_func)
            web3.eth.send_raw_transaction(signed_tx.raw_transaction)

        :param func:
            Web3 contract function that has its arguments bound

        :param tx_params:
            Transaction parameters like `gas`

        :param value:
            Attached native currency, raw units

        :return:
            A signed transaction with debugging details like used nonce.
        """
        assert isinstance(func, ContractFunction)

        if tx_params is None:
            tx_params = {}

        tx_params["from"] = self.address

        if "chainId" not in tx_params:
            tx_params["chainId"] = func.w3.eth.chain_id

        if value:
            # Must be set before the gas estimation of payable functions
            tx_params["value"] = value

        tx = func.build_transaction(tx_params)
        return self.sign_transaction_with_new_nonce(tx)

    @staticmethod
    def from_private_key(key: str) -> "HotWallet":
        """Create a hot wallet from a private key that is passed in as a hex string.

        :param key: 0x prefixed hex string
        :return: Ready to go hot wallet account
        """
        assert type(key) == str, f"Expected private key as string, got {type(key)}"
        assert key.startswith("0x"), f"This system assumes private keys are prefixed with 0x, your key starts with {key[0:8]}..."
        account = Account.from_key(key)
        return HotWallet(account)

    @staticmethod
    def create_random() -> "HotWallet":
        """Create an ephemeral wallet with a random private key.

        The key only lives in the process memory.
        """
        wallet = HotWallet.from_private_key("0x" + secrets.token_hex(32))
        logger.info("Created wallet for address %s", wallet.address)
        return wallet

"""Transaction building utilities."""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from eth_account.datastructures import SignedTransaction
from hexbytes import HexBytes
from web3.contract.contract import ContractFunction

if TYPE_CHECKING:
    from liquidity_swap.hotwallet import HotWallet, SignedTransactionWithNonce


@dataclass(slots=True, frozen=True)
class PendingTransaction:
    """One not-yet-signed transaction in an ordered transaction plan.

    Transaction builders, like :py:class:`liquidity_swap.aave_v2.tx_builder.LendingPoolTxBuilder`,
    return a list of these. Each entry can be signed and broadcast on its own,
    but the list must be executed in order, each one confirmed before the next,
    because later steps depend on the state changes of earlier ones
    (e.g. ``approve()`` before ``deposit()``).
    """

    #: Bound contract call
    func: ContractFunction

    #: Human readable step name for logging
    description: str

    #: Explicit gas limit.
    #:
    #: If not given, the node estimates the gas.
    gas_limit: int | None = None

    #: Native currency attached to the call, raw units
    value: int | None = None

    def __repr__(self):
        return f"<PendingTransaction {self.description}: {self.func.fn_name}() on {self.func.address}>"

    def get_function_name(self) -> str:
        return self.func.fn_name

    def sign(self, hot_wallet: "HotWallet") -> "SignedTransactionWithNonce":
        """Sign using the next nonce of the hot wallet."""
        tx_params = {}
        if self.gas_limit is not None:
            tx_params["gas"] = self.gas_limit
        return hot_wallet.sign_bound_call_with_new_nonce(
            self.func,
            tx_params=tx_params,
            value=self.value,
        )


def get_tx_broadcast_data(signed_tx: SignedTransaction) -> HexBytes:
    """Get raw transaction bytes with compatibility for attribute name changes.

    eth_account changed ``rawTransaction`` to ``raw_transaction`` in newer versions.

    :param signed_tx:
        Signed transaction object from SignedTransaction | SignedTransactionWithNonce

    :return:
        Raw transaction bytes ready for broadcasting to the network

    :raises AttributeError:
        If the signed transaction object has neither attribute
    """
    if hasattr(signed_tx, "raw_transaction"):
        return signed_tx.raw_transaction
    elif hasattr(signed_tx, "rawTransaction"):
        return signed_tx.rawTransaction
    else:
        raise AttributeError(f"SignedTransaction object has neither 'raw_transaction' nor 'rawTransaction' attribute. Available attributes: {dir(signed_tx)}")

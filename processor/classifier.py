"""Transaction classification.

Each transaction's inputs and outputs are tagged with the wallet that owns
their address, and a representation is derived from that ownership:

- sender: wallet of the first owned input
- recipient: wallet of the first owned output not belonging to the sender
- fee: sum of inputs minus sum of outputs
- amount: value moving to other parties than the sender, less value the
  sender did not fund itself
- type: internal / outgoing / incoming / orphaned from sender and recipient

Transactions with inputs from several wallets only credit the first one as
sender, and labels always hold a single entry.
"""
import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .models import (
    EXTERNAL_LABEL,
    InOutput,
    Representation,
    Transaction,
    TransactionDetails,
    TransferType,
    WalletRef,
)

logger = logging.getLogger(__name__)


def sum_amounts(entries: Iterable[InOutput]) -> float:
    return sum(entry.amount for entry in entries)


def transfer_type(sender: Optional[WalletRef], recipient: Optional[WalletRef]) -> TransferType:
    if sender is not None:
        return TransferType.INTERNAL if recipient is not None else TransferType.OUTGOING
    return TransferType.INCOMING if recipient is not None else TransferType.ORPHANED


def _label(node: Optional[WalletRef]) -> str:
    if node is None or node.label is None:
        return EXTERNAL_LABEL
    return node.label


def build_representation(details: TransactionDetails) -> Representation:
    """Derive the representation of an annotated transaction."""
    inputs, outputs = details.inputs, details.outputs

    sender = next((entry.wallet for entry in inputs if entry.wallet is not None), None)
    sender_id = sender.id if sender is not None else None
    recipient = next(
        (entry.wallet for entry in outputs if entry.wallet is not None and entry.wallet.id != sender_id),
        None
    )

    inputs_value = sum_amounts(inputs)
    outputs_value = sum_amounts(outputs)

    def foreign(entry: InOutput) -> bool:
        # Without a sender only owned entries count, i.e. what the user received
        if sender is None:
            return entry.wallet is not None
        return entry.wallet is None or entry.wallet.id != sender_id

    amount = sum_amounts(o for o in outputs if foreign(o)) - sum_amounts(i for i in inputs if foreign(i))

    # Money moved between the user's own wallets only
    if (sender is not None and recipient is None and outputs and
            all(entry.wallet is not None for entry in inputs) and
            all(entry.wallet is not None for entry in outputs)):
        recipient = outputs[0].wallet
        amount = outputs_value

    return Representation(
        fee=inputs_value - outputs_value,
        sender_labels=[_label(sender)],
        recipient_labels=[_label(recipient)],
        type=transfer_type(sender, recipient),
        amount=amount
    )


class TransactionClassifier:
    """Annotates transactions with wallet ownership and computes their representation."""

    def __init__(self, store) -> None:
        self.store = store

    async def _wallet_info(self, entry: InOutput) -> Optional[WalletRef]:
        if not entry.node_id:
            return None
        address = await self.store.get_address(entry.node_id)
        if address is None or not address.wallet_id:
            return None
        wallet = await self.store.get_wallet(address.wallet_id)
        if wallet is None:
            return None
        return WalletRef(id=wallet.id, label=wallet.label)

    async def annotate(self, transaction: Transaction, address_ids: Dict[str, str]) -> Transaction:
        """Return a copy of the transaction with ``nodeId`` and ``wallet`` set on every entry.

        Lookups for the entries of one transaction run concurrently. The first
        failing lookup cancels the others.
        """
        details = transaction.details.model_copy(deep=True)
        entries = details.entries()
        for entry in entries:
            entry.node_id = address_ids.get(entry.note)

        lookups = [asyncio.ensure_future(self._wallet_info(entry)) for entry in entries]
        try:
            wallets = await asyncio.gather(*lookups)
        except BaseException:
            for lookup in lookups:
                lookup.cancel()
            raise
        for entry, wallet in zip(entries, wallets):
            entry.wallet = wallet

        return transaction.model_copy(update={'details': details})

    async def classify(self, transactions: List[Transaction], address_ids: Dict[str, str],
                       updated_at: datetime) -> List[Transaction]:
        """Annotate and classify transactions one after another."""
        logger.debug(f"Connecting nodes of {len(transactions)} transactions")
        classified = []
        for transaction in transactions:
            annotated = await self.annotate(transaction, address_ids)
            representation = build_representation(annotated.details)
            classified.append(annotated.model_copy(update={
                'representation': representation,
                'updated_at': updated_at
            }))
            logger.debug(
                f"Transaction {transaction.id} is {representation.type.value}: "
                f"amount={representation.amount}, fee={representation.fee}"
            )
        return classified

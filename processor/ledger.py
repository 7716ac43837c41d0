"""Wallet derivation bookkeeping.

Every sequenced address seen in a batch moves its wallet's ``lastUsed`` index
for the address's chain up to the address's derivation order. The index never
moves down.
"""
import logging
from typing import Dict, Iterable, List

from .exceptions import InvariantError
from .models import Address, Transaction, UNSEQUENCED_ORDER, Wallet

logger = logging.getLogger(__name__)


class WalletLedgerUpdater:
    """Advances ``lastUsed`` on private copies of the batch's wallets."""

    def __init__(self, addresses: Iterable[Address], wallets: Iterable[Wallet]) -> None:
        self._addresses = {record.address: record for record in addresses}
        self.wallets: Dict[str, Wallet] = {
            wallet.id: wallet.model_copy(deep=True) for wallet in wallets
        }

    def update(self, address: str) -> bool:
        """Advance the owning wallet for one address string.

        Returns:
            True if the address is sequenced and was applied, False if skipped

        Raises:
            InvariantError: If the address or its wallet is not part of the batch,
                or the address lacks its chain or order
        """
        record = self._addresses.get(address)
        if record is None:
            raise InvariantError(f"Address {address} was not resolved for this batch")

        params = record.derivation_params
        if params is not None and params.order == UNSEQUENCED_ORDER:
            logger.debug(f"Skipping derivation param update for single address {address}")
            return False

        if params is None or params.chain is None or params.order is None:
            raise InvariantError(f"Address {record.id} has no derivation chain or order")

        wallet = self.wallets.get(record.wallet_id)
        if wallet is None:
            raise InvariantError(
                f"Wallet {record.wallet_id} of address {record.id} was not resolved for this batch"
            )

        state = wallet.derivation_params.for_chain(params.chain)
        state.last_used = max(state.last_used, params.order)
        logger.debug(
            f"Wallet {wallet.id} {params.chain.value} lastUsed is now {state.last_used}"
        )
        return True

    def update_transactions(self, transactions: Iterable[Transaction],
                            address_ids: Dict[str, str]) -> List[Wallet]:
        """Apply every known input and output address, one transaction after another."""
        for transaction in transactions:
            for entry in transaction.details.entries():
                if entry.note in address_ids:
                    self.update(entry.note)
        return list(self.wallets.values())

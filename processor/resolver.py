"""Resolve the raw addresses of a batch to the user's address and wallet records."""
import logging
from typing import Dict, Iterable, List, Tuple

from .exceptions import NotFoundError
from .models import Address, Transaction, Wallet

logger = logging.getLogger(__name__)


def collect_addresses(transactions: Iterable[Transaction]) -> List[str]:
    """Distinct address strings over all inputs and outputs, in first-seen order.

    Addresses are compared case sensitively.
    """
    seen: Dict[str, None] = {}
    for transaction in transactions:
        for entry in transaction.details.entries():
            seen.setdefault(entry.note, None)
    return list(seen)


class AddressResolver:
    """Looks up the address and wallet records touched by a batch."""

    def __init__(self, store) -> None:
        self.store = store

    async def resolve(self, user_id: str, addresses: List[str]) -> Tuple[List[Address], List[Wallet]]:
        """Get the user's address records for ``addresses`` and the wallets owning them.

        Raises:
            NotFoundError: If none of the addresses belongs to one of the user's wallets
        """
        logger.debug(f"Getting affected addresses for user {user_id}")
        address_records = await self.store.find_addresses(user_id, addresses)

        wallet_ids = list(dict.fromkeys(
            record.wallet_id for record in address_records if record.wallet_id
        ))
        logger.debug(f"Getting affected wallets {wallet_ids}")
        wallets = await self.store.find_wallets(user_id, wallet_ids) if wallet_ids else []

        if not wallets:
            raise NotFoundError(
                f"No wallets found for {len(addresses)} addresses of user {user_id}"
            )

        logger.debug(f"Found {len(address_records)} addresses in {len(wallets)} wallets")
        return address_records, wallets

    async def address_ids(self, user_id: str, addresses: List[str]) -> Dict[str, str]:
        """Map the user's known address strings to address ids."""
        return await self.store.find_address_ids(user_id, addresses)

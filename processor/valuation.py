"""Fiat valuation of transaction amounts."""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, List, Optional, Sequence, Union

from prices import PriceClient, PriceError
from .exceptions import InvariantError, ValuationError
from .models import Transaction

logger = logging.getLogger(__name__)

DEFAULT_CURRENCIES = ('EUR', 'USD')


def round_amount(value: Decimal) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    return int((Decimal(value) + Decimal('0.5')).to_integral_value(rounding=ROUND_FLOOR))


class CurrencyValuation:
    """Computes ``baseVolume`` from the price service.

    Without a price client valuation is switched off and transactions keep
    whatever base volume they had.
    """

    def __init__(self, client: Optional[PriceClient] = None,
                 currencies: Sequence[str] = DEFAULT_CURRENCIES) -> None:
        self.client = client
        self.currencies = list(currencies)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def base_volume(self, amount: Union[int, float, Decimal], on: datetime) -> Dict[str, int]:
        """Convert an amount into every currency, in configured order.

        Raises:
            PriceError: If any currency lookup fails
        """
        volume: Dict[str, int] = {}
        for currency in self.currencies:
            volume[currency] = round_amount(self.client.convert(amount, currency, on))
        return volume

    def apply(self, transactions: List[Transaction]) -> List[Transaction]:
        """Return the transactions with ``base_volume`` set from their representation amount.

        Raises:
            ValuationError: If a price lookup failed
            InvariantError: If a transaction has no representation or date
        """
        if not self.enabled:
            logger.debug("No price client configured, skipping valuation")
            return transactions

        valued = []
        for transaction in transactions:
            if transaction.representation is None:
                raise InvariantError(f"Transaction {transaction.id} was not classified")
            if transaction.date is None:
                raise InvariantError(f"Transaction {transaction.id} has no date")

            try:
                volume = self.base_volume(transaction.representation.amount, transaction.date)
            except PriceError as e:
                logger.error(f"Price lookup for transaction {transaction.id} failed: {e}")
                raise ValuationError(transaction.id, e.currency or "?", e) from e

            valued.append(transaction.model_copy(update={'base_volume': volume}))
        return valued

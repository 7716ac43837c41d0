"""Price module for looking up historical fiat prices of the native asset"""
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

import requests

logger = logging.getLogger(__name__)

class PriceError(Exception):
    """Base exception for price lookup errors"""
    def __init__(self, message: str, currency: Optional[str] = None):
        self.currency = currency
        super().__init__(message)

class PriceServiceConnectionError(PriceError):
    """Raised when the price service cannot be reached or answers with an error status"""
    pass

class PriceNotFoundError(PriceError):
    """Raised when the response holds no price for the requested asset"""
    pass

def extract_price(body: Dict[str, Any], asset: str, currency: Optional[str] = None) -> Decimal:
    """Pull the single-unit price of ``asset`` out of a price service response.

    The service answers ``{"prices": [{"currency": "XBT", "price": 1.0}, ...]}``.
    Older deployments answer ``{"prices": {"XBT": {"price": 1.0}, ...}}``; that
    shape is still accepted.

    Raises:
        PriceNotFoundError: If the asset is missing or the shape is unknown
    """
    prices = body.get('prices') if isinstance(body, dict) else None

    entry = None
    if isinstance(prices, list):
        entry = next(
            (item for item in prices if isinstance(item, dict) and item.get('currency') == asset),
            None
        )
    elif isinstance(prices, dict):
        logger.debug(f"Price response for {currency} uses the asset keyed format")
        entry = prices.get(asset)
    else:
        raise PriceNotFoundError(
            f"Unrecognised price response for {currency}: missing 'prices'",
            currency
        )

    if not isinstance(entry, dict) or entry.get('price') is None:
        raise PriceNotFoundError(f"No {asset} price in {currency} response", currency)

    try:
        return Decimal(str(entry['price']))
    except InvalidOperation as e:
        raise PriceNotFoundError(
            f"Invalid {asset} price in {currency} response: {entry['price']!r}",
            currency
        ) from e

class PriceClient:
    """Client for the ``/prices/v1/{currency}`` endpoint"""

    def __init__(self, base_url: str, asset: str = 'XBT', timeout: float = 10,
                 session: Optional[requests.Session] = None):
        """Initialize the client

        Args:
            base_url: Service root, e.g. https://api.blooks.io
            asset: Code of the asset to price
            timeout: Request timeout in seconds
            session: Optional preconfigured requests session
        """
        self.base_url = base_url.rstrip('/')
        self.asset = asset
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers['accept'] = 'application/json'

    def get_price(self, currency: str, on: Union[date, datetime]) -> Decimal:
        """Get the price of one unit of the asset in ``currency`` on a date

        Raises:
            PriceServiceConnectionError: Request failed or returned an error status
            PriceNotFoundError: Response holds no usable price
        """
        url = f"{self.base_url}/prices/v1/{currency}"
        try:
            response = self.session.get(
                url,
                params={'date': on.isoformat()},
                timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.Timeout as e:
            raise PriceServiceConnectionError(
                f"Price request timed out after {self.timeout} seconds",
                currency
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise PriceServiceConnectionError(
                f"Failed to connect to price service at {self.base_url}",
                currency
            ) from e
        except requests.exceptions.HTTPError as e:
            raise PriceServiceConnectionError(
                f"HTTP error occurred: {str(e)}",
                currency
            ) from e
        except requests.exceptions.RequestException as e:
            raise PriceServiceConnectionError(
                f"Request failed: {str(e)}",
                currency
            ) from e
        except ValueError as e:
            raise PriceServiceConnectionError(
                f"Invalid response format: {str(e)}",
                currency
            ) from e

        return extract_price(body, self.asset, currency)

    def convert(self, amount: Union[int, float, Decimal], currency: str,
                on: Union[date, datetime]) -> Decimal:
        """Convert an amount of the asset into ``currency`` at the price of a date"""
        return Decimal(str(amount)) * self.get_price(currency, on)

__all__ = [
    'PriceClient', 'PriceError', 'PriceServiceConnectionError',
    'PriceNotFoundError', 'extract_price'
]

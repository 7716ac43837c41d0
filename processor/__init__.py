"""Transaction enrichment pipeline.

Connects transfers to the user's wallets, classifies them, values them in
fiat currencies and stores the result.
"""
from .exceptions import (
    ProcessorError,
    JobValidationError,
    NotFoundError,
    InvariantError,
    ValuationError,
)
from .pipeline import BatchContext, TransactionPipeline
from .valuation import CurrencyValuation

__all__ = [
    'BatchContext',
    'TransactionPipeline',
    'CurrencyValuation',
    'ProcessorError',
    'JobValidationError',
    'NotFoundError',
    'InvariantError',
    'ValuationError',
]

"""Typed records for the documents the pipeline reads and writes.

Nested document fields keep the camelCase keys used in the stored JSON
(``nodeId``, ``lastUsed``, ``senderLabels`` ...) through field aliases, so
``model_dump(by_alias=True)`` yields exactly what goes back to the store.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Chain(str, Enum):
    MAIN = "main"
    CHANGE = "change"


class TransferType(str, Enum):
    INTERNAL = "internal"
    OUTGOING = "outgoing"
    INCOMING = "incoming"
    ORPHANED = "orphaned"


# Derivation order of addresses that are not part of a wallet's sequence
UNSEQUENCED_ORDER = -1

EXTERNAL_LABEL = "External"


class AddressDerivationParams(BaseModel):
    chain: Optional[Chain] = None
    order: Optional[int] = None


class Address(BaseModel):
    id: str
    address: str
    user_id: str
    wallet_id: Optional[str] = None
    derivation_params: Optional[AddressDerivationParams] = None


class ChainState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_used: int = Field(UNSEQUENCED_ORDER, alias="lastUsed")


class WalletDerivationParams(BaseModel):
    main: ChainState = Field(default_factory=ChainState)
    change: ChainState = Field(default_factory=ChainState)

    def for_chain(self, chain: Chain) -> ChainState:
        return getattr(self, Chain(chain).value)


class Wallet(BaseModel):
    id: str
    user_id: str
    label: Optional[str] = None
    derivation_params: WalletDerivationParams = Field(default_factory=WalletDerivationParams)


class WalletRef(BaseModel):
    id: str
    label: Optional[str] = None


class InOutput(BaseModel):
    """One input or output of a transfer.

    ``note`` holds the raw address. ``node_id`` and ``wallet`` are only set
    when the address belongs to one of the user's wallets.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    note: str
    amount: float
    node_id: Optional[str] = Field(None, alias="nodeId")
    wallet: Optional[WalletRef] = None


class TransactionDetails(BaseModel):
    model_config = ConfigDict(extra="allow")

    inputs: List[InOutput] = Field(default_factory=list)
    outputs: List[InOutput] = Field(default_factory=list)

    def entries(self) -> List[InOutput]:
        return self.inputs + self.outputs


class Representation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fee: float
    sender_labels: List[str] = Field(alias="senderLabels")
    recipient_labels: List[str] = Field(alias="recipientLabels")
    type: TransferType
    amount: float


class Transaction(BaseModel):
    id: str
    user_id: str
    date: Optional[datetime] = None
    details: TransactionDetails = Field(default_factory=TransactionDetails)
    representation: Optional[Representation] = None
    base_volume: Optional[Dict[str, int]] = None
    updated_at: Optional[datetime] = None


class ConnectTransactionsJob(BaseModel):
    """Payload of an ``addresses.connectTransactions`` job."""
    model_config = ConfigDict(populate_by_name=True)

    addresses: List[str]
    user_id: str = Field(alias="userId")
    wallet_id: str = Field(alias="walletId")

"""Adapters for transfer data sources.

Available adapters:
- api_football_adapter: API-Football /transfers endpoint
- transfer_transformer: raw row validation and normalization
"""
from app.services.sync.adapters.api_football_adapter import (
    ApiFootballTransferClient,
    FetchTransfersParams,
    TransferSource,
)
from app.services.sync.adapters.transfer_transformer import (
    TransferRecord,
    TransferType,
    transform_batch,
)

__all__ = [
    "ApiFootballTransferClient",
    "FetchTransfersParams",
    "TransferSource",
    "TransferRecord",
    "TransferType",
    "transform_batch",
]

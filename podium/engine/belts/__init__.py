"""Belt ownership."""

from .keeper import Belt, BeltKeeper, BeltTransfer, BeltTransferReason

__all__ = ["Belt", "BeltKeeper", "BeltTransfer", "BeltTransferReason"]

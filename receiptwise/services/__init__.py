"""Services package."""

from receiptwise.services.image import (
    ImageProcessingError,
    ImageUploadError,
    ReceiptImageService,
)

__all__ = [
    "ImageProcessingError",
    "ImageUploadError",
    "ReceiptImageService",
]

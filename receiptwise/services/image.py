"""
Receipt Image Pre-processing using Pillow

This service handles:
1. Upload validation (type and size)
2. Local quality assessment
3. Normalisation before the image is sent to the model

CRITICAL: We do NOT trust extraction on poor quality images.
If quality is too low, the flow STOPS and asks the user to retake.
"""

from io import BytesIO
from typing import Optional
from uuid import UUID, uuid4

from PIL import Image, ImageOps, UnidentifiedImageError

from receiptwise.config import AppSettings
from receiptwise.models.receipt import ImageAssessment, ImageQuality, ImageUpload


class ImageProcessingError(Exception):
    """Base exception for image processing errors."""
    pass


class ImageUploadError(ImageProcessingError):
    """The upload is unsupported, too large or unreadable."""
    pass


_MIME_BY_FORMAT = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


class ReceiptImageService:
    """
    Validates, assesses and normalises receipt photos.

    Flow:
    1. validate_upload() on the file metadata
    2. open() the bytes
    3. assess_quality() with simple histogram heuristics
    4. prepare_for_model() to get an RGB image of bounded size
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or AppSettings()

    @property
    def allowed_mime_types(self) -> set[str]:
        return {
            _MIME_BY_FORMAT[fmt]
            for fmt in self._settings.supported_formats_list
            if fmt in _MIME_BY_FORMAT
        }

    def validate_upload(
        self,
        filename: str,
        file_size: int,
        mime_type: str,
    ) -> ImageUpload:
        """
        Check upload metadata before touching the bytes.

        Raises:
            ImageUploadError: Unsupported type, empty or oversized file
        """
        if (mime_type or "").lower() not in self.allowed_mime_types:
            raise ImageUploadError(f"Unsupported image type: {mime_type}")
        if file_size <= 0:
            raise ImageUploadError("Uploaded file is empty")
        if file_size > self._settings.max_upload_size_bytes:
            raise ImageUploadError(
                f"File is too large (maximum {self._settings.max_upload_size_mb} MB)"
            )
        return ImageUpload(
            original_filename=filename or "receipt",
            file_size_bytes=file_size,
            mime_type=mime_type,
        )

    def open(self, image_bytes: bytes) -> Image.Image:
        """
        Decode image bytes, applying EXIF orientation.

        Raises:
            ImageUploadError: If the bytes are not a readable image
        """
        try:
            img = Image.open(BytesIO(image_bytes))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ImageUploadError(f"Could not read image: {e}") from e
        return ImageOps.exif_transpose(img)

    def assess_quality(
        self,
        img: Image.Image,
        upload_id: Optional[UUID] = None,
    ) -> ImageAssessment:
        """
        Assess image quality.

        DESIGN DECISION: Simple heuristics (resolution, exposure, contrast)
        instead of a model call: fast, predictable and free.
        """
        issues = []
        score = 1.0
        width, height = img.size

        min_dimension = min(width, height)
        if min_dimension < 300:
            issues.append("Image resolution too low (minimum 300px on smallest side)")
            score -= 0.4
        elif min_dimension < 500:
            issues.append("Image resolution is low, text may be hard to read")
            score -= 0.2

        # Long thin receipts are normal; only extreme strips are suspicious
        if min_dimension > 0 and max(width, height) / min_dimension > 8:
            issues.append("Unusual aspect ratio - image may be cropped incorrectly")
            score -= 0.2

        gray = img if img.mode == "L" else img.convert("L")
        histogram = gray.histogram()
        total_pixels = sum(histogram) or 1

        dark_pixels = sum(histogram[:50]) / total_pixels
        if dark_pixels > 0.7:
            issues.append("Image is very dark - please take photo in better lighting")
            score -= 0.3

        bright_pixels = sum(histogram[200:]) / total_pixels
        if bright_pixels > 0.9:
            issues.append("Image is overexposed - please reduce lighting or angle")
            score -= 0.3

        # Range holding the middle 90% of pixels
        cumsum = 0
        low_percentile = None
        high_percentile = 255
        for i, count in enumerate(histogram):
            cumsum += count
            if low_percentile is None and cumsum >= total_pixels * 0.05:
                low_percentile = i
            if cumsum >= total_pixels * 0.95:
                high_percentile = i
                break

        if high_percentile - (low_percentile or 0) < 50:
            issues.append("Image has very low contrast - text may be hard to read")
            score -= 0.25

        score = max(0.0, min(1.0, score))

        if score >= 0.7:
            quality = ImageQuality.GOOD
        elif score >= max(self._settings.min_image_quality_score, 0.5):
            quality = ImageQuality.ACCEPTABLE
        elif score >= 0.3:
            quality = ImageQuality.POOR
        else:
            quality = ImageQuality.UNUSABLE

        return ImageAssessment(
            upload_id=upload_id or uuid4(),
            quality=quality,
            quality_score=score,
            width=width,
            height=height,
            issues=issues,
        )

    def prepare_for_model(self, img: Image.Image) -> Image.Image:
        """Return an RGB copy no larger than max_image_dimension on its long side."""
        prepared = img.convert("RGB")
        limit = self._settings.max_image_dimension
        if max(prepared.size) > limit:
            prepared.thumbnail((limit, limit), Image.Resampling.LANCZOS)
        return prepared

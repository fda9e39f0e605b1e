"""Pure OCR transformation helpers for invoice extraction."""

import io
from typing import Any

from PIL import Image, ImageOps, UnidentifiedImageError

from kutusay.domain.invoice import Token
from kutusay.invoice.errors import ImageLoadError, ProviderParseError

CLOUD_VISION_MAX_DIMENSION = 1024
CLOUD_VISION_JPEG_QUALITY = 85
MAX_IMAGE_DIMENSION = 3000  # Local OCR service limit
OCR_IMAGE_PADDING = 50  # White padding around image to prevent edge truncation
MIN_DETECTION_CONFIDENCE = 0.5
MIN_TEXT_LENGTH = 2


def load_image(image_bytes: bytes) -> Image.Image:
    """
    Decode image bytes into an RGB image with EXIF orientation applied.

    Raises:
        ImageLoadError: If the bytes are not a decodable image.
    """
    try:
        img = Image.open(io.BytesIO(image_bytes))
        # Apply EXIF orientation so OCR coordinates and pixel sampling agree
        img = ImageOps.exif_transpose(img)
        return img.convert("RGB")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageLoadError(f"Cannot decode image: {exc}") from exc


def resize_image(image: Image.Image, max_dimension: int) -> Image.Image:
    """Return a copy scaled to fit max_dimension, or the image itself when it already fits."""
    width, height = image.size
    if width <= max_dimension and height <= max_dimension:
        return image

    if width > height:
        new_width = max_dimension
        new_height = int(height * (max_dimension / width))
    else:
        new_height = max_dimension
        new_width = int(width * (max_dimension / height))

    return image.resize((max(new_width, 1), max(new_height, 1)), Image.Resampling.LANCZOS)


def encode_jpeg(image: Image.Image, quality: int = CLOUD_VISION_JPEG_QUALITY) -> bytes:
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def prepare_ocr_service_image(
    image: Image.Image, max_dimension: int = MAX_IMAGE_DIMENSION, padding: int = OCR_IMAGE_PADDING
) -> tuple[bytes, float]:
    """
    Resize and pad an image for the local OCR service.

    Returns:
        (JPEG bytes, scale) where scale maps original pixels to resized pixels.
    """
    resized = resize_image(image, max_dimension)
    scale = resized.size[0] / image.size[0] if image.size[0] else 1.0
    try:
        padded = ImageOps.expand(resized, border=padding, fill="white") if padding > 0 else resized
        return encode_jpeg(padded, quality=95), scale
    finally:
        if resized is not image:
            resized.close()


def _vertex_bounds(vertices: list[dict[str, Any]]) -> tuple[float, float, float, float]:
    # Vision omits x/y keys that are zero
    xs = [float(v.get("x", 0)) for v in vertices]
    ys = [float(v.get("y", 0)) for v in vertices]
    return min(xs), min(ys), max(xs), max(ys)


def tokens_from_vision_response(payload: dict[str, Any]) -> tuple[list[Token], str]:
    """
    Convert a Cloud Vision images:annotate response into tokens and raw text.

    The first text annotation is the whole page and is skipped; the rest are
    words. Raw text comes from fullTextAnnotation, else the first annotation.

    Raises:
        ProviderParseError: If the payload does not have the expected shape.
    """
    try:
        responses = payload.get("responses") or [{}]
        first = responses[0] or {}
        annotations = first.get("textAnnotations") or []

        tokens: list[Token] = []
        for annotation in annotations[1:]:
            text = (annotation.get("description") or "").strip()
            vertices = (annotation.get("boundingPoly") or {}).get("vertices") or []
            if not text or len(vertices) < 4:
                continue
            min_x, min_y, max_x, max_y = _vertex_bounds(vertices)
            tokens.append(Token(text=text, min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y))

        raw_text = (first.get("fullTextAnnotation") or {}).get("text") or ""
        if not raw_text and annotations:
            raw_text = annotations[0].get("description") or ""
    except (AttributeError, TypeError, IndexError, ValueError) as exc:
        raise ProviderParseError(f"Unexpected Cloud Vision response: {exc}") from exc

    return tokens, raw_text


def tokens_from_ocr_service_result(
    raw_result: dict[str, Any], padding: int = OCR_IMAGE_PADDING, scale: float = 1.0
) -> list[Token]:
    """
    Convert a local OCR service result into tokens in original-image pixels.

    Detections are `[bbox, [text, confidence]]` on the padded, resized image;
    padding is removed and coordinates are divided by `scale`. Low-confidence
    and single-character detections are dropped as noise.

    Raises:
        ProviderParseError: If a detection does not have the expected shape.
    """
    tokens: list[Token] = []
    factor = scale if scale > 0 else 1.0
    try:
        for detection in raw_result.get("detections", []):
            bbox, (text, confidence) = detection
            text = str(text).strip()
            if float(confidence) < MIN_DETECTION_CONFIDENCE or len(text) < MIN_TEXT_LENGTH:
                continue
            xs = [(float(point[0]) - padding) / factor for point in bbox]
            ys = [(float(point[1]) - padding) / factor for point in bbox]
            tokens.append(
                Token(
                    text=text,
                    min_x=max(0.0, min(xs)),
                    min_y=max(0.0, min(ys)),
                    max_x=max(0.0, max(xs)),
                    max_y=max(0.0, max(ys)),
                    confidence=float(confidence),
                )
            )
    except (TypeError, ValueError, IndexError, AttributeError) as exc:
        raise ProviderParseError(f"Unexpected OCR service result: {exc}") from exc
    return tokens

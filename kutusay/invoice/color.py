"""Printed vs. hand-written token classification by pixel sampling.

Pharmacists annotate expiry dates on the paper invoice with a red pen, so a
token whose pixels are predominantly red is treated as hand-written.
"""

from collections.abc import Sequence

from PIL import Image

from kutusay.domain.invoice import Token
from kutusay.runtime.logging import get_logger

logger = get_logger(__name__)

RED_MIN = 150
GREEN_MAX = 100
BLUE_MAX = 100
# At least this many of the three samples must be red.
MIN_RED_SAMPLES = 2


def _clamp(value: float, upper: int) -> int:
    return max(0, min(int(value), upper - 1))


def _is_red_pixel(pixel: tuple[int, ...]) -> bool:
    r, g, b = pixel[0], pixel[1], pixel[2]
    return r > RED_MIN and g < GREEN_MAX and b < BLUE_MAX


def _rgb(image: Image.Image) -> Image.Image:
    return image if image.mode == "RGB" else image.convert("RGB")


def _sample_points(token: Token, width: int, height: int) -> list[tuple[int, int]]:
    y = _clamp(token.center_y, height)
    return [
        (_clamp(token.center_x, width), y),
        (_clamp(token.min_x, width), y),
        (_clamp(token.max_x, width), y),
    ]


def is_red_text(image: Image.Image, token: Token) -> bool:
    """
    Return True when at least 2 of 3 samples along the token's center line are red.

    Samples are taken at the center and both horizontal edges, clamped to the
    image bounds. Any sampling failure counts as printed.
    """
    try:
        rgb = _rgb(image)
        width, height = rgb.size
        if width <= 0 or height <= 0:
            return False
        red = sum(1 for point in _sample_points(token, width, height) if _is_red_pixel(rgb.getpixel(point)))
    except (OSError, ValueError, IndexError, TypeError) as exc:
        logger.warning("Color sampling failed for %r: %s", token.text, exc)
        return False
    return red >= MIN_RED_SAMPLES


def classify_token_colors(tokens: Sequence[Token], image: Image.Image | None) -> list[Token]:
    """Attach the hand-written flag to every token; without an image all tokens stay printed."""
    if image is None:
        return list(tokens)

    try:
        rgb = _rgb(image)
    except (OSError, ValueError) as exc:
        logger.warning("Could not decode image for color classification: %s", exc)
        return list(tokens)

    classified = [token.with_handwritten(is_red_text(rgb, token)) for token in tokens]
    logger.debug(
        "Classified %d tokens, %d hand-written",
        len(classified),
        sum(1 for token in classified if token.is_handwritten),
    )
    return classified

"""Image decoding for replay."""

from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np

from ..errors import DecodeError


def load_image(image_path: str | Path, grayscale: bool = True) -> np.ndarray:
    """Decode one image file.

    Args:
        image_path: Path to the image
        grayscale: Decode as single-channel uint8, otherwise as BGR

    Returns:
        Pixel buffer as a numpy array

    Raises:
        DecodeError: If the file is missing or cannot be decoded
    """
    path = Path(image_path)
    if not path.exists():
        raise DecodeError(f"Image not found: {path}", path)

    flags = cv2.IMREAD_GRAYSCALE if grayscale else cv2.IMREAD_COLOR
    image = cv2.imread(str(path), flags)

    # cv2.imread signals failure with None instead of raising
    if image is None:
        raise DecodeError(f"Failed to decode image: {path}", path)

    return image

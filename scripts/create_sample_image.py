#!/usr/bin/env python3
"""
Create the gradient JPEG used as the benchmark seed image.

Usage:
    python scripts/create_sample_image.py
    python scripts/create_sample_image.py --output data/samples/sample.jpg --size 1000
"""
import argparse
import os
import sys

import cv2
import numpy as np


def make_gradient(width: int, height: int) -> np.ndarray:
    """RGB gradient: red runs left to right, green top to bottom, blue along the diagonal."""
    x = np.arange(width, dtype=np.float64)[None, :]
    y = np.arange(height, dtype=np.float64)[:, None]
    r = np.floor(255 * x / width) + np.zeros_like(y)
    g = np.floor(255 * y / height) + np.zeros_like(x)
    b = np.floor(255 * (x + y) / (width + height))
    # OpenCV stores channels as BGR
    return np.stack([b, g, r], axis=-1).astype(np.uint8)


def create_sample_image(path: str, size: int = 1000, quality: int = 80) -> int:
    """Write the gradient as JPEG and return its size in bytes."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    ok, buf = cv2.imencode(".jpg", make_gradient(size, size), [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise RuntimeError("OpenCV failed to encode the sample image")
    with open(path, "wb") as f:
        f.write(buf.tobytes())
    return len(buf)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--output", default=os.path.join("data", "samples", "sample.jpg"))
    parser.add_argument("--size", type=int, default=1000, help="Width and height in pixels")
    parser.add_argument("--quality", type=int, default=80)
    args = parser.parse_args()

    try:
        n = create_sample_image(args.output, args.size, args.quality)
    except (OSError, RuntimeError) as e:
        print(f"Error creating sample image: {e}")
        sys.exit(1)

    print("Sample image created successfully!")
    print(f"Sample image size: {n / (1024 * 1024):.2f} MB")

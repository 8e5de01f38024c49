"""
Preprocessing Module
====================

Crop / upscale / grayscale / binarize transform applied before local
text recognition.
"""

from gamewatch_agent.preprocessing.preprocessor import (
    FOCUS_PRESET,
    NORMAL_PRESET,
    PreprocessConfig,
    binarize,
    crop_center,
    preprocess,
    scale,
    to_grayscale,
)

__all__ = [
    "PreprocessConfig",
    "NORMAL_PRESET",
    "FOCUS_PRESET",
    "preprocess",
    "crop_center",
    "scale",
    "to_grayscale",
    "binarize",
]

"""
Utilities for reading and splitting a text corpus.
"""
from typing import Tuple


def load_text_file(filepath: str, encoding: str = "utf-8") -> str:
    """
    Load a whole text file as one string.

    Args:
        filepath: Path to text file
        encoding: File encoding

    Returns:
        File contents
    """
    with open(filepath, 'r', encoding=encoding) as f:
        return f.read()


def split_train_val(text: str, train_ratio: float = 0.9) -> Tuple[str, str]:
    """
    Split a corpus into training and validation text.

    The split is positional, not shuffled: the leading ``train_ratio`` of the
    characters is used for training and the rest for validation.

    Args:
        text: Full corpus
        train_ratio: Fraction of characters used for training

    Returns:
        Tuple of (train_text, val_text)
    """
    if not 0.0 < train_ratio <= 1.0:
        raise ValueError(f"train_ratio must be in (0, 1], got {train_ratio}")

    n_train = int(len(text) * train_ratio)
    return text[:n_train], text[n_train:]

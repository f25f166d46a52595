"""
Character vocabulary mapping characters to one-hot indices.
"""
import json
import os
from collections import Counter
from typing import Dict, Iterable, List, Optional

import torch
import torch.nn.functional as F

from char_lstm.utils import Logger


UNKNOWN_CHAR = "\0"


class CharVocabulary:
    """
    Ordered character vocabulary.

    Index 0 always holds the unknown character. The remaining characters are
    ordered by descending frequency in the corpus the vocabulary was built
    from, ties broken by the character itself.
    """

    def __init__(self, chars: Optional[List[str]] = None, unknown_char: str = UNKNOWN_CHAR):
        """
        Args:
            chars: Known characters in index order, excluding the unknown character
            unknown_char: Character used for out-of-vocabulary input
        """
        self.unknown_char = unknown_char
        self.id_to_char: List[str] = [unknown_char]
        self.char_to_id: Dict[str, int] = {unknown_char: 0}
        for char in chars or []:
            if char not in self.char_to_id:
                self.char_to_id[char] = len(self.id_to_char)
                self.id_to_char.append(char)

    @classmethod
    def build(cls, text: str, max_vocab: Optional[int] = None, unknown_char: str = UNKNOWN_CHAR):
        """
        Build a vocabulary from a corpus.

        Args:
            text: Training corpus
            max_vocab: Maximum vocabulary size including the unknown character
            unknown_char: Character used for out-of-vocabulary input

        Returns:
            CharVocabulary
        """
        if max_vocab is not None and max_vocab < 1:
            raise ValueError(f"max_vocab must be at least 1, got {max_vocab}")

        counts = Counter(text)
        counts.pop(unknown_char, None)
        chars = [char for char, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))]
        if max_vocab is not None:
            chars = chars[:max_vocab - 1]
        return cls(chars, unknown_char=unknown_char)

    @property
    def unknown_id(self) -> int:
        return 0

    def __len__(self) -> int:
        return len(self.id_to_char)

    def __contains__(self, char: str) -> bool:
        return char in self.char_to_id

    def encode(self, text: str) -> List[int]:
        """Map each character to its index, unknown characters to 0."""
        return [self.char_to_id.get(char, self.unknown_id) for char in text]

    def decode(self, ids: Iterable[int]) -> str:
        chars = []
        for idx in ids:
            idx = int(idx)
            if 0 <= idx < len(self.id_to_char):
                chars.append(self.id_to_char[idx])
            else:
                chars.append(self.unknown_char)
        return ''.join(chars)

    def one_hot(self, ids) -> torch.Tensor:
        """
        One-hot encode indices.

        Args:
            ids: List or LongTensor of indices, any shape

        Returns:
            Float tensor with a trailing dimension of size len(self)
        """
        if not isinstance(ids, torch.Tensor):
            ids = torch.tensor(ids, dtype=torch.long)
        return F.one_hot(ids.long(), num_classes=len(self)).float()

    def save(self, filepath: str):
        """
        Save vocabulary to a JSON file.

        Args:
            filepath: Path to save file
        """
        vocab_data = {
            "unknown_char": self.unknown_char,
            "chars": self.id_to_char[1:],
            "vocab_size": len(self),
        }

        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(vocab_data, f, ensure_ascii=False, indent=2)

    @classmethod
    def load(cls, filepath: str):
        """
        Load vocabulary from a JSON file.

        Args:
            filepath: Path to load file
        """
        with open(filepath, 'r', encoding='utf-8') as f:
            vocab_data = json.load(f)

        return cls(vocab_data["chars"], unknown_char=vocab_data.get("unknown_char", UNKNOWN_CHAR))


def build_vocabulary(corpus_path: str, vocab_path: str, max_vocab: Optional[int] = None) -> CharVocabulary:
    """
    Load the vocabulary at ``vocab_path``, building and saving it from the
    corpus first if it does not exist yet.
    """
    if os.path.exists(vocab_path):
        Logger(f"Loading vocabulary from {vocab_path}")
        return CharVocabulary.load(vocab_path)

    Logger(f"Building vocabulary from {corpus_path}")
    with open(corpus_path, 'r', encoding='utf-8') as f:
        text = f.read()
    vocab = CharVocabulary.build(text, max_vocab=max_vocab)

    vocab_dir = os.path.dirname(vocab_path)
    if vocab_dir:
        os.makedirs(vocab_dir, exist_ok=True)
    vocab.save(vocab_path)
    Logger(f"Vocabulary of size {len(vocab)} saved to {vocab_path}")
    return vocab

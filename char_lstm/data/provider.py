"""
Mini-batch provider for character-level language modeling.
"""
from typing import Iterator, Optional

import numpy as np
import torch

from char_lstm.model.lstm import LSTMState
from char_lstm.tokenizer.vocab import CharVocabulary


class CharSeqProvider:
    """
    Streams one-hot encoded, fixed-length character sequences.

    The encoded corpus is cut into consecutive windows of ``seq_len``
    characters. The label of each position is the character that follows it
    in the corpus, so window k covers ids[k*seq_len : (k+1)*seq_len] and its
    labels are ids[k*seq_len+1 : (k+1)*seq_len+1]. Windows that do not fill
    a whole batch are dropped.

    Batches are produced lazily by a generator; nothing beyond the encoded
    corpus is held in memory between batches.
    """

    def __init__(
        self,
        text: str,
        vocab: CharVocabulary,
        batch_size: int,
        seq_len: int,
        n_layer: int,
        dim_hidden: int,
        shuffle: bool = True,
        seed: Optional[int] = None,
    ):
        """
        Args:
            text: Corpus to iterate over
            vocab: Vocabulary used for encoding
            batch_size: Sequences per batch
            seq_len: Characters per sequence
            n_layer: Number of LSTM layers (for the initial states)
            dim_hidden: LSTM hidden size (for the initial states)
            shuffle: Whether to permute window order every epoch
            seed: Seed for the shuffling RNG
        """
        if batch_size <= 0 or seq_len <= 0:
            raise ValueError(f"batch_size and seq_len must be positive, got {batch_size} and {seq_len}")

        self.vocab = vocab
        self.batch_size = batch_size
        self.seq_len = seq_len
        self.n_layer = n_layer
        self.dim_hidden = dim_hidden
        self.shuffle = shuffle
        self.rng = np.random.RandomState(seed)

        self.ids = torch.tensor(vocab.encode(text), dtype=torch.long)
        self.n_windows = max(len(self.ids) - 1, 0) // seq_len
        self.n_batch = self.n_windows // batch_size
        if self.n_batch == 0:
            raise ValueError(
                f"Text of {len(text)} characters is too short for one batch of "
                f"{batch_size} x {seq_len} characters"
            )

    def __len__(self) -> int:
        """Return the number of batches per epoch."""
        return self.n_batch

    def get_rng_state(self) -> list:
        """Shuffling RNG state as plain Python values, safe for torch.save/torch.load."""
        name, keys, pos, has_gauss, cached_gaussian = self.rng.get_state()
        return [name, keys.tolist(), int(pos), int(has_gauss), float(cached_gaussian)]

    def set_rng_state(self, state: list):
        name, keys, pos, has_gauss, cached_gaussian = state
        self.rng.set_state((name, np.array(keys, dtype=np.uint32), pos, has_gauss, cached_gaussian))

    def init_states(self):
        shape = (self.batch_size, self.dim_hidden)
        return [LSTMState(c=torch.zeros(shape), h=torch.zeros(shape)) for _ in range(self.n_layer)]

    def __iter__(self) -> Iterator[dict]:
        """
        Yield batches for one epoch.

        Yields:
            Dictionary with
                - data: one-hot float tensor (seq_len, batch_size, vocab_size)
                - labels: long tensor (seq_len, batch_size)
                - init_states: zero LSTMState per layer
        """
        n_used = self.n_batch * self.batch_size
        if self.shuffle:
            order = self.rng.permutation(self.n_windows)[:n_used]
        else:
            order = np.arange(n_used)

        offsets = torch.arange(self.seq_len)
        for b in range(self.n_batch):
            windows = torch.as_tensor(order[b * self.batch_size:(b + 1) * self.batch_size], dtype=torch.long)
            # (seq_len, batch_size) positions into the corpus
            positions = offsets.unsqueeze(1) + windows.unsqueeze(0) * self.seq_len
            inputs = self.ids[positions]
            labels = self.ids[positions + 1]

            yield {
                "data": self.vocab.one_hot(inputs),
                "labels": labels,
                "init_states": self.init_states(),
            }

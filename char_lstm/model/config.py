"""
Model configuration utilities.
"""
from dataclasses import dataclass, asdict
import json


@dataclass
class ModelConfig:
    """
    Configuration for LSTMLanguageModel.

    ``seq_len`` is the number of time steps the cell is unrolled over. It is
    not part of the learned parameters, so a model trained with one
    ``seq_len`` can be rebuilt with another (e.g. 1 for sampling).
    """
    vocab_size: int
    dim_embed: int = 256
    dim_hidden: int = 256
    n_layer: int = 2
    seq_len: int = 32
    dropout: float = 0.0
    init_scale: float = 0.1

    def validate(self):
        """Raise ValueError if any field is out of range."""
        for name in ("vocab_size", "dim_embed", "dim_hidden", "n_layer", "seq_len"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if not 0.0 <= self.dropout < 1.0:
            raise ValueError(f"dropout must be in [0, 1), got {self.dropout}")
        if self.init_scale <= 0:
            raise ValueError(f"init_scale must be positive, got {self.init_scale}")

    def save(self, filepath: str):
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str):
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            config_dict = json.load(f)
        return cls(**config_dict)

    def to_dict(self):
        """Convert to dictionary."""
        return asdict(self)


# Predefined configurations; vocab_size is replaced once the corpus is read
TINY_CONFIG = ModelConfig(
    vocab_size=128,
    dim_embed=32,
    dim_hidden=64,
    n_layer=1,
    seq_len=16,
)

SMALL_CONFIG = ModelConfig(
    vocab_size=128,
    dim_embed=128,
    dim_hidden=128,
    n_layer=2,
    seq_len=32,
    dropout=0.1,
)

DEFAULT_CONFIG = ModelConfig(
    vocab_size=128,
    dim_embed=256,
    dim_hidden=256,
    n_layer=2,
    seq_len=32,
)

"""
Char LSTM - Character-level LSTM language model on native PyTorch.

The LSTM cell is written out from framework primitives and unrolled over a
fixed number of time steps; batches of one-hot characters are streamed by a
generator, and trained weights are sampled autoregressively.
"""

__version__ = "0.1.0"

from char_lstm.model.config import ModelConfig
from char_lstm.model.lstm import LSTMLanguageModel, LSTMParam, LSTMState, lstm_cell
from char_lstm.tokenizer.vocab import CharVocabulary, build_vocabulary
from char_lstm.data.provider import CharSeqProvider
from char_lstm.training.metrics import Perplexity
from char_lstm.training.trainer import Trainer, TrainerConfig, load_model
from char_lstm.generation.sampler import Sampler

__all__ = [
    "ModelConfig",
    "LSTMLanguageModel",
    "LSTMParam",
    "LSTMState",
    "lstm_cell",
    "CharVocabulary",
    "build_vocabulary",
    "CharSeqProvider",
    "Perplexity",
    "Trainer",
    "TrainerConfig",
    "load_model",
    "Sampler",
]

"""
Character-level LSTM language model, unrolled over a fixed number of time steps.
"""
from typing import List, NamedTuple, Optional

import torch
import torch.nn as nn
import torch.nn.functional as F

from char_lstm.model.config import ModelConfig


class LSTMState(NamedTuple):
    """Cell memory ``c`` and hidden output ``h`` of one layer, each (batch, dim_hidden)."""
    c: torch.Tensor
    h: torch.Tensor


class LSTMParam(nn.Module):
    """
    Weights of one LSTM layer.

    A single instance is reused at every time step of the unrolled model, so
    the number of parameters does not depend on the sequence length.
    """

    def __init__(self, dim_input: int, dim_hidden: int):
        """
        Args:
            dim_input: Size of the layer input
            dim_hidden: Size of the cell memory and hidden output
        """
        super().__init__()
        self.i2h = nn.Linear(dim_input, 4 * dim_hidden)
        self.h2h = nn.Linear(dim_hidden, 4 * dim_hidden)


def lstm_cell(
    data: torch.Tensor,
    prev_state: LSTMState,
    param: LSTMParam,
    dropout: float = 0.0,
    training: bool = False,
) -> LSTMState:
    """
    One LSTM step.

    Args:
        data: Layer input of shape (batch, dim_input)
        prev_state: State from the previous time step
        param: Layer weights
        dropout: Dropout probability applied to ``data``
        training: Whether dropout is active

    Returns:
        The next state
    """
    if dropout > 0:
        data = F.dropout(data, p=dropout, training=training)

    gates = param.i2h(data) + param.h2h(prev_state.h)
    in_gate, in_transform, forget_gate, out_gate = gates.chunk(4, dim=-1)

    in_gate = torch.sigmoid(in_gate)
    in_transform = torch.tanh(in_transform)
    forget_gate = torch.sigmoid(forget_gate)
    out_gate = torch.sigmoid(out_gate)

    next_c = forget_gate * prev_state.c + in_gate * in_transform
    next_h = out_gate * torch.tanh(next_c)
    return LSTMState(c=next_c, h=next_h)


class LSTMLanguageModel(nn.Module):
    """
    Multi-layer LSTM over one-hot character inputs.

    The forward pass replicates the cell ``config.seq_len`` times. Embedding,
    per-layer and prediction weights are shared by every step.
    """

    def __init__(self, config: ModelConfig, output_states: bool = False):
        """
        Args:
            config: Model configuration
            output_states: Whether forward() also returns the final states
        """
        super().__init__()
        config.validate()

        self.config = config
        self.output_states = output_states

        # One-hot -> embedding is a bias-free projection
        self.embed = nn.Linear(config.vocab_size, config.dim_embed, bias=False)

        self.layers = nn.ModuleList([
            LSTMParam(config.dim_embed if i == 0 else config.dim_hidden, config.dim_hidden)
            for i in range(config.n_layer)
        ])

        self.pred = nn.Linear(config.dim_hidden, config.vocab_size)

        self._init_weights()

    @property
    def seq_len(self) -> int:
        return self.config.seq_len

    def _init_weights(self):
        """Uniform weights in [-init_scale, init_scale], zero biases."""
        scale = self.config.init_scale
        for module in self.modules():
            if isinstance(module, nn.Linear):
                nn.init.uniform_(module.weight, -scale, scale)
                if module.bias is not None:
                    nn.init.zeros_(module.bias)

    def init_states(self, batch_size: int, device=None) -> List[LSTMState]:
        """Zero states for every layer."""
        shape = (batch_size, self.config.dim_hidden)
        return [
            LSTMState(c=torch.zeros(shape, device=device), h=torch.zeros(shape, device=device))
            for _ in range(self.config.n_layer)
        ]

    def forward(
        self,
        data: torch.Tensor,
        labels: Optional[torch.Tensor] = None,
        init_states: Optional[List[LSTMState]] = None,
    ) -> dict:
        """
        Run the unrolled model.

        Args:
            data: One-hot inputs of shape (seq_len, batch_size, vocab_size)
            labels: Optional target indices of shape (seq_len, batch_size)
            init_states: Optional per-layer initial states, zeros if omitted

        Returns:
            Dictionary containing:
                - logits: (seq_len, batch_size, vocab_size)
                - loss: mean cross entropy if labels provided, otherwise None
                - states: final per-layer states (only with output_states)
        """
        if data.dim() != 3:
            raise ValueError(f"Expected data of shape (seq_len, batch, vocab), got {tuple(data.shape)}")
        seq_len, batch_size, n_class = data.shape
        if seq_len != self.config.seq_len:
            raise ValueError(f"Model is unrolled for {self.config.seq_len} steps, got {seq_len}")
        if n_class != self.config.vocab_size:
            raise ValueError(f"Expected one-hot size {self.config.vocab_size}, got {n_class}")

        if init_states is None:
            states = self.init_states(batch_size, device=data.device)
        else:
            if len(init_states) != self.config.n_layer:
                raise ValueError(f"Expected {self.config.n_layer} initial states, got {len(init_states)}")
            states = list(init_states)

        dropout = self.config.dropout
        outputs = []
        for t in range(seq_len):
            hidden = self.embed(data[t])
            for i, param in enumerate(self.layers):
                # No dropout on the embedding that feeds the first layer
                states[i] = lstm_cell(
                    hidden, states[i], param,
                    dropout=0.0 if i == 0 else dropout,
                    training=self.training,
                )
                hidden = states[i].h
            if dropout > 0:
                hidden = F.dropout(hidden, p=dropout, training=self.training)
            outputs.append(self.pred(hidden))

        logits = torch.stack(outputs, dim=0)

        loss = None
        if labels is not None:
            loss = F.cross_entropy(
                logits.reshape(-1, self.config.vocab_size),
                labels.reshape(-1),
            )

        result = {
            "logits": logits,
            "loss": loss,
        }
        if self.output_states:
            result["states"] = [LSTMState(c=s.c.detach(), h=s.h.detach()) for s in states]
        return result

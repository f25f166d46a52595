"""
Negative log-likelihood and perplexity for next-character prediction.
"""
import math

import torch
import torch.nn.functional as F


class Perplexity:
    """Accumulates per-character NLL over any number of batches."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.total_nll = 0.0
        self.n_tokens = 0

    @torch.no_grad()
    def update(self, logits: torch.Tensor, labels: torch.Tensor):
        """
        Args:
            logits: (..., vocab_size) unnormalised scores
            labels: target indices matching logits without the last dimension
        """
        nll = F.cross_entropy(
            logits.reshape(-1, logits.size(-1)).float(),
            labels.reshape(-1),
            reduction="sum",
        )
        self.total_nll += nll.item()
        self.n_tokens += labels.numel()

    def get(self) -> dict:
        if self.n_tokens == 0:
            return {"nll": float("nan"), "perplexity": float("nan")}
        nll = self.total_nll / self.n_tokens
        return {"nll": nll, "perplexity": math.exp(nll)}

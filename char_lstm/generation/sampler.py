"""
Autoregressive character sampling from a trained LSTM.
"""
from typing import List, Optional

import torch

from char_lstm.model.lstm import LSTMLanguageModel
from char_lstm.tokenizer.vocab import CharVocabulary


class Sampler:
    """
    Draws text one character at a time.

    The model must be unrolled for a single step and return its final
    states; those states are fed back as the initial states of the next
    step, so the full history is carried without re-running the prefix.
    Use ``load_model(path, seq_len=1)`` to rebuild a trained model this way.
    """

    def __init__(self, model: LSTMLanguageModel, vocab: CharVocabulary, device: str = "cpu"):
        """
        Args:
            model: Model with seq_len == 1 and output_states=True
            vocab: Vocabulary the model was trained with
            device: Device to run sampling on
        """
        if model.seq_len != 1:
            raise ValueError(f"Sampling needs a model unrolled for 1 step, got {model.seq_len}")
        if not model.output_states:
            raise ValueError("Sampling needs a model built with output_states=True")
        if len(vocab) != model.config.vocab_size:
            raise ValueError(f"Vocabulary size {len(vocab)} does not match model size {model.config.vocab_size}")

        self.model = model.to(device)
        self.vocab = vocab
        self.device = device

    def _step(self, ids: torch.Tensor, states):
        data = self.vocab.one_hot(ids).unsqueeze(0).to(self.device)
        outputs = self.model(data, init_states=states)
        return outputs["logits"][0], outputs["states"]

    def sample(
        self,
        n_samples: int = 10,
        length: int = 100,
        prompt: str = "a",
        temperature: float = 1.0,
        top_k: Optional[int] = None,
        greedy: bool = False,
        seed: Optional[int] = None,
    ) -> List[str]:
        """
        Generate ``n_samples`` continuations of ``prompt`` in one batch.

        Args:
            n_samples: Number of independent samples
            length: Number of characters to generate after the prompt
            prompt: Text fed to the model before sampling starts
            temperature: Sampling temperature (higher = more random)
            top_k: If set, only sample from the top k characters
            greedy: Always pick the most likely character
            seed: Optional seed for the sampling RNG

        Returns:
            List of ``prompt + generated`` strings
        """
        if n_samples < 1:
            raise ValueError(f"n_samples must be at least 1, got {n_samples}")
        if length < 0:
            raise ValueError(f"length must be non-negative, got {length}")
        if not prompt:
            raise ValueError("prompt must contain at least one character")
        if temperature <= 0:
            raise ValueError(f"temperature must be positive, got {temperature}")
        if top_k is not None and top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")

        generator = None
        if seed is not None:
            generator = torch.Generator(device=self.device)
            generator.manual_seed(seed)

        self.model.eval()
        states = self.model.init_states(n_samples, device=self.device)
        generated = []

        with torch.no_grad():
            logits = None
            for char_id in self.vocab.encode(prompt):
                ids = torch.full((n_samples,), char_id, dtype=torch.long)
                logits, states = self._step(ids, states)

            for _ in range(length):
                next_logits = logits / temperature

                if greedy:
                    next_ids = torch.argmax(next_logits, dim=-1)
                else:
                    if top_k is not None:
                        k = min(top_k, next_logits.size(-1))
                        indices_to_remove = next_logits < torch.topk(next_logits, k)[0][..., -1, None]
                        next_logits = next_logits.masked_fill(indices_to_remove, float('-inf'))
                    probs = torch.softmax(next_logits, dim=-1)
                    next_ids = torch.multinomial(probs, num_samples=1, generator=generator).squeeze(-1)

                next_ids = next_ids.cpu()
                generated.append(next_ids)
                logits, states = self._step(next_ids, states)

        if not generated:
            return [prompt] * n_samples

        generated = torch.stack(generated, dim=1)
        return [prompt + self.vocab.decode(row.tolist()) for row in generated]

"""
Tests for the perplexity metric.
"""
import math

import torch

from char_lstm.training.metrics import Perplexity


class TestPerplexity:

    def test_uniform_prediction(self):
        """Uniform logits over V classes give NLL log(V) and perplexity V."""
        metric = Perplexity()
        metric.update(torch.zeros(4, 3, 8), torch.randint(0, 8, (4, 3)))

        result = metric.get()

        assert math.isclose(result["nll"], math.log(8), rel_tol=1e-6)
        assert math.isclose(result["perplexity"], 8.0, rel_tol=1e-5)

    def test_perplexity_is_exp_nll(self):
        torch.manual_seed(0)
        metric = Perplexity()
        metric.update(torch.randn(5, 2, 6), torch.randint(0, 6, (5, 2)))

        result = metric.get()

        assert math.isclose(result["perplexity"], math.exp(result["nll"]))

    def test_accumulates_over_batches(self):
        """The mean is taken over all tokens, not over batches."""
        labels = torch.tensor([0, 0])
        confident = torch.tensor([[10.0, -10.0], [10.0, -10.0]])
        uniform = torch.zeros(6, 2)

        metric = Perplexity()
        metric.update(confident, labels)
        metric.update(uniform, torch.zeros(6, dtype=torch.long))

        assert metric.n_tokens == 8
        assert math.isclose(metric.get()["nll"], 6 * math.log(2) / 8, rel_tol=1e-4)

    def test_empty_metric_is_nan(self):
        result = Perplexity().get()

        assert math.isnan(result["nll"])
        assert math.isnan(result["perplexity"])

    def test_reset(self):
        metric = Perplexity()
        metric.update(torch.zeros(2, 4), torch.tensor([1, 2]))
        metric.reset()

        assert metric.n_tokens == 0
        assert math.isnan(metric.get()["nll"])

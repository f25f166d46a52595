"""
Tests for the training loop, checkpointing and model reloading.

Tests cover:
- A short training run lowers the loss and writes per-epoch checkpoints
- Evaluation metrics and history
- Resuming from a checkpoint
- Rebuilding a trained model with a different unroll length
"""
import json
import math

import pytest
import torch

from char_lstm.data.provider import CharSeqProvider
from char_lstm.model.config import ModelConfig
from char_lstm.model.lstm import LSTMLanguageModel
from char_lstm.tokenizer.vocab import CharVocabulary
from char_lstm.training.trainer import Trainer, TrainerConfig, checkpoint_path, load_model


TEXT = "hello world. " * 50


@pytest.fixture
def setup(tmp_path):
    torch.manual_seed(0)
    vocab = CharVocabulary.build(TEXT)
    config = ModelConfig(vocab_size=len(vocab), dim_embed=8, dim_hidden=16, n_layer=1, seq_len=8)
    train_provider = CharSeqProvider(TEXT, vocab, 4, config.seq_len, config.n_layer, config.dim_hidden, seed=0)
    eval_provider = CharSeqProvider(TEXT, vocab, 4, config.seq_len, config.n_layer, config.dim_hidden, shuffle=False)
    trainer_config = TrainerConfig(
        n_epoch=2,
        output_dir=str(tmp_path),
        device="cpu",
        progress_bar=False,
        log_interval=1000,
    )
    model = LSTMLanguageModel(config)
    return model, train_provider, eval_provider, trainer_config, vocab


class TestTrainer:

    def test_train_step_returns_loss(self, setup):
        model, train_provider, _, trainer_config, _ = setup
        trainer = Trainer(model, train_provider, config=trainer_config)

        loss = trainer.train_step(next(iter(train_provider)))

        assert isinstance(loss, float)
        assert loss > 0

    def test_clip_gradient_bounds_values(self, setup):
        """Gradients are clipped element-wise to +/- clip_gradient."""
        model, train_provider, _, trainer_config, _ = setup
        trainer_config.clip_gradient = 1e-4
        trainer = Trainer(model, train_provider, config=trainer_config)

        trainer.train_step(next(iter(train_provider)))

        for param in model.parameters():
            assert param.grad.abs().max().item() <= 1e-4 + 1e-12

    def test_evaluate_without_provider(self, setup):
        model, train_provider, _, trainer_config, _ = setup
        trainer = Trainer(model, train_provider, config=trainer_config)

        assert trainer.evaluate() is None

    def test_evaluate_returns_perplexity(self, setup):
        model, train_provider, eval_provider, trainer_config, vocab = setup
        trainer = Trainer(model, train_provider, eval_provider, trainer_config)

        result = trainer.evaluate()

        assert math.isclose(result["perplexity"], math.exp(result["nll"]))
        assert result["perplexity"] < len(vocab) * 1.5

    def test_training_reduces_loss_and_writes_checkpoints(self, setup, tmp_path):
        model, train_provider, eval_provider, trainer_config, _ = setup
        trainer = Trainer(model, train_provider, eval_provider, trainer_config)

        history = trainer.train()

        assert [row["epoch"] for row in history] == [1, 2]
        assert history[1]["train_nll"] < history[0]["train_nll"]
        assert "eval_perplexity" in history[1]
        assert trainer.epoch == 2
        assert trainer.global_step == 2 * len(train_provider)

        for epoch in (1, 2):
            assert (tmp_path / f"char-lstm-{epoch:04d}.pt").exists()
        assert (tmp_path / "best_model.pt").exists()
        assert json.loads((tmp_path / "history.json").read_text()) == history

    def test_resume_from_checkpoint(self, setup):
        model, train_provider, eval_provider, trainer_config, _ = setup
        Trainer(model, train_provider, eval_provider, trainer_config).train()

        resumed_model = LSTMLanguageModel(model.config)
        resumed = Trainer(resumed_model, train_provider, eval_provider, trainer_config)
        history = resumed.train(
            n_epoch=3,
            resume_from_checkpoint=checkpoint_path(trainer_config.output_dir, "char-lstm", 2),
        )

        assert resumed.epoch == 3
        assert [row["epoch"] for row in history] == [1, 2, 3]


class TestLoadModel:

    def test_reload_with_single_step_unroll(self, setup):
        """A model trained with seq_len=8 reloads as a seq_len=1 model with the same weights."""
        model, train_provider, eval_provider, trainer_config, _ = setup
        trainer = Trainer(model, train_provider, eval_provider, trainer_config)
        trainer.train(n_epoch=1)

        reloaded = load_model(checkpoint_path(trainer_config.output_dir, "char-lstm", 1), seq_len=1, device="cpu")

        assert reloaded.seq_len == 1
        assert reloaded.output_states
        assert not reloaded.training
        for name, param in model.state_dict().items():
            assert torch.equal(param, reloaded.state_dict()[name])

    def test_missing_checkpoint_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_model(str(tmp_path / "missing.pt"), device="cpu")


class InterruptedProvider:
    """Wraps a provider and fails when a second epoch is started."""

    def __init__(self, provider):
        self.provider = provider
        self.epochs_started = 0

    def __len__(self):
        return len(self.provider)

    def __iter__(self):
        self.epochs_started += 1
        if self.epochs_started > 1:
            raise RuntimeError("interrupted")
        return iter(self.provider)


class TestTrainerOutputs:

    def test_best_model_written_without_eval_provider(self, setup, tmp_path):
        """Without evaluation the latest epoch is saved as best_model.pt."""
        model, train_provider, _, trainer_config, _ = setup
        trainer = Trainer(model, train_provider, config=trainer_config)

        trainer.train(n_epoch=2)

        best = torch.load(str(tmp_path / "best_model.pt"), map_location="cpu")
        assert best["epoch"] == 2
        assert load_model(str(tmp_path / "best_model.pt"), seq_len=1, device="cpu").seq_len == 1

    def test_history_written_after_each_epoch(self, setup, tmp_path):
        """An interrupted run still leaves the history of the finished epochs."""
        model, train_provider, eval_provider, trainer_config, _ = setup
        trainer = Trainer(model, InterruptedProvider(train_provider), eval_provider, trainer_config)

        with pytest.raises(RuntimeError):
            trainer.train(n_epoch=3)

        history = json.loads((tmp_path / "history.json").read_text())
        assert [row["epoch"] for row in history] == [1]
        assert (tmp_path / "char-lstm-0001.pt").exists()


class TestReproducibility:

    def test_resume_restores_shuffle_order(self, setup):
        """A resumed run sees the same batch order as an uninterrupted one."""
        model, train_provider, _, trainer_config, vocab = setup
        trainer = Trainer(model, train_provider, config=trainer_config)
        trainer.train(n_epoch=1)
        expected = next(iter(train_provider))["labels"]

        fresh_provider = CharSeqProvider(
            TEXT, vocab, 4, model.config.seq_len, model.config.n_layer, model.config.dim_hidden, seed=0,
        )
        resumed = Trainer(LSTMLanguageModel(model.config), fresh_provider, config=trainer_config)
        resumed.load_checkpoint(checkpoint_path(trainer_config.output_dir, "char-lstm", 1))

        assert torch.equal(next(iter(fresh_provider))["labels"], expected)

    def test_rng_state_survives_checkpoint_load(self, setup):
        """The shuffle state is stored as plain values and reloads with torch.load."""
        model, train_provider, _, trainer_config, _ = setup
        trainer = Trainer(model, train_provider, config=trainer_config)
        trainer.save_checkpoint(checkpoint_path(trainer_config.output_dir, "char-lstm", 0))

        checkpoint = torch.load(checkpoint_path(trainer_config.output_dir, "char-lstm", 0), map_location="cpu")

        assert checkpoint["train_rng_state"] == train_provider.get_rng_state()

    def test_setup_seed_before_model_gives_same_weights(self):
        from char_lstm.utils import setup_seed

        config = ModelConfig(vocab_size=10, dim_embed=8, dim_hidden=16, n_layer=1, seq_len=8)
        setup_seed(123)
        first = LSTMLanguageModel(config)
        setup_seed(123)
        second = LSTMLanguageModel(config)

        assert torch.equal(first.embed.weight, second.embed.weight)

    def test_trainer_seed_covers_dropout(self, setup):
        """TrainerConfig.seed makes training steps with dropout repeatable."""
        model, train_provider, _, trainer_config, vocab = setup
        trainer_config.seed = 123
        config = ModelConfig(vocab_size=len(vocab), dim_embed=8, dim_hidden=16, n_layer=2, seq_len=8, dropout=0.5)
        batch = next(iter(CharSeqProvider(TEXT, vocab, 4, 8, 2, 16, shuffle=False)))

        first_model = LSTMLanguageModel(config)
        second_model = LSTMLanguageModel(config)
        second_model.load_state_dict(first_model.state_dict())

        first_loss = Trainer(first_model, train_provider, config=trainer_config).train_step(batch)
        second_loss = Trainer(second_model, train_provider, config=trainer_config).train_step(batch)

        assert first_loss == second_loss

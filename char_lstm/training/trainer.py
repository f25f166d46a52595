"""
Training utilities for the character-level LSTM.
"""
import json
import os
from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, List, Optional

import torch
from tqdm import tqdm

from char_lstm.data.provider import CharSeqProvider
from char_lstm.model.config import ModelConfig
from char_lstm.model.lstm import LSTMLanguageModel, LSTMState
from char_lstm.training.metrics import Perplexity
from char_lstm.utils import Logger, get_device, setup_seed


@dataclass
class TrainerConfig:
    batch_size: int = 32
    n_epoch: int = 21
    base_lr: float = 0.01
    weight_decay: float = 0.00001
    clip_gradient: float = 1.0       # element-wise clip on gradient values, 0 disables
    data_tr_ratio: float = 0.9
    ckpoint_prefix: str = "char-lstm"
    output_dir: str = "./outputs"
    log_interval: int = 100
    # Seeds training randomness (dropout) when the Trainer is built. Weights are
    # initialised earlier, with the model: call setup_seed before building it.
    seed: Optional[int] = None
    device: Optional[str] = None     # None = cuda if available
    progress_bar: bool = True

    def save(self, filepath: str):
        with open(filepath, 'w') as f:
            json.dump(asdict(self), f, indent=2)


def checkpoint_path(output_dir: str, prefix: str, epoch: int) -> str:
    """Path of the checkpoint written after ``epoch`` (1-based)."""
    return os.path.join(output_dir, f"{prefix}-{epoch:04d}.pt")


def load_model(
    filepath: str,
    seq_len: Optional[int] = None,
    device: Optional[str] = None,
    output_states: bool = True,
) -> LSTMLanguageModel:
    """
    Rebuild a model from a checkpoint.

    Args:
        filepath: Checkpoint written by Trainer.save_checkpoint
        seq_len: Unroll length of the rebuilt model, defaults to the trained one
        device: Device to load onto
        output_states: Whether the rebuilt model returns its final states

    Returns:
        LSTMLanguageModel in eval mode
    """
    device = get_device(device)
    checkpoint = torch.load(filepath, map_location=device)

    config = ModelConfig(**checkpoint["model_config"])
    if seq_len is not None:
        config = replace(config, seq_len=seq_len)

    model = LSTMLanguageModel(config, output_states=output_states)
    model.load_state_dict(checkpoint["model_state_dict"])
    return model.to(device).eval()


class Trainer:
    """
    Trainer for LSTMLanguageModel.

    Handles the training loop, per-epoch evaluation, checkpointing, and logging.
    """

    def __init__(
        self,
        model: LSTMLanguageModel,
        train_provider: CharSeqProvider,
        eval_provider: Optional[CharSeqProvider] = None,
        config: Optional[TrainerConfig] = None,
        optimizer: Optional[torch.optim.Optimizer] = None,
    ):
        """
        Args:
            model: The language model to train
            train_provider: Batches for training
            eval_provider: Optional batches for evaluation
            config: Training configuration
            optimizer: Optimizer (defaults to Adam with config.base_lr and config.weight_decay)
        """
        self.config = config or TrainerConfig()
        if self.config.seed is not None:
            setup_seed(self.config.seed)
        self.device = get_device(self.config.device)
        self.model = model.to(self.device)
        self.train_provider = train_provider
        self.eval_provider = eval_provider
        self.output_dir = self.config.output_dir

        os.makedirs(self.output_dir, exist_ok=True)

        if optimizer is None:
            self.optimizer = torch.optim.Adam(
                model.parameters(),
                lr=self.config.base_lr,
                weight_decay=self.config.weight_decay,
            )
        else:
            self.optimizer = optimizer

        # Training state
        self.global_step = 0
        self.epoch = 0
        self.best_eval_loss = float('inf')
        self.history: List[Dict[str, Any]] = []

    def _to_device(self, batch: dict):
        data = batch["data"].to(self.device)
        labels = batch["labels"].to(self.device)
        init_states = batch.get("init_states")
        if init_states is not None:
            init_states = [LSTMState(c=s.c.to(self.device), h=s.h.to(self.device)) for s in init_states]
        return data, labels, init_states

    def train_step(self, batch: dict) -> float:
        """
        Perform a single training step.

        Args:
            batch: Batch from a CharSeqProvider

        Returns:
            Loss value
        """
        self.model.train()

        data, labels, init_states = self._to_device(batch)

        outputs = self.model(data, labels=labels, init_states=init_states)
        loss = outputs["loss"]

        self.optimizer.zero_grad()
        loss.backward()

        if self.config.clip_gradient > 0:
            torch.nn.utils.clip_grad_value_(self.model.parameters(), self.config.clip_gradient)

        self.optimizer.step()

        return loss.item()

    def evaluate(self) -> Optional[dict]:
        """
        Evaluate the model on the evaluation provider.

        Returns:
            Dictionary with "nll" and "perplexity", or None without an eval provider
        """
        if self.eval_provider is None:
            return None

        self.model.eval()
        metric = Perplexity()

        with torch.no_grad():
            for batch in self.eval_provider:
                data, labels, init_states = self._to_device(batch)
                outputs = self.model(data, init_states=init_states)
                metric.update(outputs["logits"], labels)

        return metric.get()

    def save_checkpoint(self, filepath: str):
        """
        Save a checkpoint.

        Args:
            filepath: Path to save checkpoint
        """
        checkpoint = {
            "model_state_dict": self.model.state_dict(),
            "optimizer_state_dict": self.optimizer.state_dict(),
            "model_config": self.model.config.to_dict(),
            "global_step": self.global_step,
            "epoch": self.epoch,
            "best_eval_loss": self.best_eval_loss,
            "history": self.history,
        }
        if hasattr(self.train_provider, "get_rng_state"):
            checkpoint["train_rng_state"] = self.train_provider.get_rng_state()

        torch.save(checkpoint, filepath)
        Logger(f"Checkpoint saved to {filepath}")

    def save_history(self):
        """Write the per-epoch history to history.json in the output directory."""
        with open(os.path.join(self.output_dir, "history.json"), 'w') as f:
            json.dump(self.history, f, indent=2)

    def load_checkpoint(self, filepath: str):
        """
        Load a checkpoint.

        Args:
            filepath: Path to checkpoint file
        """
        checkpoint = torch.load(filepath, map_location=self.device)

        self.model.load_state_dict(checkpoint["model_state_dict"])
        self.optimizer.load_state_dict(checkpoint["optimizer_state_dict"])
        self.global_step = checkpoint["global_step"]
        self.epoch = checkpoint["epoch"]
        self.best_eval_loss = checkpoint["best_eval_loss"]
        self.history = checkpoint.get("history", [])
        if "train_rng_state" in checkpoint and hasattr(self.train_provider, "set_rng_state"):
            self.train_provider.set_rng_state(checkpoint["train_rng_state"])

        Logger(f"Checkpoint loaded from {filepath}")

    def train(
        self,
        n_epoch: Optional[int] = None,
        resume_from_checkpoint: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Train the model, writing a checkpoint after every epoch.

        Args:
            n_epoch: Total number of epochs, defaults to config.n_epoch
            resume_from_checkpoint: Optional path to checkpoint to resume from

        Returns:
            Per-epoch history
        """
        n_epoch = self.config.n_epoch if n_epoch is None else n_epoch

        if resume_from_checkpoint is not None:
            self.load_checkpoint(resume_from_checkpoint)

        Logger(f"Starting training for {n_epoch} epochs...")
        Logger(f"Device: {self.device}")
        Logger(f"Total training steps per epoch: {len(self.train_provider)}")

        for epoch in range(self.epoch, n_epoch):
            epoch_loss = 0.0
            num_batches = 0

            batches = tqdm(
                self.train_provider,
                total=len(self.train_provider),
                desc=f"Epoch {epoch + 1}/{n_epoch}",
                disable=not self.config.progress_bar,
            )
            for batch in batches:
                loss = self.train_step(batch)
                epoch_loss += loss
                num_batches += 1
                self.global_step += 1

                if self.global_step % self.config.log_interval == 0:
                    avg_loss = epoch_loss / num_batches
                    lr = self.optimizer.param_groups[0]['lr']
                    Logger(f"Step {self.global_step}: loss = {loss:.4f}, avg_loss = {avg_loss:.4f}, lr = {lr:.6f}")

            self.epoch = epoch + 1
            avg_epoch_loss = epoch_loss / num_batches if num_batches > 0 else 0.0
            row = {"epoch": self.epoch, "train_nll": avg_epoch_loss}
            Logger(f"Epoch {self.epoch} completed: train_nll = {avg_epoch_loss:.4f}")

            eval_metrics = self.evaluate()
            if eval_metrics is not None:
                row["eval_nll"] = eval_metrics["nll"]
                row["eval_perplexity"] = eval_metrics["perplexity"]
                Logger(f"Evaluation after epoch {self.epoch}: "
                       f"nll = {eval_metrics['nll']:.4f}, perplexity = {eval_metrics['perplexity']:.4f}")
            self.history.append(row)

            if eval_metrics is None:
                # Nothing to compare against, the latest epoch is the best known model
                self.save_checkpoint(os.path.join(self.output_dir, "best_model.pt"))
            elif eval_metrics["nll"] < self.best_eval_loss:
                self.best_eval_loss = eval_metrics["nll"]
                self.save_checkpoint(os.path.join(self.output_dir, "best_model.pt"))
                Logger(f"New best model saved with eval_nll = {self.best_eval_loss:.4f}")

            self.save_checkpoint(checkpoint_path(self.output_dir, self.config.ckpoint_prefix, self.epoch))
            self.save_history()

        Logger("Training completed!")
        return self.history

"""
Training script for the character-level LSTM.

Reads a plain-text corpus, builds (or reloads) the character vocabulary,
splits the text into training and validation parts and trains the unrolled
LSTM, writing a checkpoint after every epoch.
"""
import argparse
import os

from char_lstm.data.provider import CharSeqProvider
from char_lstm.data.utils import load_text_file, split_train_val
from char_lstm.model.config import ModelConfig
from char_lstm.model.lstm import LSTMLanguageModel
from char_lstm.tokenizer.vocab import build_vocabulary
from char_lstm.training.trainer import Trainer, TrainerConfig
from char_lstm.utils import Logger, get_model_params, setup_seed


def main():
    parser = argparse.ArgumentParser(description="Character-level LSTM training")
    parser.add_argument('--corpus', type=str, required=True, help='Path to the plain-text training corpus')
    parser.add_argument('--output_dir', type=str, default='./outputs', help='Directory to save checkpoints')
    parser.add_argument('--vocab_path', type=str, default=None, help='Vocabulary file (default: <output_dir>/vocab.json)')
    parser.add_argument('--max_vocab', type=int, default=10000, help='Maximum vocabulary size')
    parser.add_argument('--epochs', type=int, default=21, help='Number of training epochs')
    parser.add_argument('--batch_size', type=int, default=32, help='Sequences per batch')
    parser.add_argument('--seq_len', type=int, default=32, help='Unrolled sequence length')
    parser.add_argument('--dim_hidden', type=int, default=256, help='LSTM hidden size')
    parser.add_argument('--dim_embed', type=int, default=256, help='Character embedding size')
    parser.add_argument('--n_layer', type=int, default=2, help='Number of LSTM layers')
    parser.add_argument('--dropout', type=float, default=0.0, help='Dropout probability')
    parser.add_argument('--learning_rate', type=float, default=0.01, help='Adam learning rate')
    parser.add_argument('--weight_decay', type=float, default=0.00001, help='Adam weight decay')
    parser.add_argument('--clip_gradient', type=float, default=1.0, help='Element-wise gradient clip, 0 disables')
    parser.add_argument('--train_ratio', type=float, default=0.9, help='Fraction of the corpus used for training')
    parser.add_argument('--prefix', type=str, default='char-lstm', help='Checkpoint file prefix')
    parser.add_argument('--log_interval', type=int, default=100, help='Logging interval')
    parser.add_argument('--seed', type=int, default=42, help='Random seed')
    parser.add_argument('--device', type=str, default=None, help='Device (default: cuda if available)')
    parser.add_argument('--resume', type=str, default=None, help='Checkpoint to resume from')
    args = parser.parse_args()

    setup_seed(args.seed)
    os.makedirs(args.output_dir, exist_ok=True)

    vocab_path = args.vocab_path or os.path.join(args.output_dir, "vocab.json")
    vocab = build_vocabulary(args.corpus, vocab_path, max_vocab=args.max_vocab)
    # Sampling always reads the vocabulary from next to the checkpoints
    vocab.save(os.path.join(args.output_dir, "vocab.json"))
    Logger(f"Vocabulary size: {len(vocab)}")

    text = load_text_file(args.corpus)
    train_text, val_text = split_train_val(text, args.train_ratio)
    Logger(f"Training characters: {len(train_text)}, validation characters: {len(val_text)}")

    config = ModelConfig(
        vocab_size=len(vocab),
        dim_embed=args.dim_embed,
        dim_hidden=args.dim_hidden,
        n_layer=args.n_layer,
        seq_len=args.seq_len,
        dropout=args.dropout,
    )
    config.save(os.path.join(args.output_dir, "config.json"))

    train_provider = CharSeqProvider(
        train_text, vocab, args.batch_size, config.seq_len, config.n_layer, config.dim_hidden,
        shuffle=True, seed=args.seed,
    )
    eval_provider = None
    if val_text:
        try:
            eval_provider = CharSeqProvider(
                val_text, vocab, args.batch_size, config.seq_len, config.n_layer, config.dim_hidden,
                shuffle=False,
            )
        except ValueError as e:
            Logger(f"Skipping evaluation: {e}")

    model = LSTMLanguageModel(config)
    get_model_params(model)

    trainer_config = TrainerConfig(
        batch_size=args.batch_size,
        n_epoch=args.epochs,
        base_lr=args.learning_rate,
        weight_decay=args.weight_decay,
        clip_gradient=args.clip_gradient,
        data_tr_ratio=args.train_ratio,
        ckpoint_prefix=args.prefix,
        output_dir=args.output_dir,
        log_interval=args.log_interval,
        seed=args.seed,
        device=args.device,
    )
    trainer_config.save(os.path.join(args.output_dir, "trainer_config.json"))

    trainer = Trainer(model, train_provider, eval_provider, trainer_config)
    trainer.train(resume_from_checkpoint=args.resume)


if __name__ == "__main__":
    main()

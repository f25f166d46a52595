"""
Sampling script for the character-level LSTM.

Loads the checkpoint of a given epoch (or the best one), rebuilds the model
unrolled for a single step and prints text sampled from it.
"""
import argparse
import os

from char_lstm.generation.sampler import Sampler
from char_lstm.tokenizer.vocab import CharVocabulary
from char_lstm.training.trainer import checkpoint_path, load_model
from char_lstm.utils import Logger, get_device, setup_seed


def main():
    parser = argparse.ArgumentParser(description="Character-level LSTM sampling")
    parser.add_argument('--output_dir', type=str, default='./outputs', help='Directory holding checkpoints and vocab.json')
    parser.add_argument('--prefix', type=str, default='char-lstm', help='Checkpoint file prefix')
    parser.add_argument('--epoch', type=int, default=None, help='Epoch to load (default: best_model.pt)')
    parser.add_argument('--n_samples', type=int, default=10, help='Number of samples drawn in parallel')
    parser.add_argument('--length', type=int, default=100, help='Characters to generate per sample')
    parser.add_argument('--prompt', type=str, default='a', help='Text to start from')
    parser.add_argument('--temperature', type=float, default=1.0, help='Sampling temperature')
    parser.add_argument('--top_k', type=int, default=None, help='Only sample from the top k characters')
    parser.add_argument('--greedy', action='store_true', help='Always pick the most likely character')
    parser.add_argument('--seed', type=int, default=2026, help='Random seed')
    parser.add_argument('--device', type=str, default=None, help='Device (default: cuda if available)')
    args = parser.parse_args()

    setup_seed(args.seed)
    device = get_device(args.device)

    if args.epoch is None:
        model_path = os.path.join(args.output_dir, "best_model.pt")
    else:
        model_path = checkpoint_path(args.output_dir, args.prefix, args.epoch)

    Logger(f"Loading model from {model_path}")
    model = load_model(model_path, seq_len=1, device=device)
    vocab = CharVocabulary.load(os.path.join(args.output_dir, "vocab.json"))

    sampler = Sampler(model, vocab, device)
    samples = sampler.sample(
        n_samples=args.n_samples,
        length=args.length,
        prompt=args.prompt,
        temperature=args.temperature,
        top_k=args.top_k,
        greedy=args.greedy,
    )

    for i, text in enumerate(samples):
        print("=" * 80)
        print(f"Sample {i + 1}:")
        print(text)


if __name__ == "__main__":
    main()

import random

import numpy as np
import torch


def is_main_process():
    return not torch.distributed.is_available() or not torch.distributed.is_initialized() or torch.distributed.get_rank() == 0


def Logger(content):
    if is_main_process():
        print(content)


def setup_seed(seed: int):
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    torch.cuda.manual_seed(seed)
    torch.cuda.manual_seed_all(seed)
    torch.backends.cudnn.deterministic = True
    torch.backends.cudnn.benchmark = False


def get_model_params(model):
    total = sum(p.numel() for p in model.parameters()) / 1e6
    Logger(f'Model Params: {total:.3f}M')
    return total


def get_device(device=None) -> str:
    if device is not None:
        return device
    return "cuda" if torch.cuda.is_available() else "cpu"

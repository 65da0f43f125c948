"""
Global seeding for reproducible runs.
"""

import random
from typing import Any, Dict, Optional

import numpy as np
import torch


def set_seed(seed: int, env: Optional[Any] = None) -> Dict[str, Any]:
    """
    Set all random seeds for reproducibility.

    Args:
        seed: Master seed value
        env: Optional gymnasium environment for action/observation space seeding

    Returns:
        Dictionary of all seed values set (for metadata storage)
    """
    random.seed(seed)
    np.random.seed(seed)

    torch.manual_seed(seed)
    cuda_seeded = False
    if torch.cuda.is_available():
        torch.cuda.manual_seed_all(seed)
        cuda_seeded = True

    env_seeded = False
    if env is not None:
        env.action_space.seed(seed)
        env.observation_space.seed(seed)
        env_seeded = True

    return {
        'master_seed': seed,
        'python_random': seed,
        'numpy': seed,
        'torch': seed,
        'torch_cuda': seed if cuda_seeded else None,
        'env_spaces': seed if env_seeded else None,
    }

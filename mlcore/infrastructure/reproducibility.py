"""
Seeds and random generators.

Everything random in mlcore (weight init, shuffling, bootstrap samples,
k-means seeding, SMO fallbacks) draws from a ``numpy.random.Generator``
obtained through ``make_rng``. A fixed ``random_state`` therefore
reproduces a run bit for bit, independent of the global generators.
"""

from dataclasses import asdict, dataclass, is_dataclass
import hashlib
import json
import platform
import random
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import numpy as np

RandomState = Optional[Union[int, np.random.Generator]]

_SEED_UPPER = 2**31 - 1


@dataclass
class SeedConfig:
    """Which global generators ``set_seed`` touches."""
    seed: int = 42
    set_python: bool = True
    set_numpy: bool = True


def set_seed(seed_or_config: Union[int, SeedConfig] = 42) -> None:
    """
    Seed the process-wide ``random`` and legacy ``np.random`` generators.

    mlcore does not read these itself; this exists for user code and
    third-party helpers that do.

    Args:
        seed_or_config: Integer seed, or a SeedConfig selecting generators
    """
    config = seed_or_config if isinstance(seed_or_config, SeedConfig) else SeedConfig(seed=seed_or_config)
    if config.set_python:
        random.seed(config.seed)
    if config.set_numpy:
        np.random.seed(config.seed)


def make_rng(random_state: RandomState = None) -> np.random.Generator:
    """
    Turn a ``random_state`` argument into a Generator.

    ``None`` draws fresh OS entropy, an int seeds a new PCG64 stream and a
    Generator is handed back unchanged so several consumers share it.

    Raises:
        TypeError: for floats, bools or any other type
    """
    if isinstance(random_state, np.random.Generator):
        return random_state
    if random_state is None:
        return np.random.default_rng()
    valid = isinstance(random_state, (int, np.integer)) and not isinstance(random_state, bool)
    if not valid:
        raise TypeError(f"random_state must be None, an int or a Generator, got {random_state!r}")
    return np.random.default_rng(int(random_state))


def spawn_seeds(rng: np.random.Generator, n: int) -> List[int]:
    """Child seeds for ``n`` sub-estimators, drawn from one parent stream."""
    return rng.integers(0, _SEED_UPPER, size=n).tolist()


def hash_config(config: Any) -> str:
    """
    Fingerprint an experiment configuration.

    Dataclasses are flattened with ``asdict``; other objects fall back to
    their ``__dict__`` or string form. Keys are sorted, so two configs with
    the same content hash alike whatever their insertion order.

    Returns:
        SHA256 hex digest
    """
    if is_dataclass(config) and not isinstance(config, type):
        payload = asdict(config)
    elif isinstance(config, dict):
        payload = config
    elif hasattr(config, "__dict__"):
        payload = vars(config)
    else:
        payload = {"value": str(config)}
    encoded = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def get_reproducibility_info() -> Dict[str, Any]:
    """Interpreter, numpy and platform versions plus the current time."""
    return {
        "python_version": platform.python_version() or sys.version.split()[0],
        "numpy_version": np.__version__,
        "platform": platform.platform(),
        "timestamp": datetime.now().isoformat(),
    }

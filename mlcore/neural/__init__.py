"""
Neural-network trainer: layers, callbacks and the sequential Network.
"""

from .layers import LayerProtocol, Layer, Dense, ActivationLayer, Dropout, BatchNorm
from .callbacks import TrainingCallback, EarlyStopping
from .network import Network, NetworkState, History

__all__ = [
    "LayerProtocol",
    "Layer",
    "Dense",
    "ActivationLayer",
    "Dropout",
    "BatchNorm",
    "TrainingCallback",
    "EarlyStopping",
    "Network",
    "NetworkState",
    "History",
]

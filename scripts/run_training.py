#!/usr/bin/env python3
"""
Training Script for mlcore networks.

Trains a network described by a YAML experiment config on CSV data, writes
evaluation reports and exports the model spec.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mlcore.training.cli import main

if __name__ == "__main__":
    sys.exit(main())

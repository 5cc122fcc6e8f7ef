"""
Training CLI - Train a network from a YAML experiment config and CSV data.
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from ..core.config import ExperimentConfig, load_experiment_config
from ..errors import MLCoreError
from ..evaluation.reporting import EvaluationReport, ReportGenerator
from ..export.exporter import ExportConfig, ModelExporter
from ..infrastructure.logging import get_logger, setup_logging
from ..infrastructure.reproducibility import get_reproducibility_info, hash_config
from ..neural.callbacks import EarlyStopping
from ..neural.network import Network, to_class_labels
from ..preprocessing.split import train_test_split

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="mlcore network training",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Train, evaluate on a 20% holdout, and export
  python -m mlcore.training.cli \\
    --config ./configs/xor.yaml \\
    --x ./data/x.csv \\
    --y ./data/y.csv \\
    --output ./runs/xor

  # Train on everything, stop early on training loss
  python -m mlcore.training.cli --config exp.yaml --x x.csv --y y.csv \\
    --test-size 0 --patience 10
""",
    )

    parser.add_argument(
        "--config",
        required=True,
        help="Path to YAML experiment config",
    )
    parser.add_argument(
        "--x",
        required=True,
        help="CSV of input features, one sample per row",
    )
    parser.add_argument(
        "--y",
        required=True,
        help="CSV of targets, one sample per row",
    )
    parser.add_argument(
        "--output",
        default="./runs",
        help="Output directory for reports and exports (default: ./runs)",
    )
    parser.add_argument(
        "--test-size",
        type=float,
        default=0.2,
        help="Holdout fraction for evaluation; 0 evaluates on the training data (default: 0.2)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed (overrides training.seed in the config)",
    )
    parser.add_argument(
        "--patience",
        type=int,
        help="Enable early stopping with this patience",
    )
    parser.add_argument(
        "--skiprows",
        type=int,
        default=0,
        help="Header rows to skip in the CSV files (default: 0)",
    )
    parser.add_argument(
        "--no-export",
        action="store_true",
        help="Skip writing the model spec, graph and model card",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def load_array(path: str, skiprows: int = 0) -> np.ndarray:
    """Load a comma-separated numeric file as a 2-D float array."""
    if not Path(path).exists():
        raise FileNotFoundError(f"Data file not found: {path}")
    return np.loadtxt(path, delimiter=",", skiprows=skiprows, ndmin=2)


def run_training(
    config: ExperimentConfig,
    x: np.ndarray,
    y: np.ndarray,
    output_dir: str,
    test_size: float = 0.2,
    seed: Optional[int] = None,
    patience: Optional[int] = None,
    export: bool = True,
) -> Dict[str, Any]:
    """
    Build, train, evaluate and (optionally) export a network.

    Returns:
        Dict with the network, history, report, report paths and export result
    """
    seed = seed if seed is not None else config.training.seed
    config_hash = hash_config(config)
    logger.info(f"Experiment {config.name} (config {config_hash[:12]}), environment: {get_reproducibility_info()}")
    if test_size > 0:
        x_train, x_test, y_train, y_test = train_test_split(x, y, test_size=test_size, random_state=seed)
    else:
        x_train, x_test, y_train, y_test = x, x, y, y

    network = Network.from_config(config, random_state=seed)
    logger.info("\n" + network.summary())

    training = config.training
    monitor = "val_loss" if training.validation_split > 0 else "loss"
    callbacks = [EarlyStopping(monitor=monitor, patience=patience)] if patience else None
    history = network.train(
        x_train,
        y_train,
        epochs=training.epochs,
        batch_size=training.batch_size,
        verbose=training.verbose,
        shuffle=training.shuffle,
        validation_split=training.validation_split,
        callbacks=callbacks,
    )

    loss, accuracy = network.evaluate(x_test, y_test)
    logger.info(f"Holdout loss: {loss:.4f}" + (f", accuracy: {accuracy:.4f}" if network.loss.is_classification else ""))

    predictions = network.predict(x_test).to_numpy()
    if network.loss.is_classification:
        report = EvaluationReport.for_classification(
            config.name,
            to_class_labels(network.loss.name, y_test),
            to_class_labels(network.loss.name, predictions),
        )
    else:
        report = EvaluationReport.for_regression(config.name, y_test.reshape(-1), predictions.reshape(-1))
    report.metrics["loss"] = loss

    reporter = ReportGenerator(output_dir)
    paths = reporter.generate_all(report)

    export_result = None
    if export:
        exporter = ModelExporter(ExportConfig.from_dict(str(Path(output_dir) / "export"), config.export))
        export_result = exporter.export_all(network, metrics=report.metrics)

    return {
        "network": network,
        "history": history,
        "report": report,
        "report_paths": paths,
        "export": export_result,
        "config_hash": config_hash,
    }


def main(argv: Optional[List[str]] = None):
    """Main entry point for training CLI."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    logger.info(f"Config: {args.config}")
    logger.info(f"Data: x={args.x}, y={args.y}")

    try:
        config = load_experiment_config(args.config)
        x = load_array(args.x, args.skiprows)
        y = load_array(args.y, args.skiprows)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load inputs: {e}")
        return 1

    try:
        result = run_training(
            config,
            x,
            y,
            args.output,
            test_size=args.test_size,
            seed=args.seed,
            patience=args.patience,
            export=not args.no_export,
        )
    except MLCoreError as e:
        logger.error(f"Training failed: {e}")
        return 1

    report = result["report"]
    logger.info(f"JSON report: {result['report_paths']['json']}")
    logger.info(f"Markdown report: {result['report_paths']['markdown']}")

    export_result = result["export"]
    if export_result is not None and not export_result.success:
        logger.error(f"Export failed: {export_result.error_message}")
        return 1

    logger.info(f"Training complete: {report.model_name}, {result['history'].epochs} epochs")
    return 0


if __name__ == "__main__":
    sys.exit(main())

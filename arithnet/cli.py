"""
Command line interface.

Usage:
    python -m arithnet [options]

Modes:
    (default)                 Train on --config (or the built-in set)
    --load MODEL              Classify --input, or read words interactively
    --load MODEL --verify     Check a model against --config
    --retrain MODEL           Add the classes of --config to a saved model
    --test                    Train with seed 42 and verify on the training set
    --benchmark               Train and report timings
    --list-funcs              List growth functions
"""

import argparse
import sys
import time
from multiprocessing import cpu_count
from typing import Callable, List, Optional

from . import __version__
from .analysis.verification import benchmark_report, format_failure, verify_network
from .core.inference import Classifier
from .core.interrupt import install_signal_handler, restore_signal_handler
from .core.network import MAX_NEURONS, Network
from .core.operations import simd_info
from .core.persistence import load_network, save_network
from .core.training import Trainer, TrainingConfig, build_network, prepare_retraining
from .datasets.config import TrainingSetConfig
from .datasets.words import pad_word
from .exceptions import ArithNetError
from .growth.registry import DEFAULT_GROWTH, GROWTH_FUNCTIONS
from .utils.logger import setup_logging

TEST_SEED = 42


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='arithnet',
        description='Grow arithmetic neuron graphs that classify short words'
    )
    parser.add_argument('-c', '--config', type=str, default=None,
                        help='Training-set configuration (JSON)')
    parser.add_argument('-s', '--save', type=str, default=None,
                        help='Write the model to this file')
    parser.add_argument('-l', '--load', type=str, default=None,
                        help='Load a model for classification or verification')
    parser.add_argument('-r', '--retrain', type=str, default=None, metavar='MODEL',
                        help='Load a model and train the classes added by --config')
    parser.add_argument('-i', '--input', type=str, default=None,
                        help='Classify this word and exit')
    parser.add_argument('-t', '--test', action='store_true',
                        help='Train with seed 42, then verify on the training set')
    parser.add_argument('-b', '--benchmark', action='store_true',
                        help='Train and print timing statistics')
    parser.add_argument('--verify', action='store_true',
                        help='Verify a loaded model against --config')
    parser.add_argument('-j', '--threads', type=int, default=None,
                        help='Worker processes (default: cpu_count)')
    parser.add_argument('--single-thread', action='store_true',
                        help='Disable parallel growth searches')
    parser.add_argument('--no-simd', action='store_true',
                        help='Use the scalar operator kernels')
    parser.add_argument('--list-funcs', action='store_true',
                        help='List growth functions and exit')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for reproducibility')
    parser.add_argument('--tolerance', type=float, default=0.01,
                        help='Per-class squared error target (default: 0.01)')
    parser.add_argument('--max-neurons', type=int, default=MAX_NEURONS,
                        help=f'Neuron limit (default: {MAX_NEURONS})')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging')
    parser.add_argument('-q', '--quiet', action='store_true',
                        help='Only log warnings and errors')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser.parse_args(argv)


def print_banner():
    print("=" * 70)
    print(f"   ARITHNET {__version__} - arithmetic neuron graph classifier")
    print("=" * 70)


def print_growth_functions():
    print("Growth functions (name / legacy name):")
    for family in ('exhaustive', 'random', 'triplet'):
        print(f"\n  {family}:")
        for growth in GROWTH_FUNCTIONS.values():
            if growth.family != family:
                continue
            marker = ' (default)' if growth.name == DEFAULT_GROWTH else ''
            print(f"    {growth.name:<28} {growth.legacy_name:<18} "
                  f"+{growth.appends}  {growth.description}{marker}")


def print_setup(config: TrainingConfig, data: TrainingSetConfig):
    print("\nConfiguration:")
    print(f"   Receptors:          {data.receptors}")
    print(f"   Classes:            {data.n_classes}")
    print(f"   Images:             {len(data.images)}")
    print(f"   Growth:             {', '.join(config.funcs) or DEFAULT_GROWTH}")
    print(f"   Tolerance:          {config.tolerance}")
    print(f"   Workers:            {config.n_workers if config.use_multiprocessing else 1}")
    print(f"   SIMD:               {simd_info() if config.use_simd else 'disabled'}")
    print(f"   Seed:               {config.seed}")


def print_classes(network: Network, errors: Optional[List[float]] = None):
    print("\nClasses:")
    for slot in network.classes:
        if slot.trained:
            err = f", err {errors[slot.id]:.6g}" if errors else ''
            status = f"output neuron {slot.output_node}{err}"
        else:
            status = "[not trained]"
        print(f"   {slot.id:3d} {slot.name!r:<24} {status}")


def print_prediction(network: Network, classifier: Classifier, text: str):
    prediction = classifier.classify(text)
    print(f"'{prediction.padded}'")
    for slot, pct in zip(network.classes, prediction.percents):
        mark = ' <' if slot.id == prediction.best_class else ''
        print(f"   {slot.id:3d} {slot.name!r:<24} {pct:3d}%{mark}")


def interactive_loop(network: Network, read: Callable[[str], str] = input):
    """Classify words until Q, q or end of input."""
    classifier = Classifier(network)
    print("\nEnter words to classify (Q to quit).")
    while True:
        try:
            text = read("input word: ")
        except EOFError:
            break
        if text in ('Q', 'q'):
            break
        print_prediction(network, classifier, text)


def build_training_config(args: argparse.Namespace, funcs: List[str]) -> TrainingConfig:
    seed = args.seed
    if seed is None:
        seed = TEST_SEED if args.test else int(time.time()) & 0xFFFFFFFF
    return TrainingConfig(
        tolerance=args.tolerance,
        funcs=list(funcs),
        max_neurons=args.max_neurons,
        n_workers=max(1, args.threads or cpu_count()),
        use_multiprocessing=not args.single_thread,
        use_simd=not args.no_simd,
        seed=seed,
    )


def load_training_set(args: argparse.Namespace) -> TrainingSetConfig:
    if args.config:
        return TrainingSetConfig.load(args.config)
    return TrainingSetConfig.default()


def run_training(network: Network, data: TrainingSetConfig, dataset, config: TrainingConfig, args) -> int:
    print_setup(config, data)
    trainer = Trainer(network, dataset, config)

    print("\nTraining (Ctrl+C to stop)...")
    install_signal_handler()
    try:
        result = trainer.train()
    finally:
        restore_signal_handler()

    if result.stop_reason == 'interrupted':
        print("\nTraining interrupted.")
    elif result.stop_reason == 'capacity':
        print("\nTraining stopped: neuron limit reached.")
    print(f"\nFinished: {result.stop_reason}, {result.iterations} iterations, "
          f"{result.neurons_created} neurons created, {len(network.graph)} total, "
          f"{result.elapsed_seconds:.2f}s")
    print_classes(network, result.class_errors)

    if args.save:
        save_network(network, args.save)
        print(f"\nModel saved to {args.save}")

    if args.benchmark:
        report = benchmark_report(network, dataset, result, config)
        print("\nBenchmark:")
        for line in report.lines():
            print(f"   {line}")

    if args.test:
        return run_verification(network, dataset)

    if args.input is not None:
        print()
        print_prediction(network, Classifier(network), args.input)
    elif not args.benchmark and sys.stdin.isatty():
        interactive_loop(network)
    return 0


def run_verification(network: Network, dataset) -> int:
    report = verify_network(network, dataset)
    print(f"\nVerification: {report.summary()}")
    for check in report.failures:
        print(f"   FAIL {format_failure(check, network)}")
    return 0 if report.ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    if args.list_funcs:
        print_growth_functions()
        return 0

    level = 'DEBUG' if args.verbose else 'WARNING' if args.quiet else 'INFO'
    setup_logging(level)
    print_banner()

    try:
        if args.retrain:
            if not args.config:
                print("Error: --retrain needs --config", file=sys.stderr)
                return 1
            data = TrainingSetConfig.load(args.config)
            network = load_network(args.retrain, max_neurons=args.max_neurons)
            dataset = prepare_retraining(network, data)
            config = build_training_config(args, data.funcs)
            return run_training(network, data, dataset, config, args)

        if args.load:
            network = load_network(args.load, max_neurons=args.max_neurons)
            print(f"\nLoaded {args.load}: {network.receptors} receptors, "
                  f"{len(network.graph)} neurons, {network.n_classes} classes")
            if args.verify:
                if not args.config:
                    print("Error: --verify needs --config", file=sys.stderr)
                    return 1
                return run_verification(network, TrainingSetConfig.load(args.config).dataset())
            print_classes(network)
            if args.input is not None:
                print()
                print_prediction(network, Classifier(network), args.input)
            else:
                interactive_loop(network)
            return 0

        data = load_training_set(args)
        network = build_network(data, max_neurons=args.max_neurons)
        config = build_training_config(args, data.funcs)
        return run_training(network, data, data.dataset(), config, args)

    except (ArithNetError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())

"""
Verification and benchmark reports.

An image passes verification when the network's best class is its label,
or when the labelled class's own output is at least 0.5.
"""

from dataclasses import dataclass, field, asdict
from multiprocessing import cpu_count
from typing import Any, Dict, List

from ..core.inference import Classifier, best_class
from ..core.network import Network
from ..datasets.words import WordDataset, pad_word
from ..exceptions import ConfigMismatchError

PASS_THRESHOLD = 0.5


@dataclass
class ImageCheck:
    """Verification of a single image."""
    word: str
    expected: int
    predicted: int
    expected_output: float
    passed: bool


@dataclass
class VerificationReport:
    """Accuracy of a network over a labelled image set."""
    total: int = 0
    passed: int = 0
    failures: List[ImageCheck] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.total - self.passed

    @property
    def accuracy(self) -> float:
        return self.passed / self.total if self.total else 0.0

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def summary(self) -> str:
        return (f"{self.passed}/{self.total} passed "
                f"({100.0 * self.accuracy:.1f}% accuracy), {self.failed} failed")


def check_image(classifier: Classifier, word: str, expected: int) -> ImageCheck:
    scores = classifier.raw_scores(word)
    predicted = best_class(scores)
    if 0 <= expected < len(scores):
        expected_output = float(scores[expected])
    else:
        expected_output = float('nan')
    # NaN never reaches the threshold
    passed = predicted == expected or bool(expected_output >= PASS_THRESHOLD)
    return ImageCheck(word, expected, predicted, expected_output, passed)


def verify_network(network: Network, dataset: WordDataset) -> VerificationReport:
    """
    Classify every image of a dataset.

    Raises:
        ConfigMismatchError: If the dataset width differs from the network's
    """
    if dataset.receptors != network.receptors:
        raise ConfigMismatchError(
            f"config has {dataset.receptors} receptors, model has {network.receptors}"
        )
    classifier = Classifier(network)
    report = VerificationReport()
    for image in dataset.images:
        check = check_image(classifier, image.word, image.class_id)
        report.total += 1
        if check.passed:
            report.passed += 1
        else:
            report.failures.append(check)
    return report


def format_failure(check: ImageCheck, network: Network) -> str:
    def name(class_id: int) -> str:
        if 0 <= class_id < network.n_classes:
            return repr(network.classes[class_id].name)
        return '-'
    return (f"'{pad_word(check.word, network.receptors)}' expected {check.expected} "
            f"{name(check.expected)}, got {check.predicted} {name(check.predicted)} "
            f"(output {check.expected_output:.4f})")


@dataclass
class BenchmarkReport:
    """Throughput of one training run."""
    receptors: int
    classes: int
    images: int
    neurons_created: int
    workers: int
    simd: bool
    elapsed_seconds: float
    iterations: int
    stop_reason: str

    @property
    def ms_per_iteration(self) -> float:
        return 1000.0 * self.elapsed_seconds / self.iterations if self.iterations else 0.0

    @property
    def classes_per_second(self) -> float:
        return self.classes / self.elapsed_seconds if self.elapsed_seconds > 0 else 0.0

    @property
    def neurons_per_second(self) -> float:
        return self.neurons_created / self.elapsed_seconds if self.elapsed_seconds > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update(
            ms_per_iteration=self.ms_per_iteration,
            classes_per_second=self.classes_per_second,
            neurons_per_second=self.neurons_per_second,
        )
        return data

    def lines(self) -> List[str]:
        return [
            f"Receptors:         {self.receptors}",
            f"Classes:           {self.classes}",
            f"Images:            {self.images}",
            f"Neurons created:   {self.neurons_created}",
            f"Workers:           {self.workers}",
            f"SIMD:              {'enabled' if self.simd else 'disabled'}",
            f"Time:              {1000.0 * self.elapsed_seconds:.1f} ms",
            f"Iterations:        {self.iterations}",
            f"Per iteration:     {self.ms_per_iteration:.3f} ms",
            f"Classes/sec:       {self.classes_per_second:.2f}",
            f"Neurons/sec:       {self.neurons_per_second:.2f}",
            f"Stop reason:       {self.stop_reason}",
        ]


def benchmark_report(network: Network, dataset: WordDataset, result, config) -> BenchmarkReport:
    """Build a BenchmarkReport from a TrainingResult and its TrainingConfig."""
    workers = (config.n_workers or cpu_count()) if config.use_multiprocessing else 1
    return BenchmarkReport(
        receptors=network.receptors,
        classes=network.n_classes,
        images=len(dataset),
        neurons_created=result.neurons_created,
        workers=workers,
        simd=config.use_simd,
        elapsed_seconds=result.elapsed_seconds,
        iterations=result.iterations,
        stop_reason=result.stop_reason,
    )

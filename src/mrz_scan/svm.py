import logging
import math
from collections.abc import Mapping, Sequence
from pathlib import Path

import numpy as np
from PIL import Image
from sklearn.metrics.pairwise import euclidean_distances, pairwise_kernels
from sklearn.svm import SVC, OneClassSVM

from mrz_scan import store
from mrz_scan.descriptors import descriptors_by_card, get_descriptors
from mrz_scan.errors import ArtifactLoadError
from mrz_scan.models import (
    KernelOptions,
    ModelPaths,
    ModelStoreConfig,
    TrainedClassifier,
    TrainingMode,
    TrainingSample,
)
from mrz_scan.ocr.images import read_images

logger = logging.getLogger(__name__)

_ONE_CLASS_DEFAULTS: dict[str, object] = {"nu": 0.5}
_MULTI_CLASS_DEFAULTS: dict[str, object] = {"gamma": 1}


def _kernel_params(options: KernelOptions) -> tuple[str, dict[str, object]]:
    if options.type == "linear":
        return "linear", {}
    if options.type in ("gaussian", "rbf"):
        gamma = options.gamma
        if gamma is None:
            gamma = 1 / (2 * options.sigma**2)
        return "rbf", {"gamma": gamma}
    if options.type in ("polynomial", "poly"):
        constant = 1.0 if options.constant is None else options.constant
        return "polynomial", {
            "degree": options.degree,
            "gamma": options.scale,
            "coef0": constant,
        }
    constant = -math.e if options.constant is None else options.constant
    return "sigmoid", {"gamma": options.alpha, "coef0": constant}


def compute_kernel(
    x: np.ndarray,
    y: np.ndarray | None = None,
    options: KernelOptions | None = None,
) -> np.ndarray:
    """Pairwise kernel between the rows of `x` and `y` (or `x` with itself).

    The laplacian kernel is `exp(-gamma * ||x - y||_2)` on the Euclidean
    distance, with `gamma` defaulting to `1 / sigma`.
    """
    options = options or KernelOptions()
    if options.type == "laplacian":
        gamma = options.gamma
        if gamma is None:
            gamma = 1 / options.sigma
        return np.exp(-gamma * euclidean_distances(x, y))
    metric, params = _kernel_params(options)
    return pairwise_kernels(x, y, metric=metric, **params)


def _as_kernel_options(
    kernel_options: KernelOptions | Mapping[str, object] | None,
) -> KernelOptions:
    if kernel_options is None:
        return KernelOptions()
    if isinstance(kernel_options, KernelOptions):
        return kernel_options
    return KernelOptions.model_validate(dict(kernel_options))


def _training_mode(labels: Sequence[int]) -> TrainingMode:
    if len(set(labels)) == 1:
        return TrainingMode.ONE_CLASS
    return TrainingMode.MULTI_CLASS


def train(
    samples: Sequence[TrainingSample],
    svm_options: Mapping[str, object] | None = None,
    kernel_options: KernelOptions | Mapping[str, object] | None = None,
) -> TrainedClassifier:
    """Fit a precomputed-kernel SVM on labelled descriptors.

    A single distinct label switches to a one-class (novelty) model; two or
    more train a C-support classifier. `svm_options` override the solver
    defaults, but the kernel is always precomputed.

    Args:
        samples: Training glyph descriptors with their code-point labels.
        svm_options: Extra keyword arguments for the scikit-learn estimator.
        kernel_options: Kernel evaluated on the descriptors.
    Returns:
        The fitted classifier with its descriptors, kernel and training mode.
    """
    if not samples:
        raise ValueError("Cannot train a classifier without samples.")
    kernel_options = _as_kernel_options(kernel_options)
    descriptors = np.vstack([sample.descriptor for sample in samples])
    labels = [sample.label for sample in samples]

    training_mode = _training_mode(labels)
    if training_mode is TrainingMode.ONE_CLASS:
        logger.info("training mode: %s", training_mode.value)
        options = {
            **_ONE_CLASS_DEFAULTS,
            **(svm_options or {}),
            "kernel": "precomputed",
        }
        classifier: SVC | OneClassSVM = OneClassSVM(**options)
    else:
        options = {
            **_MULTI_CLASS_DEFAULTS,
            **(svm_options or {}),
            "kernel": "precomputed",
        }
        classifier = SVC(**options)

    gram = compute_kernel(descriptors, options=kernel_options)
    if training_mode is TrainingMode.ONE_CLASS:
        classifier.fit(gram)
    else:
        classifier.fit(gram, np.asarray(labels))
    logger.debug(
        "Trained %s classifier on %d samples with %s kernel",
        training_mode.value,
        len(samples),
        kernel_options.type,
    )
    return TrainedClassifier(
        classifier=classifier,
        descriptors=descriptors,
        kernel_options=kernel_options,
        training_mode=training_mode,
    )


def predict(
    classifier: SVC | OneClassSVM,
    train_descriptors: np.ndarray,
    test_descriptors: np.ndarray,
    kernel_options: KernelOptions | None = None,
) -> list[int]:
    """Predict one label per test row, in row order.

    One-class models return novelty flags (1 inlier, -1 outlier) rather than
    code points.
    """
    test_descriptors = np.asarray(test_descriptors, dtype=np.float64)
    if len(test_descriptors) == 0:
        return []
    kernel = compute_kernel(test_descriptors, train_descriptors, kernel_options)
    return [int(label) for label in classifier.predict(kernel)]


def apply_model(
    test_descriptors: np.ndarray,
    config: ModelStoreConfig | None = None,
) -> list[int]:
    """Classify descriptors with the persisted model.

    Raises:
        ArtifactNotFoundError: When no model files can be located.
        ArtifactLoadError: When the model files cannot be read or do not
            match the descriptors being classified.
    """
    paths = store.resolve_model_paths(config)
    artifacts = store.load_artifacts(paths)
    try:
        return predict(
            artifacts.classifier,
            artifacts.descriptors,
            test_descriptors,
            artifacts.kernel_options,
        )
    except ValueError as exc:
        raise ArtifactLoadError(
            f"Stored model cannot classify this batch: {exc}",
            paths.descriptors_path,
            paths.model_path,
        ) from exc


def predict_images(
    images: Sequence[Image.Image],
    config: ModelStoreConfig | None = None,
) -> list[int]:
    """Classify the glyph images of one document in a single batch."""
    return apply_model(get_descriptors(images), config)


def create_model(
    samples: Sequence[TrainingSample],
    config: ModelStoreConfig | None = None,
    svm_options: Mapping[str, object] | None = None,
    kernel_options: KernelOptions | Mapping[str, object] | None = None,
    *,
    paths: ModelPaths | None = None,
) -> TrainedClassifier:
    """Train a classifier and persist it.

    Without `paths`, the target is resolved before training the same way
    inference resolves it, so the environment variables take precedence over
    `config`. Explicit `paths` are written as given.
    """
    if paths is None:
        paths = store.resolve_model_paths(config)
    trained = train(samples, svm_options, kernel_options)
    store.write_artifacts(paths, trained)
    return trained


def _label_from_metadata(metadata: Mapping[str, object], source: Path) -> int:
    label = metadata.get("label")
    if isinstance(label, str) and len(label) == 1:
        return ord(label)
    if isinstance(label, int) and not isinstance(label, bool):
        return label
    raise ValueError(f"Missing or invalid label in metadata for {source}.")


def load_training_samples(directory: Path | str) -> list[TrainingSample]:
    """Build training samples from a directory of labelled glyph images.

    Each image needs a `.json` sidecar with a `label` (character or code
    point); the optional `card` groups glyphs of one document so their height
    feature is normalized together.
    """
    entries = read_images(directory)
    labels = [
        _label_from_metadata(entry.metadata, entry.file_path) for entry in entries
    ]
    cards = [entry.metadata.get("card") for entry in entries]
    descriptors = descriptors_by_card([entry.image for entry in entries], cards)
    logger.info("Loaded %d training glyphs from %s", len(entries), directory)
    return [
        TrainingSample(descriptor=descriptor, label=label, card=card)
        for descriptor, label, card in zip(descriptors, labels, cards, strict=True)
    ]

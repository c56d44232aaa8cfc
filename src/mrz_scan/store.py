import hashlib
import logging
import os
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

import joblib
import numpy as np
from pydantic import ValidationError

from mrz_scan.errors import (
    ArtifactLoadError,
    ArtifactMismatchError,
    ArtifactNotFoundError,
    ArtifactWriteError,
    InvalidModelPathsError,
)
from mrz_scan.models import (
    KernelOptions,
    ModelArtifacts,
    ModelPaths,
    ModelStoreConfig,
    TrainedClassifier,
    TrainingMode,
)

logger = logging.getLogger(__name__)

DESCRIPTORS_ENV_VAR = "MRZ_SCAN_DESCRIPTORS_PATH"
MODEL_ENV_VAR = "MRZ_SCAN_MODEL_PATH"
MODELS_DIRNAME = "mrz-models"
PACKAGED_MODELS_DIR = Path(__file__).parent / "models"

# (paths, must_exist) pairs in priority order.
Candidate = tuple[ModelPaths, bool]
Resolver = Callable[[ModelStoreConfig, Mapping[str, str]], Iterable[Candidate]]

_default_config = ModelStoreConfig()


def _deployment_dirs() -> tuple[Path, ...]:
    cwd = Path.cwd()
    return (
        Path("/var/task/.next/static") / MODELS_DIRNAME,
        Path("/var/task/static") / MODELS_DIRNAME,
        cwd / ".next" / "static" / MODELS_DIRNAME,
        cwd / "public" / MODELS_DIRNAME,
        PACKAGED_MODELS_DIR,
    )


def _paths_in_dir(directory: Path, model_name: str) -> ModelPaths:
    return ModelPaths(
        descriptors_path=directory / f"{model_name}.svm.descriptors",
        model_path=directory / f"{model_name}.svm.model",
    )


def _environment_candidates(
    config: ModelStoreConfig,
    environ: Mapping[str, str],
) -> Iterable[Candidate]:
    descriptors = environ.get(DESCRIPTORS_ENV_VAR, "").strip()
    model = environ.get(MODEL_ENV_VAR, "").strip()
    if descriptors and model:
        yield ModelPaths(descriptors_path=descriptors, model_path=model), False
    elif descriptors or model:
        logger.warning(
            "Ignoring model path environment: both %s and %s must be set.",
            DESCRIPTORS_ENV_VAR,
            MODEL_ENV_VAR,
        )


def _injected_candidates(
    config: ModelStoreConfig,
    environ: Mapping[str, str],
) -> Iterable[Candidate]:
    if config.paths is not None:
        yield config.paths, False


def _filesystem_candidates(
    config: ModelStoreConfig,
    environ: Mapping[str, str],
) -> Iterable[Candidate]:
    directories = config.candidate_dirs
    if directories is None:
        directories = _deployment_dirs()
    for directory in directories:
        yield _paths_in_dir(directory, config.model_name), True


_RESOLVERS: tuple[Resolver, ...] = (
    _environment_candidates,
    _injected_candidates,
    _filesystem_candidates,
)


def resolve_model_paths(
    config: ModelStoreConfig | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> ModelPaths:
    """Resolve the descriptors/model pair for this invocation.

    Sources are tried in order: the two environment variables, paths injected
    through the config, then the deployment directories and the models
    directory shipped inside the package. Explicit paths are returned as
    given; a directory candidate only counts when both files exist.

    Args:
        config: Store configuration; defaults to the process-wide one.
        environ: Environment mapping; defaults to `os.environ`.
    Returns:
        The first resolvable pair.
    Raises:
        ArtifactNotFoundError: When no source yields a pair.
    """
    if config is None:
        config = _default_config
    environ = os.environ if environ is None else environ
    attempted: list[tuple[Path, Path]] = []
    for resolver in _RESOLVERS:
        for paths, must_exist in resolver(config, environ):
            attempted.append(paths.as_pair())
            if not must_exist or (
                paths.descriptors_path.exists() and paths.model_path.exists()
            ):
                logger.info(
                    "Using model files at %s and %s", *paths.as_pair()
                )
                return paths
    error = ArtifactNotFoundError(attempted)
    logger.error("%s", error)
    raise error


def _coerce_model_paths(paths: ModelPaths | Mapping[str, object]) -> ModelPaths:
    if isinstance(paths, ModelPaths):
        return paths
    if not isinstance(paths, Mapping):
        raise InvalidModelPathsError(
            "Model paths must be a mapping with descriptors and model entries."
        )
    try:
        return ModelPaths.model_validate(dict(paths))
    except ValidationError as exc:
        raise InvalidModelPathsError(
            f"Both descriptors and model paths are required: {exc}"
        ) from exc


def set_model_paths(paths: ModelPaths | Mapping[str, object]) -> ModelStoreConfig:
    """Inject artifact paths into the process-wide store configuration.

    Validation happens here rather than at first use. The last call wins;
    set this once before any train or predict call.
    """
    global _default_config
    _default_config = _default_config.model_copy(
        update={"paths": _coerce_model_paths(paths)}
    )
    return _default_config


def reset_model_paths() -> None:
    global _default_config
    _default_config = ModelStoreConfig()


def get_default_config() -> ModelStoreConfig:
    return _default_config


def _fingerprint(descriptors: np.ndarray, kernel_options: KernelOptions) -> str:
    digest = hashlib.sha256()
    digest.update(np.ascontiguousarray(descriptors, dtype=np.float64).tobytes())
    digest.update(str(descriptors.shape).encode("ascii"))
    digest.update(kernel_options.model_dump_json().encode("utf-8"))
    return digest.hexdigest()


def write_artifacts(paths: ModelPaths, trained: TrainedClassifier) -> str:
    """Persist a trained classifier as a descriptors file and a model file.

    Both files carry the same fingerprint so a mismatched pair is rejected on
    load.

    Returns:
        The fingerprint written to both files.
    """
    descriptors = np.asarray(trained.descriptors, dtype=np.float64)
    fingerprint = _fingerprint(descriptors, trained.kernel_options)
    try:
        for path in paths.as_pair():
            path.parent.mkdir(parents=True, exist_ok=True)
        # Written through a handle so numpy keeps the name without adding .npz.
        with paths.descriptors_path.open("wb") as handle:
            np.savez(
                handle,
                descriptors=descriptors,
                kernel_options=np.array(trained.kernel_options.model_dump_json()),
                fingerprint=np.array(fingerprint),
            )
        joblib.dump(
            {
                "classifier": trained.classifier,
                "training_mode": trained.training_mode.value,
                "fingerprint": fingerprint,
            },
            paths.model_path,
        )
    except OSError as exc:
        raise ArtifactWriteError(
            f"Error writing model files: {exc}",
            paths.descriptors_path,
            paths.model_path,
        ) from exc
    logger.info("Model files written to %s and %s", *paths.as_pair())
    return fingerprint


def _read_descriptors(path: Path) -> tuple[np.ndarray, KernelOptions, str]:
    with np.load(path, allow_pickle=False) as archive:
        descriptors = np.array(archive["descriptors"], dtype=np.float64)
        kernel_options = KernelOptions.model_validate_json(
            archive["kernel_options"].item()
        )
        fingerprint = str(archive["fingerprint"].item())
    return descriptors, kernel_options, fingerprint


def _read_model(path: Path) -> dict[str, object]:
    payload = joblib.load(path)
    if not isinstance(payload, dict) or "classifier" not in payload:
        raise ValueError(f"{path} does not contain a serialized classifier.")
    return payload


def load_artifacts(paths: ModelPaths) -> ModelArtifacts:
    """Load the descriptors file and model file of one training run.

    Raises:
        ArtifactLoadError: When either file is missing or unreadable.
        ArtifactMismatchError: When the two files come from different runs.
    """
    descriptors_path, model_path = paths.as_pair()
    try:
        descriptors, kernel_options, fingerprint = _read_descriptors(
            descriptors_path
        )
        payload = _read_model(model_path)
        training_mode = TrainingMode(payload.get("training_mode"))
    except Exception as exc:
        logger.error(
            "Error loading model files (descriptors: %s, model: %s): %s",
            descriptors_path,
            model_path,
            exc,
        )
        raise ArtifactLoadError(
            f"Error loading model files: {exc}",
            descriptors_path,
            model_path,
        ) from exc
    if payload.get("fingerprint") != fingerprint:
        raise ArtifactMismatchError(
            "Descriptors and model files belong to different training runs",
            descriptors_path,
            model_path,
        )
    return ModelArtifacts(
        classifier=payload["classifier"],
        descriptors=descriptors,
        kernel_options=kernel_options,
        training_mode=training_mode,
        fingerprint=fingerprint,
    )

from mrz_scan.errors import (
    ArtifactLoadError,
    ArtifactMismatchError,
    ArtifactNotFoundError,
    ArtifactWriteError,
    InvalidModelPathsError,
    MrzScanError,
)
from mrz_scan.models import (
    KernelOptions,
    ModelPaths,
    ModelStoreConfig,
    TrainedClassifier,
    TrainingMode,
    TrainingSample,
)
from mrz_scan.ocr import MrzOcrResult, Region, SegmentationResult, mrz_ocr
from mrz_scan.store import reset_model_paths, resolve_model_paths, set_model_paths
from mrz_scan.svm import (
    apply_model,
    create_model,
    load_training_samples,
    predict_images,
    train,
)

__all__ = [
    "ArtifactLoadError",
    "ArtifactMismatchError",
    "ArtifactNotFoundError",
    "ArtifactWriteError",
    "InvalidModelPathsError",
    "KernelOptions",
    "ModelPaths",
    "ModelStoreConfig",
    "MrzOcrResult",
    "MrzScanError",
    "Region",
    "SegmentationResult",
    "TrainedClassifier",
    "TrainingMode",
    "TrainingSample",
    "apply_model",
    "create_model",
    "load_training_samples",
    "mrz_ocr",
    "predict_images",
    "reset_model_paths",
    "resolve_model_paths",
    "set_model_paths",
    "train",
]

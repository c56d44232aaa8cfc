from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal

import numpy as np
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from sklearn.svm import SVC, OneClassSVM


class TrainingMode(str, Enum):
    """Solver configuration picked from the label cardinality."""

    ONE_CLASS = "one_class"
    MULTI_CLASS = "multi_class"


class KernelOptions(BaseModel):
    """Kernel evaluated outside the solver for precomputed-kernel training.

    Stored next to the training descriptors so inference rebuilds the exact
    kernel used at training time.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal[
        "linear", "gaussian", "rbf", "polynomial", "poly", "sigmoid", "laplacian"
    ] = "linear"
    sigma: float = Field(default=1.0, gt=0)
    gamma: float | None = None
    degree: int = Field(default=1, ge=1)
    scale: float = 1.0
    alpha: float = 0.01
    constant: float | None = None


@dataclass(frozen=True)
class TrainingSample:
    """Labelled glyph descriptor.

    `label` is the character code point. `card` only scopes height
    normalization and is never persisted with the model.
    """

    descriptor: np.ndarray
    label: int
    card: object = None


@dataclass(frozen=True)
class TrainedClassifier:
    """Fitted classifier plus everything needed to rebuild its test kernel."""

    classifier: SVC | OneClassSVM
    descriptors: np.ndarray
    kernel_options: KernelOptions
    training_mode: TrainingMode


@dataclass(frozen=True)
class ModelArtifacts:
    """Model artifact pair read back from disk."""

    classifier: SVC | OneClassSVM
    descriptors: np.ndarray
    kernel_options: KernelOptions
    training_mode: TrainingMode
    fingerprint: str


class ModelPaths(BaseModel):
    """Location of a descriptors file and its paired model file."""

    model_config = ConfigDict(frozen=True)

    descriptors_path: Path = Field(
        validation_alias=AliasChoices("descriptors_path", "descriptors")
    )
    model_path: Path = Field(validation_alias=AliasChoices("model_path", "model"))

    @field_validator("descriptors_path", "model_path", mode="before")
    @classmethod
    def _reject_empty(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("path must be a non-empty string")
        return value

    def as_pair(self) -> tuple[Path, Path]:
        return self.descriptors_path, self.model_path


class ModelStoreConfig(BaseModel):
    """Where model artifacts are looked up and written.

    `candidate_dirs=None` selects the deployment directories at resolution
    time, so the working directory is read when the lookup happens.
    """

    model_config = ConfigDict(frozen=True)

    paths: ModelPaths | None = None
    candidate_dirs: tuple[Path, ...] | None = None
    model_name: str = "ESC-v2"

from collections.abc import Sequence
from pathlib import Path


class MrzScanError(RuntimeError):
    """Base class for errors raised by mrz_scan."""


class InvalidModelPathsError(MrzScanError, ValueError):
    """Injected model paths are missing a required entry."""


class ArtifactNotFoundError(MrzScanError):
    """No descriptors/model path pair could be resolved."""

    def __init__(self, attempted: Sequence[tuple[Path, Path]]) -> None:
        self.attempted = list(attempted)
        listing = "\n".join(
            f"  - descriptors: {descriptors}\n    model: {model}"
            for descriptors, model in self.attempted
        )
        super().__init__(
            "MRZ model files not found in any expected location. Tried:\n" + listing
        )


class ArtifactLoadError(MrzScanError):
    """Model artifacts exist but could not be read."""

    def __init__(self, message: str, descriptors_path: Path, model_path: Path) -> None:
        self.descriptors_path = descriptors_path
        self.model_path = model_path
        super().__init__(
            f"{message}. Tried paths:\n"
            f"  - descriptors: {descriptors_path}\n"
            f"  - model: {model_path}"
        )


class ArtifactMismatchError(ArtifactLoadError):
    """Descriptors and model files were not produced by the same training run."""


class ArtifactWriteError(MrzScanError):
    """Model artifacts could not be persisted."""

    def __init__(self, message: str, descriptors_path: Path, model_path: Path) -> None:
        self.descriptors_path = descriptors_path
        self.model_path = model_path
        super().__init__(
            f"{message}. Target paths:\n"
            f"  - descriptors: {descriptors_path}\n"
            f"  - model: {model_path}"
        )

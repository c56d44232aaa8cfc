from collections.abc import Iterator
from pathlib import Path

import pytest

from mrz_scan.models import ModelPaths, ModelStoreConfig
from mrz_scan.store import reset_model_paths


@pytest.fixture(autouse=True)
def _isolated_model_store(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("MRZ_SCAN_DESCRIPTORS_PATH", raising=False)
    monkeypatch.delenv("MRZ_SCAN_MODEL_PATH", raising=False)
    reset_model_paths()
    yield
    reset_model_paths()


@pytest.fixture
def model_paths(tmp_path: Path) -> ModelPaths:
    models_dir = tmp_path / "models"
    return ModelPaths(
        descriptors_path=models_dir / "test.svm.descriptors",
        model_path=models_dir / "test.svm.model",
    )


@pytest.fixture
def store_config(model_paths: ModelPaths) -> ModelStoreConfig:
    return ModelStoreConfig(paths=model_paths, candidate_dirs=())

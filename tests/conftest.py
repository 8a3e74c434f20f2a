import json
from pathlib import Path
from typing import Iterable, List, Optional

import pytest

from packager.core import archiver as archiver_module
from packager.core.options import StreamingOptions
from packager.errors import PackagingIOError
from packager.performance.memory_probe import MemoryProbe, MemorySample
from packager.services.packaging_service import StreamingPackagingService


class FakeMemoryProbe(MemoryProbe):
    """Deterministic probe: cycles through scripted resident sizes, 1ms apart."""

    def __init__(self, resident: Optional[Iterable[int]] = None):
        self.resident = list(resident or [1000, 3000, 2000])
        self.labels: List[str] = []
        self._clock = 1_700_000_000_000

    def sample(self, label: str) -> MemorySample:
        value = self.resident[len(self.labels) % len(self.resident)]
        self.labels.append(label)
        self._clock += 1
        return MemorySample(
            timestamp_millis=self._clock,
            resident_bytes=value,
            heap_used_bytes=value // 2,
            heap_total_bytes=value * 2,
            external_bytes=0,
            label=label
        )


def make_template(resources: int = 3, parameters: int = 2, outputs: int = 1) -> dict:
    return {
        "$schema": "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#",
        "contentVersion": "1.0.0.0",
        "parameters": {f"param{i}": {"type": "string"} for i in range(parameters)},
        "resources": [
            {"type": "Microsoft.Storage/storageAccounts", "name": f"storage{i}"}
            for i in range(resources)
        ],
        "outputs": {f"out{i}": {"type": "string", "value": "x"} for i in range(outputs)},
    }


def write_json(path: Path, document) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return path


def failing_on(file_name: str):
    """Archive chunk source that fails when it reaches the named file."""
    real_iter_chunks = archiver_module.iter_chunks

    async def iter_chunks(path, chunk_size_bytes):
        if Path(path).name == file_name:
            raise PackagingIOError("Failed to read file: device error", path=path)
        async for chunk in real_iter_chunks(path, chunk_size_bytes):
            yield chunk

    return iter_chunks


@pytest.fixture
def temp_base(tmp_path) -> Path:
    return tmp_path / "work" / "streaming"


@pytest.fixture
def options(temp_base) -> StreamingOptions:
    return StreamingOptions(
        max_memory_bytes=10 * 1024 * 1024 * 1024,
        chunk_size_bytes=64,
        memory_monitoring_enabled=True,
        temp_directory=temp_base,
    )


@pytest.fixture
def probe() -> FakeMemoryProbe:
    return FakeMemoryProbe()


@pytest.fixture
def service(options, probe) -> StreamingPackagingService:
    return StreamingPackagingService(options, probe=probe)


@pytest.fixture
def template_file(tmp_path) -> Path:
    return write_json(tmp_path / "templates" / "mainTemplate.json", make_template())

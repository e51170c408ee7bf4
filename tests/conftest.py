import os

import pytest

from moment_companion.capture import CaptureStrategy
from moment_companion.config import CompanionSettings, Config
from moment_companion.server import CompanionServer
from moment_companion.service import CompanionService

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class FakeStrategy(CaptureStrategy):
    """Writes a small PNG instead of calling a screenshot utility."""

    name = "fake"

    def __init__(self):
        super().__init__(runner=None)
        self.captured = []

    async def capture_screen(self, path):
        self.captured.append(path)
        with open(path, "wb") as handle:
            handle.write(PNG_BYTES)


@pytest.fixture
def save_dir(tmp_path):
    path = tmp_path / "Moment"
    path.mkdir()
    return str(path)


@pytest.fixture
def service(tmp_path, save_dir):
    config = Config(save_dir=save_dir, capture_mode="screen")
    return CompanionService(
        str(tmp_path / "config.json"),
        FakeStrategy(),
        config=config,
        home=str(tmp_path),
    )


@pytest.fixture
def settings(tmp_path):
    return CompanionSettings(
        config_path=str(tmp_path / "config.json"),
        log_dir=os.path.join(str(tmp_path), "logs"),
    )


@pytest.fixture
def server(service, settings):
    return CompanionServer(service, settings)

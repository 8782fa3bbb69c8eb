"""Shared pytest fixtures and fakes."""

import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from overlay.models import BoxConvention, CapturedFrame, Detection  # noqa: E402


class RecordingUI:
    """UI port that remembers everything it was told."""

    def __init__(self, containers=("detectionsView",)):
        self.containers = set(containers)
        self.mounted = []
        self.status_text = None
        self.controls_enabled = None
        self.readout = []
        self.readout_clears = 0

    def mount_surface(self, container):
        if container not in self.containers:
            return False
        self.mounted.append(container)
        return True

    def set_status_text(self, text):
        self.status_text = text

    def set_controls_enabled(self, enabled):
        self.controls_enabled = enabled

    def clear_readout(self):
        self.readout = []
        self.readout_clears += 1

    def append_readout_line(self, line):
        self.readout.append(line)


def encode_jpeg(width=640, height=480, value=128) -> bytes:
    img = np.full((height, width, 3), value, dtype=np.uint8)
    ok, jpg = cv2.imencode(".jpg", img)
    assert ok
    return jpg.tobytes()


def cube_frame(width=640, height=480) -> CapturedFrame:
    return CapturedFrame(
        image=encode_jpeg(width, height),
        detections=[Detection("cube", 0.92, 0.1, 0.1, 0.5, 0.5)],
        convention=BoxConvention.NORMALIZED,
    )


@pytest.fixture
def ui():
    return RecordingUI()

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import cv2

from examguard.errors import PermissionDenied

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureConstraints:
    width: int = 640
    height: int = 480


class CaptureDevice(Protocol):
    def acquire(self, constraints: CaptureConstraints) -> Any:
        """Open the device. Raises ``PermissionDenied`` if it cannot be used."""
        ...

    def release(self, stream: Any) -> None: ...


class OpenCVCamera:
    """Webcam opened through ``cv2.VideoCapture``.

    Frames are never read here; holding the handle is what keeps the camera
    light on and the device reserved for the session.
    """

    def __init__(self, index: int = 0) -> None:
        self.index = index

    def acquire(self, constraints: CaptureConstraints) -> cv2.VideoCapture:
        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            raise PermissionDenied(f"Could not open camera {self.index}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)
        logger.info(f"Camera {self.index} opened at {constraints.width}x{constraints.height}")
        return cap

    def release(self, stream: cv2.VideoCapture) -> None:
        stream.release()
        logger.info(f"Camera {self.index} released")


class NullCamera:
    """Device for headless deployments: every acquisition is refused."""

    def acquire(self, constraints: CaptureConstraints) -> Any:
        raise PermissionDenied("Camera capture is disabled")

    def release(self, stream: Any) -> None:
        pass

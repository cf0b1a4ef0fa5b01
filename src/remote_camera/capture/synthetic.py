"""
Synthetic capture backend producing a generated test card.

Used for headless runs and demos where no camera device is attached.
Shares thread control and switching with the OpenCV backend.
"""

import logging
import math
import threading
import time
from typing import List, Dict, Any

import cv2
import numpy as np

from .controller import CameraDescriptor
from .opencv_capture import OpenCVCaptureController


logger = logging.getLogger(__name__)


class SyntheticCaptureController(OpenCVCaptureController):
    """
    Generates JPEG frames instead of reading a device.

    One camera is exposed per label in `config.synthetic_cameras`; each
    frame shows the camera label, a frame counter and the time.
    """

    def list_cameras(self) -> List[CameraDescriptor]:
        if self._cameras is None:
            self._cameras = [
                CameraDescriptor(index=i, facing_label=label)
                for i, label in enumerate(self.config.synthetic_cameras)
            ]
        return list(self._cameras)

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats['backend'] = 'synthetic'
        return stats

    def _run_capture_session(self, index: int, stop_event: threading.Event) -> None:
        labels = self.config.synthetic_cameras
        label = labels[index] if 0 <= index < len(labels) else f"Camera {index}"

        if not stop_event.is_set():
            self._status = "Streaming"
        logger.info("Synthetic camera %d (%s) opened", index, label)
        frame_interval = 1.0 / max(1, self.config.target_fps)
        counter = 0

        while not stop_event.is_set():
            started = time.time()
            self._emit(_render_test_card(
                label,
                counter,
                self.config.width,
                self.config.height,
                self.config.jpeg_quality,
            ))
            counter += 1
            remaining = frame_interval - (time.time() - started)
            if remaining > 0:
                stop_event.wait(remaining)

        logger.info("Synthetic camera %d released", index)


def _render_test_card(
    label: str,
    counter: int,
    width: int = 640,
    height: int = 480,
    quality: int = 70
) -> bytes:
    """
    Create a test card JPEG frame.

    Args:
        label: Camera label to display
        counter: Frame number, drives the spinner
        width: Frame width
        height: Frame height
        quality: JPEG quality

    Returns:
        bytes: JPEG encoded frame
    """
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[:] = (30, 30, 30)

    font = cv2.FONT_HERSHEY_SIMPLEX
    font_scale = 0.8
    thickness = 2
    message = f"{label}  #{counter}"
    text_size, _ = cv2.getTextSize(message, font, font_scale, thickness)
    text_x = (width - text_size[0]) // 2
    text_y = (height + text_size[1]) // 2

    # Text with shadow
    cv2.putText(frame, message, (text_x + 2, text_y + 2),
                font, font_scale, (0, 0, 0), thickness + 1)
    cv2.putText(frame, message, (text_x, text_y),
                font, font_scale, (200, 200, 200), thickness)
    cv2.putText(frame, time.strftime("%H:%M:%S"), (10, height - 10),
                font, 0.5, (120, 120, 120), 1)

    # Spinner advances one step per frame
    center_y = text_y + 40
    for i in range(8):
        angle = (i + counter) * 45
        x = int(width // 2 + 20 * math.cos(math.radians(angle)))
        y = int(center_y + 20 * math.sin(math.radians(angle)))
        brightness = 100 + int(155 * (i / 8))
        cv2.circle(frame, (x, y), 4, (brightness, brightness, brightness), -1)

    encode_params = [cv2.IMWRITE_JPEG_QUALITY, quality]
    _, jpeg = cv2.imencode('.jpg', frame, encode_params)

    return jpeg.tobytes()

"""
Capture module for camera frames.

Components:
- FrameQueue: Bounded drop-oldest queue between capture and streaming
- CaptureController: Contract for camera backends
- OpenCVCaptureController: Local camera devices through OpenCV
- SyntheticCaptureController: Generated test card, no hardware needed
"""

from .frame_queue import FrameQueue
from .controller import CaptureController, CameraDescriptor
from .opencv_capture import OpenCVCaptureController
from .synthetic import SyntheticCaptureController

__all__ = [
    'FrameQueue',
    'CaptureController',
    'CameraDescriptor',
    'OpenCVCaptureController',
    'SyntheticCaptureController',
]

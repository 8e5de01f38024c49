"""
Error Types
===========

Exception classes raised inside GameWatch components.

None of these are allowed to escape the poll loop. Boundary components
(analyzers, preprocessing, dispatcher) catch them and turn them into
defined fallbacks:

    - AnalyzerInitError: permanent, surfaced through every later
      DetectionResult.reason
    - RemoteAnalysisError / VisionModelError: single-tick failure,
      reported as a non-disconnected result with confidence 0
    - DeliveryError: notification transport failure while online,
      logged and not retried
    - CaptureError: no frame for this tick, tick skipped
    - ImageDecodeError / ImageEncodeError: codec failures
"""


class AnalyzerInitError(Exception):
    """Raised when an analyzer backend cannot be initialized."""
    pass


class RemoteAnalysisError(Exception):
    """Raised when the remote analysis endpoint returns an unusable reply."""
    pass


class VisionModelError(Exception):
    """Raised when the vision model call fails."""
    pass


class DeliveryError(Exception):
    """Raised when a notification cannot be delivered."""
    pass


class CaptureError(Exception):
    """Raised when a capture source cannot supply a frame."""
    pass


class ImageDecodeError(Exception):
    """Raised when image decoding fails."""
    pass


class ImageEncodeError(Exception):
    """Raised when image encoding fails."""
    pass

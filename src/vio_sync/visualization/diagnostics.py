"""On-demand publication of the tracker's diagnostic image."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..interfaces import DiagnosticSink, FeatureTracker


class DiagnosticsPublisher:
    """Publishes the track image only when a sink has subscribers.

    The subscriber check runs before the tracker composes its image, so no
    drawing work happens while nobody is watching.
    """

    def __init__(self, tracker: FeatureTracker, sink: DiagnosticSink | None) -> None:
        self._tracker = tracker
        self._sink = sink
        self._num_published = 0

    def publish_extra(self, timestamp: float) -> bool:
        """Publish the current track image if anyone consumes it.

        Returns:
            True if an image was published
        """
        if self._sink is None or self._sink.num_subscribers() <= 0:
            return False

        image = self._tracker.get_visualization_image()
        self._sink.publish(image, timestamp)
        self._num_published += 1
        return True

    @property
    def num_published(self) -> int:
        """Number of images published so far."""
        return self._num_published

"""Unit tests for the error event bus."""

import unittest
from unittest.mock import Mock

from app.events import (
    ErrorCategory,
    ErrorEvent,
    ErrorEventBus,
    ErrorSeverity,
    get_error_bus,
    publish_error,
)


def _event(category=ErrorCategory.SYSTEM, severity=ErrorSeverity.ERROR, message="Test", source="Test"):
    return ErrorEvent(category=category, severity=severity, message=message, source=source)


class TestErrorEvent(unittest.TestCase):
    """Test ErrorEvent dataclass."""

    def test_error_event_creation(self):
        """ErrorEvent keeps every field it is given."""
        event = ErrorEvent(
            category=ErrorCategory.CAPTURE,
            severity=ErrorSeverity.WARNING,
            message="Encode failed",
            source="CaptureCoach",
            exception=ValueError("test"),
            metadata={"capture_id": 3},
        )

        self.assertEqual(event.category, ErrorCategory.CAPTURE)
        self.assertEqual(event.severity, ErrorSeverity.WARNING)
        self.assertEqual(event.message, "Encode failed")
        self.assertEqual(event.source, "CaptureCoach")
        self.assertIsInstance(event.exception, ValueError)
        self.assertEqual(event.metadata, {"capture_id": 3})
        self.assertIsInstance(event.timestamp, float)

    def test_error_event_string_representation(self):
        event = ErrorEvent(
            category=ErrorCategory.CAMERA,
            severity=ErrorSeverity.ERROR,
            message="Camera permission denied",
            source="CaptureCoach",
            exception=RuntimeError("denied"),
        )

        str_repr = str(event)
        self.assertIn("ERROR", str_repr)
        self.assertIn("camera", str_repr)
        self.assertIn("Camera permission denied", str_repr)
        self.assertIn("CaptureCoach", str_repr)
        self.assertIn("RuntimeError", str_repr)


class TestErrorEventBus(unittest.TestCase):
    """Test ErrorEventBus functionality."""

    def setUp(self):
        self.bus = ErrorEventBus()

    def test_subscribe_to_all_errors(self):
        callback = Mock()
        self.bus.subscribe(callback)

        event = _event(category=ErrorCategory.ANALYSIS)
        self.bus.publish(event)

        callback.assert_called_once_with(event)

    def test_subscribe_to_specific_category(self):
        """Category subscribers only see their category."""
        callback = Mock()
        self.bus.subscribe(callback, category=ErrorCategory.CAMERA)

        camera_event = _event(category=ErrorCategory.CAMERA)
        self.bus.publish(camera_event)
        callback.assert_called_once_with(camera_event)

        self.bus.publish(_event(category=ErrorCategory.CAPTURE))
        self.assertEqual(callback.call_count, 1)

    def test_unsubscribe(self):
        callback = Mock()
        self.bus.subscribe(callback)
        self.bus.publish(_event(message="Test 1"))
        callback.assert_called_once()

        self.bus.unsubscribe(callback)
        self.bus.publish(_event(message="Test 2"))

        self.assertEqual(callback.call_count, 1)

    def test_unsubscribe_unknown_callback_is_noop(self):
        self.bus.unsubscribe(Mock(), category=ErrorCategory.CAMERA)
        self.bus.unsubscribe(Mock())

    def test_event_history_is_chronological(self):
        for i in range(5):
            self.bus.publish(_event(message=f"Error {i}"))

        history = self.bus.get_history()
        self.assertEqual(len(history), 5)
        for i, event in enumerate(history):
            self.assertIn(f"Error {i}", event.message)

    def test_history_filtered_by_category(self):
        for category in [ErrorCategory.CAMERA, ErrorCategory.CAPTURE, ErrorCategory.ORIENTATION]:
            self.bus.publish(_event(category=category, message=f"{category.value} error"))

        camera_history = self.bus.get_history(category=ErrorCategory.CAMERA)
        self.assertEqual(len(camera_history), 1)
        self.assertEqual(camera_history[0].category, ErrorCategory.CAMERA)

    def test_history_limit(self):
        bus = ErrorEventBus(max_history=10)
        for i in range(25):
            bus.publish(_event(severity=ErrorSeverity.INFO, message=f"Event {i}"))

        history = bus.get_history()
        self.assertEqual(len(history), 10)
        self.assertIn("Event 24", history[-1].message)
        self.assertIn("Event 15", history[0].message)

    def test_error_counts(self):
        for _ in range(3):
            self.bus.publish(_event(category=ErrorCategory.CAMERA))
        for _ in range(2):
            self.bus.publish(_event(category=ErrorCategory.CAPTURE, severity=ErrorSeverity.WARNING))

        counts = self.bus.get_error_counts()
        self.assertEqual(counts[ErrorCategory.CAMERA], 3)
        self.assertEqual(counts[ErrorCategory.CAPTURE], 2)

    def test_clear_history(self):
        for i in range(5):
            self.bus.publish(_event(message=f"Event {i}"))

        self.bus.clear_history()

        self.assertEqual(len(self.bus.get_history()), 0)
        self.assertEqual(len(self.bus.get_error_counts()), 0)

    def test_subscriber_exception_does_not_crash(self):
        """A failing subscriber must not stop delivery to the others."""

        def failing_callback(event):
            raise RuntimeError("Subscriber failed")

        normal_callback = Mock()
        self.bus.subscribe(failing_callback)
        self.bus.subscribe(normal_callback)

        event = _event()
        self.bus.publish(event)

        normal_callback.assert_called_once_with(event)


class TestGlobalErrorBus(unittest.TestCase):
    """Test global error bus functions."""

    def test_get_error_bus_singleton(self):
        self.assertIs(get_error_bus(), get_error_bus())

    def test_publish_error_convenience_function(self):
        callback = Mock()
        bus = get_error_bus()
        bus.subscribe(callback)
        try:
            returned = publish_error(
                category=ErrorCategory.ORIENTATION,
                severity=ErrorSeverity.WARNING,
                message="Orientation lost",
                source="TestSource",
                sensor="gyro",
            )
        finally:
            bus.unsubscribe(callback)

        callback.assert_called_once()
        event = callback.call_args[0][0]
        self.assertIs(event, returned)
        self.assertEqual(event.category, ErrorCategory.ORIENTATION)
        self.assertEqual(event.severity, ErrorSeverity.WARNING)
        self.assertEqual(event.metadata["sensor"], "gyro")

    def test_publish_error_to_explicit_bus(self):
        bus = ErrorEventBus()
        publish_error(ErrorCategory.CONFIG, ErrorSeverity.INFO, "Using defaults", "Test", bus=bus)

        self.assertEqual(bus.get_error_counts(), {ErrorCategory.CONFIG: 1})


if __name__ == "__main__":
    unittest.main()

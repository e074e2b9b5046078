from .mock_ut181a import MockRecord, MockTransport, MockUT181A, demo_meter

__all__ = ["MockRecord", "MockTransport", "MockUT181A", "demo_meter"]

"""Token estimation helpers."""

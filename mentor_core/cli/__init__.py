"""Command-line interface for mentor-core."""

"""
mentor-core: Adaptive Learning Intelligence Core.

Turns a stream of coding-exercise attempts into:
- a deterministic diagnosis of why an attempt failed (diagnosis)
- tracked mistake patterns with recurrence detection (mistakes)
- a longitudinal cognitive profile per learner (profile)
- ranked personalised missions and next-exercise selection (missions, adaptive)
"""

__version__ = "1.0.0"

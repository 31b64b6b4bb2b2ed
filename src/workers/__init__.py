"""
Background execution of long-running optimizations.
"""

from workers.jobs import SequenceJob, SequenceJobManager

__all__ = ["SequenceJob", "SequenceJobManager"]

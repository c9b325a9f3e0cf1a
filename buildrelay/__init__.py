"""buildrelay — IRC relay for buildbot results, commits and link titles."""

__version__ = "0.3.0"

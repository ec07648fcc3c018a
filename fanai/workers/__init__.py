# Workers package - in-process background jobs

from fanai.workers.runner import BackgroundRunner

__all__ = ["BackgroundRunner"]

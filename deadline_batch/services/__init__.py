"""deadline_batch.services -- generation runner and status refresher."""

from deadline_batch.services.runner import GenerationRunner
from deadline_batch.services.status_refresher import StatusRefresher

__all__ = ["GenerationRunner", "StatusRefresher"]

"""arq worker settings module.

Import path for arq CLI: arq classquest.workers.settings.WorkerSettings
"""

from __future__ import annotations

from classquest.workers.stipend_worker import WorkerSettings

__all__ = ["WorkerSettings"]

from rewardwatch.modules.updates.job import SweepReport, UpdateJob, UserSweepResult
from rewardwatch.modules.updates.scheduler import UpdateScheduler

__all__ = ["UpdateJob", "UpdateScheduler", "SweepReport", "UserSweepResult"]

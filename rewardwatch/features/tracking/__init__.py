from rewardwatch.features.tracking.cog import TrackingCog

__all__ = ["TrackingCog"]

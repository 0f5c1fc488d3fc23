from rewardwatch.ui.embeds import CampaignGroup, EmbedColor, EmbedFactory

__all__ = ["EmbedFactory", "EmbedColor", "CampaignGroup"]

from .channels import CHANNELS, ChannelConfig, channel_for_sheet, get_channel, iter_channels

__all__ = ["CHANNELS", "ChannelConfig", "channel_for_sheet", "get_channel", "iter_channels"]

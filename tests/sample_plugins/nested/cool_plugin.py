"""Nested plugin used to ensure recursive discovery works."""

from dataclasses import dataclass, field


@dataclass
class BannerPlugin:
    name: str = "banner_nested"
    banners: list = field(default_factory=list)

    def on_narration(self, text, channel):
        if channel == "screen":
            self.banners.append(text)


def setup_plugin(manager, exposed):
    plugin = BannerPlugin()
    manager.expose("banner_plugin", plugin)
    return plugin

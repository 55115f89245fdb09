from ridecrew.config.settings import settings

__all__ = ["settings"]

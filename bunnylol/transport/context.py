"""Context object shared across worker threads."""

from dataclasses import dataclass
from typing import Optional

from bunnylol.bootstrap.config import ServerConfig
from bunnylol.bootstrap.settings import BunnylolConfig
from bunnylol.commands.registry import CommandRegistry
from bunnylol.domain.history import History
from bunnylol.handlers.landing_page import LandingPage
from bunnylol.lifecycle.state import ServerLifecycle
from bunnylol.transport.connection_limiter import ConnectionLimiter


@dataclass
class WorkerContext:
    """Dependencies shared across handler threads."""

    registry: CommandRegistry
    landing_page: LandingPage
    settings: Optional[BunnylolConfig] = None
    history: Optional[History] = None
    connection_limiter: Optional[ConnectionLimiter] = None
    lifecycle: Optional[ServerLifecycle] = None
    config: Optional[ServerConfig] = None

    @classmethod
    def build(
        cls,
        registry: CommandRegistry,
        settings: BunnylolConfig,
        **kwargs,
    ) -> "WorkerContext":
        """Wire the landing page and history from the loaded configuration."""
        landing_page = LandingPage(
            settings.server.get_display_url(), registry.commands()
        )
        kwargs.setdefault("history", History.from_config(settings))
        return cls(
            registry=registry,
            landing_page=landing_page,
            settings=settings,
            **kwargs,
        )

from typing import Final

from pydantic import Field

from unitwatch import __version__
from unitwatch.config import SERVICES_PLUGIN_ID, TIMERS_PLUGIN_ID
from unitwatch.utils import BaseModel


PLUGIN_AUTHOR: Final[str] = 'ToruAI'


class PluginMetadata(BaseModel):
    """Static description of a plugin, printed for the plugin host.

    Args:
        id: Unique plugin identifier
        name: Display name
        version: Plugin version
        author: Plugin author
        icon: Icon shown in the host navigation
        route: Frontend route the host mounts the plugin on
        description: One-line summary returned by the info route
    """
    model_config = {'frozen': True}

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    version: str = Field(__version__)
    author: str | None = Field(PLUGIN_AUTHOR)
    icon: str = Field('')
    route: str = Field(..., pattern=r'^/')
    description: str = Field('', exclude=True)

    def info(self) -> dict[str, str]:
        """Body of the plugin info route.
        """
        return {
            'plugin': self.id,
            'version': self.version,
            'description': self.description,
        }


SERVICES_METADATA: Final[PluginMetadata] = PluginMetadata(
    id=SERVICES_PLUGIN_ID,
    name='Systemd Services',
    icon='⚙️',
    route=f'/{SERVICES_PLUGIN_ID}',
    description='Monitor and control systemd services',
)

TIMERS_METADATA: Final[PluginMetadata] = PluginMetadata(
    id=TIMERS_PLUGIN_ID,
    name='Scheduled Tasks',
    icon='⏰',
    route=f'/{TIMERS_PLUGIN_ID}',
    description='Monitor and control systemd timers for scheduled tasks',
)

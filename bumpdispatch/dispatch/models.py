"""Transport-independent notification payloads and destinations."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class NotificationKind(str, Enum):
    """Kinds of notification a destination can accept."""
    NEW_LISTING = "new_listing"
    BUMP = "bump"
    STATUS = "status"


@dataclass(frozen=True)
class Destination:
    """An active external channel registration."""
    server_id: str
    channel_id: str
    kind: NotificationKind

    @property
    def id(self) -> str:
        """Opaque routing id, "server:channel"."""
        return f"{self.server_id}:{self.channel_id}"


@dataclass
class PayloadField:
    """Single name/value field of a notification."""
    name: str
    value: str
    inline: bool = True


@dataclass
class LinkAction:
    """Optional link button attached to a notification."""
    label: str
    url: str


@dataclass
class NotificationPayload:
    """A rendered notification, built by the pure renderers in utils.formatting."""
    kind: NotificationKind
    title: str
    description: str
    color: int
    fields: List[PayloadField] = field(default_factory=list)
    link: Optional[LinkAction] = None
    thumbnail_url: Optional[str] = None
    footer: Optional[str] = None
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Plain JSON-friendly form, stored with status mappings."""
        return {
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "color": self.color,
            "fields": [
                {"name": f.name, "value": f.value, "inline": f.inline} for f in self.fields
            ],
            "link": {"label": self.link.label, "url": self.link.url} if self.link else None,
            "thumbnail_url": self.thumbnail_url,
            "footer": self.footer,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

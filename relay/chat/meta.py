"""
Sender Metadata

Assigns each chatter participant a display colour and a level badge.
Colours come from a stable hash of the nick so the same nick always
renders the same way; levels are a random draw made once per session.
"""

import logging
import random
from typing import Optional

from .models import UserMeta

logger = logging.getLogger(__name__)


PALETTE = (
    "#c58af9",
    "#f04747",
    "#faa61a",
    "#43b581",
    "#593695",
    "#3498db",
    "#e91e63",
)

SELF_META = UserMeta(color="#7289da", level=0)
DEFAULT_META = UserMeta(color="#969d9f", level=0)

BOT_META = UserMeta(color="#43b581", level=0)
SYSTEM_META = UserMeta(color="#969d9f", level=0)


def reserved_meta(bot_name: str = "GeminiBot", system_sender: str = "ChanServ") -> dict[str, UserMeta]:
    """Fixed metadata for the bot and the channel service."""
    return {bot_name: BOT_META, system_sender: SYSTEM_META}


# Reserved senders never get randomized metadata
RESERVED_META = reserved_meta()

NO_BADGE_PROBABILITY = 0.6  # share of nicks drawn without a level badge
MAX_LEVEL = 8


def nick_hash(nick: str) -> int:
    """
    Stable 32-bit hash of a nick (h = c + (h << 5) - h, signed wrap).
    """
    h = 0
    for ch in nick:
        h = (ord(ch) + (h << 5) - h) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def color_for(nick: str) -> str:
    """Palette colour for a nick."""
    return PALETTE[abs(nick_hash(nick)) % len(PALETTE)]


class MetadataAssigner:
    """
    Per-session sender metadata.
    
    Only simulated participants are stored. The current user and the
    reserved senders resolve to fixed metadata and never enter the map.
    """
    
    def __init__(
        self,
        self_name: Optional[str] = None,
        rng: Optional[random.Random] = None,
        reserved: Optional[dict[str, UserMeta]] = None,
    ):
        """
        Args:
            self_name: Name of the current user, if logged in
            rng: Random source for level draws (seed it for reproducible levels)
            reserved: Fixed metadata for bot/system senders
        """
        self.self_name = self_name
        self._rng = rng or random.Random()
        self._reserved = dict(RESERVED_META if reserved is None else reserved)
        self._meta: dict[str, UserMeta] = {}
    
    def is_fixed(self, sender: str) -> bool:
        """Whether the sender bypasses the metadata map."""
        return sender == self.self_name or sender in self._reserved
    
    def _draw_level(self) -> int:
        if self._rng.random() >= NO_BADGE_PROBABILITY:
            return self._rng.randint(1, MAX_LEVEL)
        return 0
    
    def assign(self, sender: str) -> None:
        """Assign metadata to a sender once. Later calls are no-ops."""
        if self.is_fixed(sender) or sender in self._meta:
            return
        
        meta = UserMeta(color=color_for(sender), level=self._draw_level())
        self._meta[sender] = meta
        logger.debug(f"Assigned meta to {sender}: color={meta.color} level={meta.level}")
    
    def get(self, sender: str) -> UserMeta:
        """Look up metadata, falling back to fixed or default values."""
        if sender == self.self_name:
            return SELF_META
        if sender in self._reserved:
            return self._reserved[sender]
        return self._meta.get(sender, DEFAULT_META)
    
    def known(self) -> dict[str, UserMeta]:
        """Copy of all assigned metadata."""
        return dict(self._meta)
    
    def reset(self) -> None:
        """Forget every assignment."""
        self._meta.clear()
    
    def __contains__(self, sender: str) -> bool:
        return sender in self._meta
    
    def __len__(self) -> int:
        return len(self._meta)

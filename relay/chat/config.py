"""
Chat Module Configuration

Reads configuration from environment variables with sensible defaults.
"""

import os
import random
from dataclasses import dataclass
from typing import Optional


def _env_optional_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return None
    return int(value)


@dataclass
class ChatConfig:
    """Configuration for the simulated chat channel."""
    
    # API Keys
    gemini_api_key: Optional[str] = None
    
    # Provider selection
    provider: str = "gemini"  # gemini, mock
    model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    request_timeout: float = 60.0
    max_attempts: int = 1  # 1 means a single try, no retry
    
    # Channel and reserved names
    channel: str = "google.com"
    self_name: str = "@You"
    bot_name: str = "GeminiBot"
    system_sender: str = "ChanServ"
    
    # Simulation settings
    chatter_interval: float = 6.0  # seconds between chatter lines
    chatter_count: int = 4
    history_window: int = 6
    level_seed: Optional[int] = None  # fixes level badges when set
    
    # Session management
    session_timeout_minutes: int = 30
    max_sessions: int = 50
    
    # Server
    host: str = "0.0.0.0"
    port: int = 2222
    
    @property
    def channel_label(self) -> str:
        """Channel label as shown to participants, e.g. '#google.com'."""
        return f"#{self.channel}"
    
    @classmethod
    def from_env(cls) -> "ChatConfig":
        """Load configuration from environment variables."""
        return cls(
            # API key (check multiple possible names)
            gemini_api_key=(
                os.environ.get("RELAY_GEMINI_API_KEY") or
                os.environ.get("GEMINI_API_KEY") or
                os.environ.get("API_KEY")
            ),
            
            provider=os.environ.get("RELAY_PROVIDER", "gemini"),
            model=os.environ.get("RELAY_MODEL", "gemini-2.5-flash"),
            gemini_base_url=os.environ.get(
                "RELAY_GEMINI_BASE_URL",
                "https://generativelanguage.googleapis.com/v1beta",
            ),
            request_timeout=float(os.environ.get("RELAY_REQUEST_TIMEOUT", "60")),
            max_attempts=int(os.environ.get("RELAY_MAX_ATTEMPTS", "1")),
            
            channel=os.environ.get("RELAY_CHANNEL", "google.com"),
            self_name=os.environ.get("RELAY_SELF_NAME", "@You"),
            bot_name=os.environ.get("RELAY_BOT_NAME", "GeminiBot"),
            system_sender=os.environ.get("RELAY_SYSTEM_SENDER", "ChanServ"),
            
            chatter_interval=float(os.environ.get("RELAY_CHATTER_INTERVAL", "6.0")),
            chatter_count=int(os.environ.get("RELAY_CHATTER_COUNT", "4")),
            history_window=int(os.environ.get("RELAY_HISTORY_WINDOW", "6")),
            level_seed=_env_optional_int("RELAY_LEVEL_SEED"),
            
            session_timeout_minutes=int(os.environ.get("RELAY_SESSION_TIMEOUT_MINUTES", "30")),
            max_sessions=int(os.environ.get("RELAY_MAX_SESSIONS", "50")),
            
            host=os.environ.get("RELAY_HOST", "0.0.0.0"),
            port=int(os.environ.get("RELAY_PORT", "2222")),
        )
    
    def create_provider(self):
        """
        Create the inference provider named by `provider`.
        
        Raises:
            ValueError: Unknown provider, or missing API key for Gemini
        """
        from .providers import GeminiProvider, MockProvider
        
        if self.provider == "gemini":
            if not self.gemini_api_key:
                raise ValueError("GEMINI_API_KEY not set")
            return GeminiProvider(
                api_key=self.gemini_api_key,
                model=self.model,
                base_url=self.gemini_base_url,
                timeout=self.request_timeout,
            )
        
        elif self.provider == "mock":
            rng = random.Random(self.level_seed) if self.level_seed is not None else None
            return MockProvider(
                rng=rng,
                system_sender=self.system_sender,
                chatter_count=self.chatter_count,
            )
        
        else:
            raise ValueError(f"Unknown provider: {self.provider}")


# Singleton config instance
_config: Optional[ChatConfig] = None


def get_config() -> ChatConfig:
    """Get the global chat config, loading from env if needed."""
    global _config
    if _config is None:
        _config = ChatConfig.from_env()
    return _config


def reload_config() -> ChatConfig:
    """Force reload config from environment."""
    global _config
    _config = ChatConfig.from_env()
    return _config

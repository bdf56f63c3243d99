"""User-Agent rotation for scraping."""
import random
from typing import Optional, Sequence

# Desktop browsers; the source site rejects anything that looks like a bot
_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
]


class UserAgentRotator:
    """Rotates through browser user agents for page loads."""

    def __init__(self, agents: Optional[Sequence[str]] = None):
        self._agents = list(agents) if agents else list(_USER_AGENTS)

    def get(self) -> str:
        """Get a random user agent."""
        return random.choice(self._agents)

from scentbase.scraper.base.rate_limiter import RateLimiter, WindowRateLimiter
from scentbase.scraper.base.user_agent import UserAgentRotator

__all__ = ["RateLimiter", "WindowRateLimiter", "UserAgentRotator"]

from .config import MarketConfig, create_market_from_config, default_accounts, default_projects

__all__ = ["MarketConfig", "create_market_from_config", "default_projects", "default_accounts"]

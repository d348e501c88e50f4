"""Configuration management for conditional funding markets.

Reads configuration from config.env file or environment variables.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..market.enums import Scenario
from ..market.lmsr import MarketState
from ..market.models import Account, Project

logger = logging.getLogger(__name__)

# (id, display name, range_min, range_max)
DEFAULT_PROJECTS: List[Tuple[str, str, float, float]] = [
    ("ascoe", "アスコエ", 0.0, 10000.0),
    ("civichat", "Civichat", 0.0, 10000.0),
    ("handbook", "お悩みハンドブック", 0.0, 10000.0),
    ("yadokari", "みつもりヤドカリくん", 0.0, 10000.0),
]

ADMIN_ACCOUNT_ID = "admin"


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


class MarketConfig:
    """Configuration manager for market settings."""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to .env file (default: config.env in project root)
        """
        self._load_env(config_file)

    def _load_env(self, config_file: Optional[str]):
        """Load environment variables from file."""
        if config_file is None:
            project_root = Path(__file__).parent.parent.parent.parent
            config_file = project_root / "config.env"

        config_path = Path(config_file)
        if config_path.exists():
            with open(config_path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith('#') and '=' in line:
                        key, value = line.split('=', 1)
                        key = key.strip()
                        value = value.strip()
                        # Don't override existing env vars
                        if key not in os.environ:
                            os.environ[key] = value

    @property
    def market_id(self) -> str:
        """Get market identifier used as the persistence key."""
        return os.getenv("CFM_MARKET_ID", "default")

    @property
    def liquidity_param(self) -> float:
        """Get LMSR liquidity parameter b for every market."""
        return float(os.getenv("CFM_LIQUIDITY_PARAM", "180"))

    @property
    def starting_balance(self) -> float:
        """Get starting cash balance for each account."""
        return float(os.getenv("CFM_STARTING_BALANCE", "1000"))

    @property
    def probability_epsilon(self) -> float:
        """Get probability clamp used by inverse pricing."""
        return float(os.getenv("CFM_PROBABILITY_EPSILON", "1e-6"))

    @property
    def snapshot_interval(self) -> float:
        """Get spacing in seconds between periodic history snapshots."""
        return float(os.getenv("CFM_SNAPSHOT_INTERVAL", "5.0"))

    @property
    def sim_buy_probability(self) -> float:
        """Get probability that a simulated trade is a buy."""
        return float(os.getenv("CFM_SIM_BUY_PROBABILITY", "0.7"))

    @property
    def sim_max_shares(self) -> int:
        """Get upper bound of simulated trade size."""
        return int(os.getenv("CFM_SIM_MAX_SHARES", "50"))

    @property
    def num_traders(self) -> int:
        """Get number of non-admin trader accounts."""
        return int(os.getenv("CFM_NUM_TRADERS", "4"))

    @property
    def log_level(self) -> str:
        return os.getenv("CFM_LOG_LEVEL", "INFO").upper()

    @property
    def save_history_csv(self) -> bool:
        """Get whether to save history as CSV."""
        return _as_bool(os.getenv("SAVE_LOGS_CSV", "true"))

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        return Path(os.getenv("LOG_DIR", "simulation_logs"))

    @property
    def store_dir(self) -> Path:
        """Get directory for persisted market records."""
        return Path(os.getenv("CFM_STORE_DIR", "market_store"))


def default_projects(liquidity: float, entries: Sequence[Tuple[str, str, float, float]] = DEFAULT_PROJECTS) -> List[Project]:
    return [
        Project(
            id=pid,
            name=name,
            range_min=lo,
            range_max=hi,
            markets={s: MarketState(b=liquidity) for s in Scenario},
        )
        for pid, name, lo, hi in entries
    ]


def default_accounts(num_projects: int, balance: float, num_traders: int) -> List[Account]:
    accounts = [Account(id=ADMIN_ACCOUNT_ID, name="Admin", num_projects=num_projects,
                        balance=balance, is_admin=True)]
    for i in range(1, num_traders + 1):
        accounts.append(Account(id=f"user{i}", name=f"User {i}", num_projects=num_projects, balance=balance))
    return accounts


def create_market_from_config(
    config: Optional[MarketConfig] = None,
    market_id: Optional[str] = None,
    **engine_kwargs,
):
    """
    Create a market engine based on configuration.

    Args:
        config: Configuration object (default: loads from config.env)
        market_id: Unique market identifier (default: CFM_MARKET_ID)
        **engine_kwargs: Extra MarketEngine arguments, e.g. ``clock``

    Returns:
        MarketEngine with the default projects, an admin and trader accounts

    Example:
        >>> config = MarketConfig()
        >>> engine = create_market_from_config(config)
        >>> engine.current_value("ascoe", Scenario.FUNDED)
        5000.0
    """
    from ..simulation.engine import MarketEngine

    if config is None:
        config = MarketConfig()
    logging.getLogger("funding_market_sim").setLevel(config.log_level)

    projects = default_projects(config.liquidity_param)
    accounts = default_accounts(len(projects), config.starting_balance, config.num_traders)
    logger.info("Creating market (b=%s, balance=%s, traders=%d)",
                config.liquidity_param, config.starting_balance, config.num_traders)
    return MarketEngine(
        projects=projects,
        accounts=accounts,
        market_id=market_id or config.market_id,
        epsilon=config.probability_epsilon,
        snapshot_interval=config.snapshot_interval,
        log_dir=config.log_dir,
        sim_buy_probability=config.sim_buy_probability,
        sim_max_shares=config.sim_max_shares,
        **engine_kwargs,
    )

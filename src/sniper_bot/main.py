"""
Solana Token Sniper - Main Entry Point

Watches liquidity pool programs for new pools, resolves the new token's
mint, runs it through the configured checks and buys it via Sniperoo.

Usage:
    python -m sniper_bot.main [--dry-run] [--check-mode {none,snipe,full}]

Environment Variables:
    HELIUS_WSS_URI              Streaming RPC endpoint, ws:// or wss:// (required)
    HELIUS_HTTPS_URI            JSON-RPC endpoint, http:// or https:// (required)
    DATABASE_URL                PostgreSQL connection string for token history
    SNIPEROO_API_KEY            Sniperoo API key (required unless simulating)
    SNIPEROO_PUBKEY             Wallet public key used by Sniperoo
    TELEGRAM_BOT_TOKEN          Telegram bot token for alerts
    TELEGRAM_CHAT_ID            Telegram chat ID for alerts
    LOG_LEVEL                   Logging level (DEBUG/INFO/WARNING/ERROR)
    CHECK_MODE                  none, snipe or full (default: full)
    SIMULATION_MODE             "true" to skip buying (default: false)
    CONCURRENT_TRANSACTIONS     Max pipelines in flight (default: 1)
    BUY_AMOUNT_SOL              SOL to spend per buy (default: 0.05)
    SELL_ENABLED                Let Sniperoo auto-sell (default: true)
    TAKE_PROFIT_PERCENT         Auto-sell take profit (default: 30)
    STOP_LOSS_PERCENT           Auto-sell stop loss (default: 15)
    PLAY_SOUND                  Ring the terminal bell on buys (default: true)
    INITIAL_BACKOFF_SECONDS     First reconnect delay (default: 1)
    MAX_BACKOFF_SECONDS         Reconnect delay cap (default: 30)
    MAX_RECONNECT_RETRIES       Reconnect budget, empty for unlimited
    INGESTION_RESTART_DELAY_SECONDS  Pause before reopening a stream that gave up (default: 5)
    RESOLVER_MAX_RETRIES        Transaction lookup attempts (default: 3)
    RESOLVER_RETRY_DELAY_SECONDS  Delay between lookups (default: 2)
    HTTP_TIMEOUT_SECONDS        Per-request HTTP timeout (default: 10)

Admission overrides (full check mode):
    MAX_TOPHOLDER_PCT, MIN_LP_PROVIDERS, MIN_MARKETS, MIN_MARKET_LIQUIDITY,
    MAX_SCORE, BLOCK_SYMBOLS, BLOCK_NAMES (comma separated), ALLOW_MINT_AUTHORITY,
    ALLOW_FREEZE_AUTHORITY, ALLOW_MUTABLE, ALLOW_RUGGED, ALLOW_NOT_INITIALIZED,
    ALLOW_INSIDER_TOPHOLDERS, EXCLUDE_LP_FROM_TOPHOLDERS,
    BLOCK_RETURNING_TOKEN_NAMES, BLOCK_RETURNING_TOKEN_CREATORS,
    IGNORE_ENDS_WITH_PUMP, VERBOSE_LOGS
"""

from __future__ import annotations

import argparse
import asyncio
import atexit
import fcntl
import logging
import os
import signal
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Generator, Optional

from sniper_bot.admission import AdmissionRuleEngine, AdmissionSettings, RugCheckClient
from sniper_bot.core import (
    CheckMode,
    ConcurrencyGate,
    IdentifierResolver,
    PipelineSettings,
    PipelineStats,
    SnipePipeline,
)
from sniper_bot.execution import SniperooClient
from sniper_bot.ingestion import (
    EventDispatcher,
    IngestionConfig,
    IngestionService,
    SolanaRpcClient,
    SubscriptionRegistry,
)
from sniper_bot.monitoring import AlertManager
from sniper_bot.storage import Database, DatabaseConfig, TokenHistoryRepository

# Configure logging before anything logs
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEFAULT_PID_FILE = "/tmp/sniper-bot.pid"


class SingletonBotError(Exception):
    """Raised when another bot instance is already running."""
    pass


class ConfigError(Exception):
    """Raised when the environment does not describe a runnable bot."""
    pass


@contextmanager
def singleton_lock(pid_file: str = DEFAULT_PID_FILE) -> Generator[None, None, None]:
    """
    Ensure only one sniper instance runs at a time.

    Holds an exclusive non-blocking flock on the PID file for the life of
    the context. Two instances would share one wallet and double-buy.

    Raises:
        SingletonBotError: If another instance holds the lock
    """
    pid_path = Path(pid_file)

    existing_pid = None
    try:
        existing_pid = pid_path.read_text().strip()
    except FileNotFoundError:
        pass

    # "a+" so the file is not truncated before we own the lock
    fp = open(pid_path, "a+")

    try:
        fcntl.flock(fp.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        fp.close()
        hint = f" (PID: {existing_pid})" if existing_pid else ""
        raise SingletonBotError(f"Another sniper instance is already running{hint}")

    fp.seek(0)
    fp.truncate()
    fp.write(str(os.getpid()))
    fp.flush()

    def release():
        try:
            fcntl.flock(fp.fileno(), fcntl.LOCK_UN)
            fp.close()
            pid_path.unlink(missing_ok=True)
        except OSError:
            pass

    atexit.register(release)

    try:
        logger.info(f"Acquired singleton lock (PID: {os.getpid()}, file: {pid_file})")
        yield
    finally:
        release()
        atexit.unregister(release)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.environ.get(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_optional_int(name: str) -> Optional[int]:
    value = os.environ.get(name, "").strip()
    return int(value) if value else None


def admission_settings_from_env() -> AdmissionSettings:
    """AdmissionSettings defaults, overridden by any environment values."""
    defaults = AdmissionSettings()
    return AdmissionSettings(
        allow_mint_authority=_env_bool("ALLOW_MINT_AUTHORITY", defaults.allow_mint_authority),
        allow_freeze_authority=_env_bool("ALLOW_FREEZE_AUTHORITY", defaults.allow_freeze_authority),
        max_allowed_pct_topholders=float(
            os.environ.get("MAX_TOPHOLDER_PCT", defaults.max_allowed_pct_topholders)
        ),
        exclude_lp_from_topholders=_env_bool(
            "EXCLUDE_LP_FROM_TOPHOLDERS", defaults.exclude_lp_from_topholders
        ),
        block_returning_token_names=_env_bool(
            "BLOCK_RETURNING_TOKEN_NAMES", defaults.block_returning_token_names
        ),
        block_returning_token_creators=_env_bool(
            "BLOCK_RETURNING_TOKEN_CREATORS", defaults.block_returning_token_creators
        ),
        allow_insider_topholders=_env_bool(
            "ALLOW_INSIDER_TOPHOLDERS", defaults.allow_insider_topholders
        ),
        allow_not_initialized=_env_bool("ALLOW_NOT_INITIALIZED", defaults.allow_not_initialized),
        allow_rugged=_env_bool("ALLOW_RUGGED", defaults.allow_rugged),
        allow_mutable=_env_bool("ALLOW_MUTABLE", defaults.allow_mutable),
        block_symbols=_env_list("BLOCK_SYMBOLS", defaults.block_symbols),
        block_names=_env_list("BLOCK_NAMES", defaults.block_names),
        min_total_lp_providers=int(
            os.environ.get("MIN_LP_PROVIDERS", defaults.min_total_lp_providers)
        ),
        min_total_markets=int(os.environ.get("MIN_MARKETS", defaults.min_total_markets)),
        min_total_market_liquidity=float(
            os.environ.get("MIN_MARKET_LIQUIDITY", defaults.min_total_market_liquidity)
        ),
        ignore_ends_with_pump=_env_bool("IGNORE_ENDS_WITH_PUMP", defaults.ignore_ends_with_pump),
        max_score=float(os.environ.get("MAX_SCORE", defaults.max_score)),
        verbose_logs=_env_bool("VERBOSE_LOGS", defaults.verbose_logs),
    )


@dataclass
class BotConfig:
    """Complete bot configuration."""

    # Endpoints
    helius_wss_uri: str = ""
    helius_https_uri: str = ""
    database_url: str = ""

    # Sniperoo
    sniperoo_api_key: str = ""
    sniperoo_pubkey: str = ""

    # Alerts
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    # Checks
    check_mode: str = CheckMode.FULL.value
    simulation_mode: bool = False
    concurrent_transactions: int = 1

    # Buying
    buy_amount_sol: float = 0.05
    sell_enabled: bool = True
    take_profit_percent: float = 30.0
    stop_loss_percent: float = 15.0
    play_sound: bool = True

    # Stream / lookups
    initial_backoff_seconds: float = 1.0
    max_backoff_seconds: float = 30.0
    max_reconnect_retries: Optional[int] = None
    ingestion_restart_delay_seconds: float = 5.0
    resolver_max_retries: int = 3
    resolver_retry_delay_seconds: float = 2.0
    http_timeout_seconds: float = 10.0

    stats_interval_seconds: float = 60.0

    admission: AdmissionSettings = field(default_factory=AdmissionSettings)

    @classmethod
    def from_env(cls) -> "BotConfig":
        """Load configuration from environment variables."""
        return cls(
            helius_wss_uri=os.environ.get("HELIUS_WSS_URI", "").strip(),
            helius_https_uri=os.environ.get("HELIUS_HTTPS_URI", "").strip(),
            database_url=os.environ.get("DATABASE_URL", ""),
            sniperoo_api_key=os.environ.get("SNIPEROO_API_KEY", ""),
            sniperoo_pubkey=os.environ.get("SNIPEROO_PUBKEY", ""),
            telegram_bot_token=os.environ.get("TELEGRAM_BOT_TOKEN"),
            telegram_chat_id=os.environ.get("TELEGRAM_CHAT_ID"),
            check_mode=os.environ.get("CHECK_MODE", CheckMode.FULL.value).strip().lower(),
            simulation_mode=_env_bool("SIMULATION_MODE", False),
            concurrent_transactions=int(os.environ.get("CONCURRENT_TRANSACTIONS", "1")),
            buy_amount_sol=float(os.environ.get("BUY_AMOUNT_SOL", "0.05")),
            sell_enabled=_env_bool("SELL_ENABLED", True),
            take_profit_percent=float(os.environ.get("TAKE_PROFIT_PERCENT", "30")),
            stop_loss_percent=float(os.environ.get("STOP_LOSS_PERCENT", "15")),
            play_sound=_env_bool("PLAY_SOUND", True),
            initial_backoff_seconds=float(os.environ.get("INITIAL_BACKOFF_SECONDS", "1")),
            max_backoff_seconds=float(os.environ.get("MAX_BACKOFF_SECONDS", "30")),
            max_reconnect_retries=_env_optional_int("MAX_RECONNECT_RETRIES"),
            ingestion_restart_delay_seconds=float(
                os.environ.get("INGESTION_RESTART_DELAY_SECONDS", "5")
            ),
            resolver_max_retries=int(os.environ.get("RESOLVER_MAX_RETRIES", "3")),
            resolver_retry_delay_seconds=float(
                os.environ.get("RESOLVER_RETRY_DELAY_SECONDS", "2")
            ),
            http_timeout_seconds=float(os.environ.get("HTTP_TIMEOUT_SECONDS", "10")),
            admission=admission_settings_from_env(),
        )

    def validate(self) -> None:
        """
        Check the configuration is runnable.

        Raises:
            ConfigError: Listing the first problem found
        """
        missing = [
            name
            for name, value in (
                ("HELIUS_HTTPS_URI", self.helius_https_uri),
                ("HELIUS_WSS_URI", self.helius_wss_uri),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

        if not self.helius_https_uri.startswith(("http://", "https://")):
            raise ConfigError("HELIUS_HTTPS_URI must start with http:// or https://")
        if not self.helius_wss_uri.startswith(("ws://", "wss://")):
            raise ConfigError("HELIUS_WSS_URI must start with ws:// or wss://")

        valid_modes = [mode.value for mode in CheckMode]
        if self.check_mode not in valid_modes:
            raise ConfigError(f"CHECK_MODE must be one of {valid_modes}, got {self.check_mode!r}")

        if self.concurrent_transactions < 1:
            raise ConfigError("CONCURRENT_TRANSACTIONS must be at least 1")
        if self.buy_amount_sol <= 0:
            raise ConfigError("BUY_AMOUNT_SOL must be positive")

        if not self.simulation_mode and not (self.sniperoo_api_key and self.sniperoo_pubkey):
            raise ConfigError(
                "Live buying requires SNIPEROO_API_KEY and SNIPEROO_PUBKEY "
                "(or set SIMULATION_MODE=true)"
            )

    def pipeline_settings(self) -> PipelineSettings:
        return PipelineSettings(
            check_mode=CheckMode(self.check_mode),
            simulation_mode=self.simulation_mode,
            buy_amount_sol=self.buy_amount_sol,
            sell_enabled=self.sell_enabled,
            take_profit_pct=self.take_profit_percent,
            stop_loss_pct=self.stop_loss_percent,
            play_sound=self.play_sound,
            admission=self.admission,
        )


class SniperBot:
    """
    Main bot orchestrator.

    Manages the lifecycle of all components:
    - Token history database
    - HTTP clients (RPC, rug check, Sniperoo)
    - Snipe pipeline and dispatcher
    - Log stream ingestion
    """

    def __init__(self, config: BotConfig):
        self.config = config
        self.stats = PipelineStats()
        self._running = False
        self._shutdown_event = asyncio.Event()

        self._db: Optional[Database] = None
        self._history: Optional[TokenHistoryRepository] = None
        self._rpc: Optional[SolanaRpcClient] = None
        self._rugcheck: Optional[RugCheckClient] = None
        self._sniperoo: Optional[SniperooClient] = None
        self._alerts: Optional[AlertManager] = None
        self._ingestion: Optional[IngestionService] = None
        self._registry: Optional[SubscriptionRegistry] = None
        self._dispatcher: Optional[EventDispatcher] = None
        self._restart_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the bot and run until shutdown is requested."""
        config = self.config
        logger.info("=" * 60)
        logger.info("SOLANA TOKEN SNIPER")
        logger.info("=" * 60)
        logger.info(f"Check mode: {config.check_mode}")
        logger.info(f"Buying: {'SIMULATION' if config.simulation_mode else 'LIVE'}")
        logger.info(f"Concurrent transactions: {config.concurrent_transactions}")
        logger.info("=" * 60)

        self._running = True
        self._shutdown_event.clear()
        self._setup_signal_handlers()

        try:
            await self._init_database()

            if self._shutdown_event.is_set():
                logger.info("Shutdown requested during startup")
                return

            self._init_clients()
            await self._init_ingestion()

            logger.info("Bot started successfully, press Ctrl+C to stop")
            await self._run_loop()

        except Exception as e:
            logger.exception(f"Fatal error: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the bot gracefully."""
        if not self._running:
            return

        logger.info("Shutting down...")
        self._running = False
        self._shutdown_event.set()

        restart = self._restart_task
        self._restart_task = None
        if restart is not None and not restart.done():
            restart.cancel()
            await asyncio.gather(restart, return_exceptions=True)

        if self._ingestion:
            try:
                await self._ingestion.stop()
            except Exception as e:
                logger.warning(f"Error stopping ingestion: {e}")

        for client in (self._rpc, self._rugcheck, self._sniperoo):
            if client is not None:
                try:
                    await client.close()
                except Exception as e:
                    logger.warning(f"Error closing HTTP client: {e}")

        if self._db:
            try:
                await self._db.close()
            except Exception as e:
                logger.warning(f"Error closing database: {e}")

        self._log_stats()
        logger.info("Shutdown complete")

    def request_shutdown(self, reason: str = "manual") -> None:
        if not self._running:
            return
        logger.warning(f"Shutdown requested: {reason}")
        self._shutdown_event.set()

    async def _init_database(self) -> None:
        """Connect the token history store. Runs without history if unavailable."""
        duplicate_checks = (
            self.config.check_mode == CheckMode.FULL.value
            and self.config.admission.duplicate_detection_enabled
        )
        if not duplicate_checks:
            return

        if not self.config.database_url:
            logger.warning("DATABASE_URL not set, duplicate token detection disabled")
            return

        db = Database(DatabaseConfig(url=self.config.database_url))
        try:
            await db.initialize()
            repo = TokenHistoryRepository(db)
            await repo.ensure_schema()
        except Exception as e:
            logger.error(f"Token history unavailable, duplicate detection disabled: {e}")
            await db.close()
            return

        self._db = db
        self._history = repo
        logger.info("Database: Connected (token history ready)")

    def _init_clients(self) -> None:
        config = self.config
        timeout = config.http_timeout_seconds

        self._rpc = SolanaRpcClient(config.helius_https_uri, timeout=timeout)
        self._alerts = AlertManager(
            telegram_bot_token=config.telegram_bot_token,
            telegram_chat_id=config.telegram_chat_id,
        )

        if config.check_mode == CheckMode.FULL.value:
            self._rugcheck = RugCheckClient(timeout=timeout)

        if not config.simulation_mode:
            self._sniperoo = SniperooClient(
                config.sniperoo_api_key, config.sniperoo_pubkey, timeout=timeout
            )

    async def _init_ingestion(self) -> None:
        config = self.config

        resolver = IdentifierResolver(
            self._rpc,
            max_retries=config.resolver_max_retries,
            retry_delay=config.resolver_retry_delay_seconds,
        )
        engine = AdmissionRuleEngine(
            config.admission,
            history_store=self._history,
            report_source=self._rugcheck,
        )
        pipeline = SnipePipeline(
            resolver,
            self._sniperoo,
            config.pipeline_settings(),
            engine=engine,
            authority_source=self._rpc,
            alerts=self._alerts,
            stats=self.stats,
        )

        self._registry = SubscriptionRegistry()
        self._dispatcher = EventDispatcher(
            self._registry,
            ConcurrencyGate(config.concurrent_transactions),
            pipeline.process,
            stats=self.stats,
        )
        await self._start_ingestion()

    async def _start_ingestion(self) -> None:
        """Open a fresh log stream over the existing registry and dispatcher."""
        config = self.config
        self._ingestion = IngestionService(
            IngestionConfig(
                websocket_url=config.helius_wss_uri,
                initial_backoff=config.initial_backoff_seconds,
                max_backoff=config.max_backoff_seconds,
                max_retries=config.max_reconnect_retries,
            ),
            self._registry,
            self._dispatcher,
            on_retries_exhausted=self._handle_retries_exhausted,
        )
        await self._ingestion.start()
        logger.info("Ingestion: Started")

    async def _handle_retries_exhausted(self, retries: int) -> None:
        """
        The stream gave up reconnecting; the bot keeps running. The
        ingestion service is rebuilt from a separate task, since this
        callback runs inside the websocket task that the rebuild stops.
        """
        if self._alerts is not None:
            await asyncio.to_thread(self._alerts.alert_connection_lost, retries)

        if not self._running:
            return
        if self._restart_task is not None and not self._restart_task.done():
            return
        self._restart_task = asyncio.create_task(self._restart_ingestion(retries))

    async def _restart_ingestion(self, retries: int) -> None:
        delay = self.config.ingestion_restart_delay_seconds
        logger.warning(
            f"Log stream gave up after {retries} reconnect attempts, "
            f"restarting ingestion in {delay:.1f}s"
        )
        await asyncio.sleep(delay)
        if not self._running:
            return

        if self._ingestion is not None:
            try:
                await self._ingestion.stop(drain=False)
            except Exception as e:
                logger.warning(f"Error stopping failed ingestion: {e}")

        try:
            await self._start_ingestion()
        except Exception as e:
            logger.error(f"Ingestion restart failed: {e}")

    async def _run_loop(self) -> None:
        """Log stats periodically until shutdown."""
        interval = self.config.stats_interval_seconds

        while self._running:
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass

            self._log_stats()
            if self._ingestion is not None:
                health = self._ingestion.health()
                if not health.healthy:
                    logger.warning(
                        f"Ingestion unhealthy: connection={health.connection_state.value}, "
                        f"retries={health.retry_count}"
                    )
            await self._log_history_health()

    async def _log_history_health(self) -> None:
        if self._db is None or self._history is None:
            return
        if not await self._db.health_check():
            logger.warning("Token history database unreachable, duplicate checks degraded")
            return
        try:
            logger.info(f"Token history: {await self._history.count()} tokens recorded")
        except Exception as e:
            logger.warning(f"Token history count failed: {e}")

    def _log_stats(self) -> None:
        s = self.stats
        logger.info(
            f"Stats: matched={s.matched}, dropped_busy={s.dropped_busy}, "
            f"resolved={s.resolved}, unresolved={s.unresolved}, "
            f"accepted={s.accepted}, rejected={s.rejected}, "
            f"executed={s.executed}, execution_failed={s.execution_failed}, "
            f"errors={s.errors}"
        )

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            self.request_shutdown(f"received signal {sig}")

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if not env_path.exists():
        return
    logger.info(f"Loading environment from {env_path}")
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                value = value.strip().strip('"').strip("'")
                os.environ.setdefault(key.strip(), value)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Solana Token Sniper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode: run every check but never buy",
    )
    parser.add_argument(
        "--check-mode",
        choices=[mode.value for mode in CheckMode],
        help="Override CHECK_MODE",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    try:
        config = BotConfig.from_env()
        if args.dry_run:
            config.simulation_mode = True
        if args.check_mode:
            config.check_mode = args.check_mode
        config.validate()
    except (ConfigError, ValueError) as e:
        logger.error(str(e))
        logger.error("See .env.example for configuration")
        return 1

    bot = SniperBot(config)

    try:
        await bot.start()
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main() -> int:
    """Main entry point."""
    load_env_file()
    args = parse_args()

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        with singleton_lock():
            try:
                return asyncio.run(main_async(args))
            except KeyboardInterrupt:
                return 0
    except SingletonBotError as e:
        logger.error(str(e))
        print(f"\n❌ {e}\n", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

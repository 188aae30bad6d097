# propmarket/propmarket.py
"""
PropMarket booking core - main entry point.
Runs the ledger store, notification channels and the expiry sweeper.
"""
import asyncio
import logging
import sys

from config import Config
from core.db import LedgerStore
from core.system_services import ServiceManager, build_notifier, setup_signal_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('propmarket.log')
    ]
)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def initialize_services() -> ServiceManager:
    """
    Initialize store and services.

    Returns:
        ServiceManager: Wired and started service manager
    """
    try:
        logger.info("=" * 60)
        logger.info("PROPMARKET INITIALIZATION")
        logger.info("=" * 60)

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 1: Load configuration from .env
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("📋 Loading configuration from .env...")
        Config.initialize_from_env()
        Config.validate_critical_keys()
        logger.info("✓ Configuration loaded")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 2: Setup database
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("💾 Setting up database...")
        store = LedgerStore(Config.get(Config.DATABASE_URL))
        store.setup_database()
        logger.info("✓ Database ready")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 3: Notification channels
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("📨 Setting up notification channels...")
        notifier = await build_notifier()
        logger.info(f"✓ {len(notifier.notifiers)} notification channel(s) ready")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 4: Services and default commission levels
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("⚙️ Initializing service manager...")
        service_manager = ServiceManager(store, notifier)
        service_manager.commission_service.ensureDefaultConfig()
        logger.info("✓ Service manager ready")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 5: Start background services
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("🚀 Starting background services...")
        await service_manager.start_services()
        logger.info(f"Service status: {service_manager.get_status()}")

        Config.set(Config.SYSTEM_READY, True)

        logger.info("=" * 60)
        logger.info("✅ INITIALIZATION COMPLETE")
        logger.info("=" * 60)

        return service_manager

    except Exception as e:
        logger.critical(f"❌ Initialization failed: {e}", exc_info=True)
        raise


async def main():
    """Main entry point."""
    service_manager = None
    try:
        service_manager = await initialize_services()

        loop = asyncio.get_running_loop()
        setup_signal_handlers(loop, service_manager)

        await service_manager.wait_for_shutdown()
        logger.info("Shutdown requested...")

    except Exception as e:
        logger.critical(f"❌ Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if service_manager:
            await service_manager.stop_services()
        logger.info("👋 PropMarket shutdown complete")


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("PropMarket stopped")

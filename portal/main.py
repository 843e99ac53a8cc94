"""
Community Services Portal — service-provider registration bot.
Entry point: creates the bot, wires the registration services, registers
routers + middleware, handles graceful shutdown.
"""
import asyncio
import logging
import signal
import sys

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import ErrorEvent
from sqlalchemy.exc import SQLAlchemyError

from portal.config import settings
from portal.middlewares import DatabaseMiddleware, ServicesMiddleware
from portal.models.base import AsyncSessionFactory, Base, engine
from portal.services import (
    DatabaseIdentityService,
    LocalObjectStorage,
    RegistrationOrchestrator,
    WizardSessions,
    phone_lookup_for,
)

# ── Handlers ──────────────────────────────────────────────────────────────────
from portal.handlers.common import router as common_router
from portal.handlers.registration import router as registration_router
from portal.handlers.sign_in import router as sign_in_router
from portal.handlers.fallback import router as fallback_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


async def create_tables() -> None:
    """Create all database tables on startup."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready.")
    except (SQLAlchemyError, OSError) as e:
        logger.critical(
            "❌ Cannot connect to database!\n"
            "   URL: %s\n"
            "   Error: %s\n\n"
            "   → Locally: start PostgreSQL or use SQLite "
            "(DATABASE_URL=sqlite+aiosqlite:///./portal.db)",
            settings.DATABASE_URL.split("@")[-1],   # hide credentials in log
            e,
        )
        sys.exit(1)


def build_services() -> tuple[WizardSessions, DatabaseIdentityService]:
    identity = DatabaseIdentityService(AsyncSessionFactory, bcrypt_rounds=settings.BCRYPT_ROUNDS)
    storage = LocalObjectStorage()
    orchestrator = RegistrationOrchestrator(AsyncSessionFactory, identity, storage)
    wizards = WizardSessions(orchestrator, phone_lookup_for(AsyncSessionFactory))
    return wizards, identity


def build_dispatcher(wizards: WizardSessions, identity: DatabaseIdentityService) -> Dispatcher:
    dp = Dispatcher(storage=MemoryStorage())

    # ── Global error handler — ensures callbacks are always answered ──────────
    @dp.errors()
    async def handle_error(event: ErrorEvent) -> None:
        logger.exception("Unhandled error: %s", event.exception)
        update = event.update
        if update.callback_query:
            try:
                await update.callback_query.answer(
                    "⚠️ Something went wrong. Please try again.", show_alert=True
                )
            except TelegramAPIError:
                logger.debug("Could not answer callback after error")

    # ── Global middlewares ────────────────────────────────────────────────────
    dp.update.middleware(DatabaseMiddleware())
    dp.update.middleware(ServicesMiddleware(wizards, identity))

    # ── Routers — order matters for handler priority ──────────────────────────
    dp.include_router(common_router)
    dp.include_router(registration_router)
    dp.include_router(sign_in_router)

    # !! Must be last — catches any callback not handled above !!
    dp.include_router(fallback_router)

    return dp


async def main() -> None:
    logger.info("Starting portal bot…")
    await create_tables()

    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.MARKDOWN),
    )
    wizards, identity = build_services()
    dp = build_dispatcher(wizards, identity)

    # ── Graceful shutdown on SIGTERM (Docker) ─────────────────────────────────
    loop = asyncio.get_running_loop()
    stop_task: asyncio.Task | None = None

    def _handle_signal():
        nonlocal stop_task
        logger.info("Received shutdown signal, stopping…")
        stop_task = loop.create_task(dp.stop_polling())

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _handle_signal)
        except NotImplementedError:
            # Windows does not support add_signal_handler
            pass

    try:
        logger.info("Bot is running. Press Ctrl+C to stop.")
        await dp.start_polling(
            bot,
            allowed_updates=dp.resolve_used_update_types(),
            handle_signals=False,
        )
    finally:
        logger.info("Shutting down…")
        if stop_task is not None:
            await stop_task
        await bot.session.close()
        await engine.dispose()
        logger.info("Shutdown complete.")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()

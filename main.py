import logging
import asyncio
import os
import sys
import atexit
from pathlib import Path
from telegram import BotCommand, Update
from telegram.ext import ApplicationBuilder, CommandHandler, CallbackQueryHandler, ContextTypes
from telegram.error import NetworkError
import config
from async_database import open_store
from game import PredictionGame
from scoring import get_distance_function
from handlers.matches import (
    setup_command, edit_match_command, close_poll_command, end_match_command,
    cancel_match_command, export_command
)
from handlers.predictions import (
    predict_command, edit_prediction_command, my_prediction_command, list_predictions_command
)
from handlers.history import past_matches_command, match_details_command, my_stats_command, leaderboard_command
from handlers.menu import start_command, help_command, menu_command, menu_callback_handler

# Logging Setup
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=logging.INFO
)
# PTB polls every few seconds; keep httpx request lines out of the log
logging.getLogger("httpx").setLevel(logging.WARNING)

# Lock file management
LOCK_FILE = Path("bot.lock")

BOT_COMMANDS = [
    BotCommand("predict", "Submit your prediction (e.g., 200/4)"),
    BotCommand("edit", "Edit your prediction"),
    BotCommand("mypick", "Show your prediction for the current match"),
    BotCommand("list", "List predictions for the current match"),
    BotCommand("past", "List past matches"),
    BotCommand("details", "Show details of a past match"),
    BotCommand("mystats", "Show your past prediction performance"),
    BotCommand("leaderboard", "Show leaderboard for past predictions"),
    BotCommand("menu", "Quick buttons"),
    BotCommand("help", "Show help for all commands"),
    BotCommand("setup", "Admin: Setup a new match"),
    BotCommand("editmatch", "Admin: Edit details of the active match"),
    BotCommand("close", "Admin: Close the current poll"),
    BotCommand("end", "Admin: End match with actual score and determine winner"),
    BotCommand("cancelmatch", "Admin: Cancel the current match"),
    BotCommand("export", "Admin: Export past match and prediction data as JSON"),
]


def _pid_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    return True


def acquire_lock():
    """Acquire a lock file to ensure only one bot instance runs at a time."""
    if LOCK_FILE.exists():
        try:
            pid = int(LOCK_FILE.read_text().strip())
        except (ValueError, FileNotFoundError):
            logging.warning("Invalid lock file found, removing it")
            LOCK_FILE.unlink(missing_ok=True)
        else:
            if pid != os.getpid() and _pid_running(pid):
                logging.error(
                    f"Bot already running as PID {pid}. Stop it first, or delete {LOCK_FILE} if that process is gone."
                )
                sys.exit(1)
            logging.warning(f"Removing stale lock file (PID {pid} not found)")
            LOCK_FILE.unlink(missing_ok=True)

    LOCK_FILE.write_text(str(os.getpid()))
    logging.info(f"Lock acquired (PID: {os.getpid()})")

    # Register cleanup function
    atexit.register(release_lock)


def release_lock():
    """Release the lock file on exit."""
    if LOCK_FILE.exists():
        try:
            LOCK_FILE.unlink()
            logging.info("Lock file removed")
        except OSError as e:
            logging.warning(f"Failed to remove lock file: {e}")


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log the error and handle specific cases like NetworkError."""
    logging.error(msg="Exception while handling an update:", exc_info=context.error)

    if isinstance(context.error, NetworkError):
        logging.warning("Network Error: Connection to Telegram API failed. Retrying...")


async def start_services(application):
    """Open the database, restore the current match, start the API server."""
    store = await open_store(config.DB_PATH, config.DB_POOL_SIZE)
    game = PredictionGame(store, get_distance_function(config.SCORING_METHOD))
    await game.restore()
    application.bot_data["game"] = game
    logging.info(f"Prediction game ready ({game.scoring_method} scoring, {len(config.ADMIN_IDS)} admins)")

    # Allow running bot-only
    if os.getenv("DISABLE_FASTAPI", "").strip() in {"1", "true", "TRUE", "yes", "YES"}:
        logging.info("FastAPI startup disabled via DISABLE_FASTAPI")
        return
    try:
        from backend.server import start_fastapi_server
        server, task = await start_fastapi_server(game)
        application.bot_data["api_server"] = server
        application.bot_data["api_task"] = task
    except Exception as exc:
        logging.error(f"FastAPI server failed to start: {exc}")


async def stop_services(application):
    """Stop the API server and close the database pool."""
    server = application.bot_data.get("api_server")
    task = application.bot_data.get("api_task")
    if server or task:
        try:
            from backend.server import stop_fastapi_server
            await stop_fastapi_server(server, task)
        except Exception as exc:
            logging.error(f"FastAPI server failed to stop cleanly: {exc}")
    game = application.bot_data.get("game")
    if game:
        await game.store.pool.close_all()


async def run_application(application):
    """Run PTB app with explicit init/start to avoid ExtBot initialization issues."""
    await start_services(application)
    try:
        await application.initialize()
        await application.bot.set_my_commands(BOT_COMMANDS)
        await application.start()
        # Start polling in the background
        await application.updater.start_polling(allowed_updates=Update.ALL_TYPES)

        # Keep the process alive until cancelled (Ctrl+C)
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        if application.updater.running:
            await application.updater.stop()
        if application.running:
            await application.stop()
        await application.shutdown()
        await stop_services(application)


def build_application():
    application = ApplicationBuilder().token(config.BOT_TOKEN).build()

    # Register Error Handler
    application.add_error_handler(error_handler)

    # 1. Help / Menu
    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("menu", menu_command))
    application.add_handler(CallbackQueryHandler(menu_callback_handler, pattern="^menu_"))

    # 2. Admin: match lifecycle
    application.add_handler(CommandHandler("setup", setup_command))
    application.add_handler(CommandHandler("editmatch", edit_match_command))
    application.add_handler(CommandHandler("close", close_poll_command))
    application.add_handler(CommandHandler("end", end_match_command))
    application.add_handler(CommandHandler("cancelmatch", cancel_match_command))
    application.add_handler(CommandHandler("export", export_command))

    # 3. Predictions
    application.add_handler(CommandHandler("predict", predict_command))
    application.add_handler(CommandHandler("edit", edit_prediction_command))
    application.add_handler(CommandHandler("mypick", my_prediction_command))
    application.add_handler(CommandHandler("list", list_predictions_command))

    # 4. History & stats
    application.add_handler(CommandHandler("past", past_matches_command))
    application.add_handler(CommandHandler("details", match_details_command))
    application.add_handler(CommandHandler("mystats", my_stats_command))
    application.add_handler(CommandHandler("leaderboard", leaderboard_command))

    return application


def main():
    # Acquire lock to ensure only one bot instance runs at a time
    acquire_lock()

    if not config.BOT_TOKEN:
        logging.error("No BOT_TOKEN found in .env file!")
        release_lock()
        return

    if not config.ADMIN_IDS:
        logging.warning("No ADMINS configured; admin commands will be rejected for everyone")

    application = build_application()

    logging.info("Cricket Prediction Bot is running...")

    # Run (explicit init/start sequence)
    try:
        asyncio.run(run_application(application))
    except KeyboardInterrupt:
        pass
    finally:
        release_lock()

if __name__ == '__main__':
    main()

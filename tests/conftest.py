import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import Chat, Message, Update, User

import config
from async_database import open_store
from game import PredictionGame
from scoring import distance_advanced

ADMIN_ID = 1001
ADMIN_NAME = "skipper"


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "data" / "cricket.db")


@pytest.fixture
def run_with_store(db_path):
    """Run ``scenario(store)`` inside one event loop over a fresh database."""
    def runner(scenario):
        async def main():
            store = await open_store(db_path, pool_size=2)
            try:
                return await scenario(store)
            finally:
                await store.pool.close_all()
        return asyncio.run(main())
    return runner


@pytest.fixture
def run_with_game(run_with_store):
    """Run ``scenario(game)`` with a PredictionGame over a fresh database."""
    def runner(scenario, distance=distance_advanced):
        async def with_game(store):
            return await scenario(PredictionGame(store, distance))
        return run_with_store(with_game)
    return runner


@pytest.fixture
def admins(monkeypatch):
    monkeypatch.setattr(config, "OWNER_ID", 0)
    monkeypatch.setattr(config, "ADMIN_IDS", frozenset({ADMIN_ID}))
    return config.ADMIN_IDS


def make_update(user_id=ADMIN_ID, username=ADMIN_NAME, chat_id=-100123):
    update = MagicMock(spec=Update)
    update.effective_user = MagicMock(spec=User)
    update.effective_user.id = user_id
    update.effective_user.username = username
    update.effective_user.full_name = username.title()

    update.effective_chat = MagicMock(spec=Chat)
    update.effective_chat.id = chat_id
    update.effective_chat.type = "supergroup"

    update.message = AsyncMock(spec=Message)
    return update


def make_context(game, args=()):
    context = MagicMock()
    context.args = list(args)
    context.bot_data = {"game": game}
    return context


def replies(update):
    """Text of every reply_text call, in order"""
    return [call.args[0] for call in update.message.reply_text.call_args_list]

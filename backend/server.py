import asyncio
import logging
import os
import uvicorn

from backend.app import app


def create_server(game):
    app.state.game = game
    host = os.getenv("WEBAPP_HOST", "0.0.0.0")
    port = int(os.getenv("WEBAPP_PORT", "8000"))
    config = uvicorn.Config(app, host=host, port=port, loop="asyncio", log_level="info")
    return uvicorn.Server(config)


async def start_fastapi_server(game):
    server = create_server(game)
    task = asyncio.create_task(server.serve())
    logging.info(f"API server starting on {server.config.host}:{server.config.port}")
    return server, task


async def stop_fastapi_server(server, task):
    if server:
        server.should_exit = True
    if task:
        await task

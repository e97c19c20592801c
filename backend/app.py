from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from backend.schemas import (
    LeaderboardEntryOut, LeaderboardOut, MatchDetailsOut, MatchOut, UserStatsOut, details_out, match_out,
)
from errors import MatchNotFound, StorageUnavailable


app = FastAPI(title="Cricket Prediction Bot API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


def get_game(request: Request):
    game = getattr(request.app.state, "game", None)
    if game is None:
        raise HTTPException(status_code=503, detail="game_not_ready")
    return game


def require_bot(x_bot_token: Optional[str] = Header(default=None), authorization: str = Header(default="")) -> None:
    bot_token = config.BOT_SERVICE_TOKEN
    if not bot_token:
        raise HTTPException(status_code=500, detail="bot_service_token_missing")

    if x_bot_token and x_bot_token == bot_token:
        return None
    if authorization.startswith("Bot "):
        token = authorization.replace("Bot ", "", 1).strip()
        if token == bot_token:
            return None

    raise HTTPException(status_code=403, detail="invalid_bot_token")


@app.exception_handler(StorageUnavailable)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
    return JSONResponse(status_code=503, content={"detail": "storage_unavailable"})


@app.get("/api/health")
def health():
    return {"ok": True}


@app.get("/api/matches/current", response_model=MatchDetailsOut)
async def current_match(game=Depends(get_game)):
    match = await game.current_match()
    if match is None:
        raise HTTPException(status_code=404, detail="no_active_match")
    predictions = await game.list_predictions(match.id)
    return details_out(match, predictions)


@app.get("/api/matches/past", response_model=List[MatchOut])
async def past_matches(game=Depends(get_game)):
    return [match_out(m) for m in await game.past_matches()]


@app.get("/api/matches/{match_id}", response_model=MatchDetailsOut)
async def match_details(match_id: str, game=Depends(get_game)):
    try:
        match, predictions = await game.match_details(match_id)
    except MatchNotFound:
        raise HTTPException(status_code=404, detail="match_not_found")
    return details_out(match, predictions)


@app.get("/api/leaderboard", response_model=LeaderboardOut)
async def leaderboard(limit: int = Query(default=25, ge=1, le=100), game=Depends(get_game)):
    entries = await game.leaderboard(limit=limit)
    items = [
        LeaderboardEntryOut(
            rank=idx,
            user_id=e.user_id,
            username=e.username,
            predictions=e.predictions,
            average_distance=e.average_distance,
        )
        for idx, e in enumerate(entries, start=1)
    ]
    return LeaderboardOut(scoring_method=game.scoring_method, items=items)


@app.get("/api/users/{user_id}/stats", response_model=UserStatsOut)
async def user_stats(user_id: int, game=Depends(get_game)):
    stats = await game.user_stats(user_id)
    if stats is None:
        raise HTTPException(status_code=404, detail="no_finalized_predictions")
    return UserStatsOut(
        user_id=stats.user_id,
        username=stats.username,
        predictions=stats.predictions,
        average_distance=stats.average_distance,
        scoring_method=game.scoring_method,
    )


@app.get("/admin/export")
async def export_all(_: None = Depends(require_bot), game=Depends(get_game)):
    return await game.export_all()

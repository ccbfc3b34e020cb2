"""
NLU Service
Hosts one NLU engine per mounted bot: intent model sync and text understanding
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .engine import NLUEngine
from .exceptions import IntentNotFoundError, InvalidBotIdError, InvalidIntentNameError
from .lifecycle import on_bot_mount, on_bot_unmount, on_server_started
from .metrics import metrics_endpoint
from .models import BotStatus, EntityDefinition, ExtractRequest, IntentDefinition, IntentPayload, SyncResponse

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    app.state.registry = on_server_started(settings)
    logger.info("🧠 Starting NLU Service", port=settings.port)

    yield

    logger.info("🛑 Shutting down NLU Service")
    await app.state.registry.close()


app = FastAPI(
    title="NLU Service",
    description="Per-bot language, intent, entity and slot extraction",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_engine(bot_id: str) -> NLUEngine:
    engine = app.state.registry.get(bot_id)
    if engine is None:
        raise HTTPException(status_code=404, detail=f"Bot '{bot_id}' is not mounted")
    return engine


async def resync(engine: NLUEngine) -> bool:
    if await engine.needs_sync():
        await engine.sync()
        return True
    return False


@app.post("/bots/{bot_id}/mount", response_model=BotStatus)
async def mount_bot(bot_id: str):
    """Create the bot's engine and sync its intent model"""
    try:
        engine = await on_bot_mount(app.state.registry, bot_id)
    except InvalidBotIdError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Bot mount failed", bot_id=bot_id, error=str(e))
        raise HTTPException(status_code=500, detail="Bot mount failed")
    return engine.status()


@app.delete("/bots/{bot_id}")
async def unmount_bot(bot_id: str):
    get_engine(bot_id)
    await on_bot_unmount(app.state.registry, bot_id)
    return {"bot_id": bot_id, "mounted": False}


@app.get("/bots")
async def list_bots():
    return {"bots": [get_engine(bot_id).status() for bot_id in app.state.registry.bot_ids]}


@app.post("/bots/{bot_id}/sync", response_model=SyncResponse)
async def sync_bot(bot_id: str):
    """Train or load the intent model matching the bot's current intents"""
    engine = get_engine(bot_id)
    synced = await resync(engine)
    return SyncResponse(bot_id=bot_id, synced=synced, model_id=engine.intent_classifier.current_model_id)


@app.post("/bots/{bot_id}/extract")
async def extract(bot_id: str, request: ExtractRequest) -> Dict[str, Any]:
    """Understand a text for a bot"""
    result = await get_engine(bot_id).extract(request.text)
    return result.model_dump()


@app.put("/bots/{bot_id}/intents/{name}", response_model=IntentDefinition)
async def save_intent(bot_id: str, name: str, payload: IntentPayload):
    """Create or replace an intent, then retrain when the intents changed"""
    engine = get_engine(bot_id)
    try:
        intent = await engine.storage.save_intent(IntentDefinition(name=name, **payload.model_dump()))
    except InvalidIntentNameError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await resync(engine)
    return intent


@app.get("/bots/{bot_id}/intents", response_model=List[IntentDefinition])
async def list_intents(bot_id: str):
    return await get_engine(bot_id).storage.get_intents()


@app.delete("/bots/{bot_id}/intents/{name}")
async def delete_intent(bot_id: str, name: str):
    engine = get_engine(bot_id)
    try:
        await engine.storage.delete_intent(name)
    except (IntentNotFoundError, InvalidIntentNameError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    await resync(engine)
    return {"bot_id": bot_id, "intent": name, "deleted": True}


@app.put("/bots/{bot_id}/entities/{entity_id}", response_model=EntityDefinition)
async def save_entity(bot_id: str, entity_id: str, entity: EntityDefinition):
    """Create or replace a custom entity, used from the next extraction on"""
    return await get_engine(bot_id).storage.save_entity(entity.model_copy(update={"id": entity_id}))


@app.get("/bots/{bot_id}/entities", response_model=List[EntityDefinition])
async def list_entities(bot_id: str):
    return await get_engine(bot_id).storage.get_custom_entities()


@app.delete("/bots/{bot_id}/entities/{entity_id}")
async def delete_entity(bot_id: str, entity_id: str):
    await get_engine(bot_id).storage.delete_entity(entity_id)
    return {"bot_id": bot_id, "entity": entity_id, "deleted": True}


@app.get("/bots/{bot_id}/models")
async def list_models(bot_id: str):
    """Persisted intent models, oldest first"""
    engine = get_engine(bot_id)
    return {
        "bot_id": bot_id,
        "model_id": engine.intent_classifier.current_model_id,
        "models": await engine.storage.list_models(),
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "nlu",
        "mounted_bots": len(app.state.registry.bot_ids),
    }


app.add_api_route("/metrics", metrics_endpoint, methods=["GET"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)

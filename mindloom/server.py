"""
Mindloom Server

FastAPI shell around the orchestrator.

Endpoints:
- POST /tasks: Submit a task (user from X-User-Id header)
- GET /tasks/{task_id}: Task status and result
- GET /tasks: Task history for the user
- GET /agents/status: Point-in-time agent snapshot
- GET /agents/metrics: Per-user completion metrics
- GET /health: Health check
- WS /ws/{user_id}: task-progress / task-error events for one user

Lifecycle:
1. Load .env and config
2. Build the orchestrator (agents, queue, stores, retriever) and settle
   tasks a previous run left processing
3. Run the orchestration loop every poll interval until shutdown
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Header, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .common.config import MindloomConfig, ensure_directories, load_config
from .orchestrator import EventBroker, Orchestrator, PeriodicScheduler, QueueError, StoreError

logger = logging.getLogger("mindloom.server")


# Global state
config: Optional[MindloomConfig] = None
orchestrator: Optional[Orchestrator] = None
broker: Optional[EventBroker] = None
scheduler: Optional[PeriodicScheduler] = None


def create_orchestrator(cfg: MindloomConfig, event_broker: EventBroker) -> Orchestrator:
    return Orchestrator.from_config(cfg, notifier=event_broker)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, orchestrator, broker, scheduler

    logger.info("Starting up...")
    load_dotenv()
    ensure_directories()

    config = load_config()
    logger.info("Loaded config (llm provider: %s)", config.llm.provider)

    broker = EventBroker()
    orchestrator = create_orchestrator(config, broker)
    logger.info("Orchestrator ready with %d agent(s)", len(orchestrator.pool))

    interrupted = await orchestrator.recover_interrupted()
    if interrupted:
        logger.warning("Marked %d interrupted task(s) failed", len(interrupted))

    scheduler = orchestrator.scheduler()
    loop_task = asyncio.create_task(scheduler.run())
    logger.info("Processing loop started (every %.1fs)", scheduler.interval)

    yield

    # Cleanup
    logger.info("Shutting down...")
    scheduler.stop()
    await loop_task
    orchestrator = None
    broker = None
    scheduler = None


app = FastAPI(
    title="Mindloom",
    description="Task orchestration with curious, self-learning agents",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Request/Response Models
# =============================================================================

class TaskSubmission(BaseModel):
    """Task submission request"""
    prompt: str = Field(min_length=1, max_length=5000)
    context: Dict[str, Any] = Field(default_factory=dict)
    priority: int = 1


def _require_orchestrator() -> Orchestrator:
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")
    return orchestrator


def _require_user(x_user_id: Optional[str]) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "mindloom",
        "initialized": orchestrator is not None,
        "agents": len(orchestrator.pool) if orchestrator else 0,
        "pending_tasks": len(orchestrator.queue) if orchestrator else 0,
    }


@app.post("/tasks", status_code=201)
async def submit_task(submission: TaskSubmission, x_user_id: Optional[str] = Header(None)):
    """Queue a task; processing happens on the orchestration loop."""
    orch = _require_orchestrator()
    user_id = _require_user(x_user_id)

    try:
        task_id = orch.submit_task(user_id, submission.prompt, submission.context, submission.priority)
    except (QueueError, StoreError) as e:
        logger.error("Failed to submit task for %s: %s", user_id, e)
        raise HTTPException(status_code=503, detail="Task could not be queued")

    return {"taskId": task_id, "status": "pending"}


@app.get("/tasks/{task_id}")
async def get_task(task_id: str, x_user_id: Optional[str] = Header(None)):
    """Get a task owned by the caller"""
    orch = _require_orchestrator()
    user_id = _require_user(x_user_id)

    task = orch.get_task(task_id)
    if task is None or task.user_id != user_id:
        raise HTTPException(status_code=404, detail="Task not found")

    return task.model_dump(mode="json")


@app.get("/tasks")
async def list_tasks(limit: int = Query(50, ge=1, le=500), x_user_id: Optional[str] = Header(None)):
    """Task history for the caller, newest first"""
    orch = _require_orchestrator()
    user_id = _require_user(x_user_id)

    tasks = orch.get_user_tasks(user_id, limit=limit)
    return {
        "count": len(tasks),
        "items": [t.model_dump(mode="json") for t in tasks],
    }


@app.get("/agents/status")
async def agent_status():
    """Status of every agent"""
    orch = _require_orchestrator()
    return {"agents": orch.get_agent_status()}


@app.get("/agents/metrics")
async def agent_metrics(days: int = Query(30, ge=1), x_user_id: Optional[str] = Header(None)):
    """Completion metrics for the caller's recent tasks"""
    orch = _require_orchestrator()
    user_id = _require_user(x_user_id)
    return orch.get_user_metrics(user_id, days=days)


@app.websocket("/ws/{user_id}")
async def user_events(websocket: WebSocket, user_id: str):
    """Stream task events for one user until the client disconnects."""
    event_broker = broker
    if event_broker is None:
        await websocket.close(code=1013)
        return

    queue = event_broker.subscribe(user_id)

    async def forward():
        while True:
            message = await queue.get()
            await websocket.send_json(message)

    sender = None
    try:
        await websocket.accept()
        logger.debug("Subscriber joined channel for %s", user_id)
        sender = asyncio.create_task(forward())
        # Inbound messages are ignored; receiving only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Subscriber left channel for %s", user_id)
    finally:
        if sender is not None:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning("Event forwarding for %s stopped: %s", user_id, e)
        event_broker.unsubscribe(user_id, queue)


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Mindloom server"""
    import uvicorn

    load_dotenv()
    cfg = load_config()
    logging.basicConfig(
        level=getattr(logging, cfg.server.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info("Starting server on %s:%d", cfg.server.host, cfg.server.port)
    uvicorn.run(
        "mindloom.server:app",
        host=cfg.server.host,
        port=cfg.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()

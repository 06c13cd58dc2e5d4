import json
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from .runtime import Gateway
from .schemas import ClientFrame, PublishRequest, TopicRequest
from .utilities import (
    BrokerTransientError,
    UserInputError,
    constants,
    iso_from_epoch,
    make_error,
    setup_logger,
)

logger = setup_logger("live_gateway", constants.LOG_LEVEL, constants.LOG_DIR)


def create_app(gateway: Optional[Gateway] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        gw = gateway if gateway is not None else Gateway()
        app.state.gateway = gw
        gw.start()
        logger.info("Gateway started (interval=%.3fs)", gw.interval)
        yield
        await gw.stop()

    app = FastAPI(title="MQTT Live Gateway", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"],
                       allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
                       allow_headers=["*"])

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("Requested to: %s %s", request.method, request.url.path)
        return await call_next(request)

    # -------------- WebSocket handling --------------
    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket):
        await ws.accept()
        gw: Gateway = ws.app.state.gateway
        session = gw.open_session(ws.send_json)
        client_left = False
        try:
            while not session.closed:
                data = await ws.receive_text()
                try:
                    payload = json.loads(data)
                except json.JSONDecodeError:
                    session.emit(make_error("invalid json"))
                    continue
                try:
                    frame = ClientFrame.model_validate(payload)
                except ValidationError:
                    session.emit(make_error("invalid frame: 'event' is required"))
                    continue

                if frame.event == "subscribeToTopic":
                    session.subscribe(frame.topic_arg())
                    continue

                if frame.event == "unsubscribeFromTopic":
                    topic = frame.topic_arg()
                    session.unsubscribe(topic if isinstance(topic, str) else None)
                    continue

                if frame.event == "disconnect":
                    break

                # unknown event
                session.emit(make_error(f"unknown event: {frame.event}"))
        except WebSocketDisconnect:
            client_left = True
        finally:
            # cancels every delivery loop and releases each topic once
            await session.aclose()
        if not client_left:
            try:
                await ws.close()
            except RuntimeError:
                # already closed by the failed sender
                pass

    # -------------- REST endpoints --------------
    @app.get("/health")
    async def rest_health(request: Request):
        return request.app.state.gateway.health()

    @app.get("/stats")
    async def rest_stats(request: Request):
        return request.app.state.gateway.stats()

    @app.get("/api/v1/mqtt/topics")
    async def rest_list_topics(request: Request):
        return {"topics": request.app.state.gateway.store.list_all()}

    @app.post("/api/v1/mqtt/topics", status_code=201)
    async def rest_persist_topic(req: TopicRequest, request: Request):
        topic = req.topic
        try:
            created = request.app.state.gateway.persist_topic(topic)
        except UserInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        if not created:
            raise HTTPException(status_code=409, detail=f"topic {topic} already subscribed")
        return {"success": True, "topic": topic}

    @app.delete("/api/v1/mqtt/topics/{topic:path}")
    async def rest_forget_topic(topic: str, request: Request):
        if not request.app.state.gateway.forget_topic(topic):
            raise HTTPException(status_code=404, detail="not found")
        return {"success": True, "topic": topic}

    @app.get("/api/v1/mqtt/latest")
    async def rest_latest(topic: str, request: Request):
        cached = request.app.state.gateway.cache.get(topic)
        if cached is None:
            raise HTTPException(status_code=404, detail="No live message available")
        return {"success": True, "topic": topic, "message": cached.payload,
                "receivedAt": iso_from_epoch(cached.received_at)}

    @app.post("/api/v1/mqtt/publish")
    async def rest_publish(req: PublishRequest, request: Request):
        if not req.topic.strip():
            raise HTTPException(status_code=400, detail="Topic is required")
        try:
            request.app.state.gateway.adapter.publish(req.topic, req.message, retain=req.retain)
        except BrokerTransientError as exc:
            logger.error("Publish to %s failed: %s", req.topic, exc)
            raise HTTPException(status_code=503, detail=str(exc))
        return {"success": True, "topic": req.topic}

    return app


app = create_app()


def main():
    import uvicorn
    logger.info("Listening on port number %d", constants.PORT)
    uvicorn.run(
        app,
        host=constants.HOST,
        port=constants.PORT,
        log_level=constants.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()

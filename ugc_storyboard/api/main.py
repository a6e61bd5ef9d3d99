"""Main FastAPI application: credential-hiding proxy plus WebSocket driver"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional, Tuple

import httpx
import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from ..clients import DEFAULT_CREDENTIALS
from ..clients.client_openrouter import build_upstream_headers, upstream_error_message
from ..clients.extractors import extract_image, is_bare_base64, to_data_url
from ..core.config import (
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
    OPENROUTER_SITE_URL,
    PORT,
    PROXY_IMAGE_MODEL,
    STORYBOARD_BACKEND,
    UPSTREAM_TIMEOUT,
    configure_logging,
)
from ..core.session import StoryboardSession
from .api_types import GenerateImageRequest, GenerateSequenceRequest, ImageMeta, SequenceFrame
from .websocket import StoryboardWebSocketHandler

logger = logging.getLogger(__name__)


def default_session_factory() -> StoryboardSession:
    return StoryboardSession(api_key=DEFAULT_CREDENTIALS.get(STORYBOARD_BACKEND))


async def generate_image_via_upstream(
    client: httpx.AsyncClient,
    upstream_base: str,
    api_key: str,
    prompt: str,
    aspect_ratio: str = "9:16",
    seed: Optional[int] = None,
    image_ref: Optional[str] = None,
    model: str = PROXY_IMAGE_MODEL
) -> Tuple[int, Dict[str, Any]]:
    """
    Generate one image through upstream chat completions.

    Args:
        client: Shared httpx client
        upstream_base: Upstream API base URL
        api_key: Server-side credential
        prompt: Image prompt
        aspect_ratio: Requested aspect ratio
        seed: Optional seed for more deterministic output
        image_ref: Optional reference image (data URL, bare base64 or URL)
        model: Image model name

    Returns:
        Tuple of (status_code, response body)
    """
    content = [{"type": "text", "text": prompt}]
    if image_ref and image_ref.strip():
        ref = image_ref.strip()
        if is_bare_base64(ref):
            ref = to_data_url(ref)
        content.append({"type": "image_url", "image_url": {"url": ref}})

    body = {
        "model": model,
        "messages": [{"role": "user", "content": content}],
        "modalities": ["image", "text"],
        "image_config": {"aspect_ratio": aspect_ratio}
    }
    if seed is not None:
        body["seed"] = seed

    try:
        response = await client.post(
            f"{upstream_base}/chat/completions",
            json=body,
            headers=build_upstream_headers(api_key)
        )
    except httpx.HTTPError as e:
        logger.error(f"[Proxy] Image request failed: {e}")
        return 500, {"error": str(e)}

    try:
        data = response.json()
    except ValueError:
        data = {"error": response.text[:500]}

    if not response.is_success:
        return response.status_code, {"error": upstream_error_message(data, "OpenRouter error"), "raw": data}

    image = extract_image(data)
    if not image:
        logger.warning("[Proxy] Upstream response contained no image")
        return 502, {"error": "No image returned by model", "raw": data}

    meta = ImageMeta(aspect_ratio=aspect_ratio, seed=seed, model=model)
    return 200, {"image": image, "meta": meta.model_dump(by_alias=True, exclude_none=True), "raw": data}


def create_app(
    api_key: Optional[str] = OPENROUTER_API_KEY,
    upstream_base: str = OPENROUTER_BASE_URL,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    session_factory: Callable[[], StoryboardSession] = default_session_factory
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        api_key: Upstream credential injected by the proxy
        upstream_base: Upstream API base URL
        transport: Optional httpx transport (tests use httpx.MockTransport)
        session_factory: Creates one StoryboardSession per WebSocket connection

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan"""
        app.state.http_client = httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT, transport=transport)
        logger.info(f"[API] Proxy ready, forwarding to {upstream_base}")

        yield

        await app.state.http_client.aclose()

    app = FastAPI(
        title="UGC Storyboard Proxy",
        description="Credential-hiding proxy and storyboard generation service",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.api_key = api_key
    app.state.upstream_base = upstream_base.rstrip("/")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[OPENROUTER_SITE_URL],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def missing_key_response() -> Optional[JSONResponse]:
        if app.state.api_key:
            return None
        return JSONResponse(status_code=500, content={"error": "OPENROUTER_API_KEY is not configured"})

    @app.get("/api/health")
    async def health():
        """Health check endpoint"""
        return {"ok": True}

    @app.post("/api/chat/completions")
    async def chat_completions(request: Request):
        """Forward the body unchanged; return upstream status and body verbatim"""
        error_response = missing_key_response()
        if error_response:
            return error_response

        body = await request.body()
        try:
            upstream = await app.state.http_client.post(
                f"{app.state.upstream_base}/chat/completions",
                content=body,
                headers=build_upstream_headers(app.state.api_key)
            )
        except httpx.HTTPError as e:
            logger.error(f"[Proxy] Chat completions forward failed: {e}")
            return JSONResponse(status_code=500, content={"error": "Proxy error"})

        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            media_type=upstream.headers.get("content-type", "application/json")
        )

    @app.post("/api/generate-image")
    async def generate_image(payload: GenerateImageRequest):
        """Generate one image; used for chaining frame consistency"""
        if not payload.prompt or not isinstance(payload.prompt, str):
            return JSONResponse(status_code=400, content={"error": "prompt is required (string)"})

        error_response = missing_key_response()
        if error_response:
            return error_response

        status_code, body = await generate_image_via_upstream(
            app.state.http_client,
            app.state.upstream_base,
            app.state.api_key,
            payload.prompt,
            aspect_ratio=payload.aspect_ratio,
            seed=payload.seed,
            image_ref=payload.image_ref
        )
        return JSONResponse(status_code=status_code, content=body)

    @app.post("/api/generate-sequence")
    async def generate_sequence(payload: GenerateSequenceRequest):
        """Generate prompts in order, feeding each image as the next reference"""
        prompts = payload.prompts
        if not prompts or not all(isinstance(prompt, str) and prompt for prompt in prompts):
            return JSONResponse(status_code=400, content={"error": "prompts must be a non-empty string array"})

        error_response = missing_key_response()
        if error_response:
            return error_response

        frames = []
        last_image = payload.first_image_ref
        for index, prompt in enumerate(prompts):
            status_code, body = await generate_image_via_upstream(
                app.state.http_client,
                app.state.upstream_base,
                app.state.api_key,
                prompt,
                aspect_ratio=payload.aspect_ratio,
                seed=payload.seed,
                image_ref=last_image
            )
            if status_code != 200:
                logger.warning(f"[Proxy] Sequence stopped at step {index} with status {status_code}")
                return JSONResponse(
                    status_code=status_code,
                    content={"error": body.get("error") or "sequence error", "step": index, "raw": body}
                )

            frame = SequenceFrame(index=index, image=body["image"], meta=body["meta"])
            frames.append(frame.model_dump(by_alias=True, exclude_none=True))
            last_image = body["image"]

        content = {"frames": frames, "aspectRatio": payload.aspect_ratio}
        if payload.seed is not None:
            content["seed"] = payload.seed
        return content

    @app.websocket("/ws/storyboard")
    async def storyboard_websocket(websocket: WebSocket):
        """WebSocket endpoint driving one storyboard session"""
        await websocket.accept()
        handler = StoryboardWebSocketHandler(websocket, session_factory())
        try:
            await handler.handle()
        except Exception as e:
            await websocket.close(code=1011, reason=str(e)[:120])

    return app


app = create_app()


if __name__ == "__main__":
    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=PORT)

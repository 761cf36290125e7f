import inspect
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from openai import AsyncOpenAI

from dal.session_dal import SessionDAL
from routes.audio_route import router as audio_router
from routes.image_route import router as image_router
from routes.session_route import router as session_router
from services.audio.capture import CaptureAdapter
from services.audio.devices import SoundDeviceOutputContext, open_microphone
from services.audio.dictation import DictationSession
from services.audio.playback import PlaybackController
from services.image_store import ImageStore
from services.openai.chat_service import PersonaChatService
from services.openai.dictation_service import DictationService
from services.openai.image_generator import ImageGenerator
from services.openai.lifespan_lookup import LifespanLookup
from services.openai.speech_synthesizer import SpeechSynthesizer
from services.session.conversation import ConversationEngine
from services.session.enrichment import MediaEnrichmentOrchestrator
from services.session.session_store import SessionStore
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
LOGGER = logging.getLogger(__name__)


def build_engine(settings: Settings, client: AsyncOpenAI, db_initializer: AsyncDatabaseInitializer, image_store: ImageStore) -> ConversationEngine:
    """Wire the conversation engine and its collaborators."""
    store = SessionStore(SessionDAL(db_initializer, settings.history_namespace))
    enrichment = MediaEnrichmentOrchestrator(
        store,
        ImageGenerator(client, model=settings.models.image_model),
        image_store,
        timeout=settings.remote_timeout,
    )
    playback = PlaybackController(SoundDeviceOutputContext, sample_rate=settings.audio.playback_sample_rate)
    return ConversationEngine(
        store,
        PersonaChatService(client, model=settings.models.chat_model, temperature=settings.models.chat_temperature),
        enrichment,
        SpeechSynthesizer(client, model=settings.models.tts_model),
        playback,
        lifespan=LifespanLookup(client, model=settings.models.lifespan_model),
        timeout=settings.remote_timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite history database (kept across restarts, at DATABASE_DIR/app.db)
      - the OpenAI async client
      - the conversation engine and dictation pipeline
    and attach them to `app.state`.
    """
    settings = Settings()
    app.state.settings = settings

    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    # Initialize OpenAI async client
    openai_api_key = os.getenv("OPENAI_API_KEY")
    if not openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")

    try:
        openai_client = AsyncOpenAI()
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc

    app.state.openai_client = openai_client

    image_store = ImageStore(db_initializer.db_dir / "images")
    app.state.image_store = image_store
    engine = build_engine(settings, openai_client, db_initializer, image_store)
    app.state.engine = engine

    capture = CaptureAdapter(open_microphone, sample_rate=settings.audio.capture_sample_rate)
    app.state.dictation = DictationSession(
        capture,
        DictationService(openai_client, model=settings.models.transcribe_model),
        timeout=settings.remote_timeout,
    )
    LOGGER.info("Session engine ready (history namespace %s)", settings.history_namespace)

    try:
        yield
    finally:
        capture.cancel()
        await engine.close()
        # Gracefully close the OpenAI client if it exposes a close/aclose method.
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is not None:
                try:
                    if inspect.iscoroutinefunction(aclose):
                        await aclose()
                    else:
                        result = aclose()
                        if inspect.isawaitable(result):
                            await result
                except Exception as exc:
                    LOGGER.warning("Error closing OpenAI client: %s", exc)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    # Serve static assets from the public directory, if it exists.
    if PUBLIC_DIR.exists():
        app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

    @app.get("/", include_in_schema=False)
    async def serve_index():
        """
        Serve the frontend index page from the public directory.
        """
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        """
        Health check reporting which collaborators are attached.
        """
        engine = getattr(request.app.state, "engine", None)
        return {
            "ok": True,
            "db_initialized": hasattr(request.app.state, "db_initializer"),
            "openai_available": getattr(request.app.state, "openai_client", None) is not None,
            "current_session_id": engine.current_session_id if engine is not None else None,
        }

    # Register application routers
    app.include_router(session_router)
    app.include_router(audio_router)
    app.include_router(image_router)

    return app


app = create_app()

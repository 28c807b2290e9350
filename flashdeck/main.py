import logging
from contextlib import asynccontextmanager
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import CARDS_FILE, PROGRESS_FILE, SETTINGS_FILE, get_data_dir, load_settings, save_settings
from .errors import InvalidImportFormat, InvalidStateTransition, NoDueCards, StoreError, SyncError
from .models import Card, DeckStats, ExportPayload, NewCardInput, ReviewRequest, Settings, SettingsUpdate, StudyRequest
from .services import FlashcardService
from .session import SessionSnapshot
from .stores import CsvProgressStore, CsvVaultSource

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def make_service() -> FlashcardService:
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    settings_path = data_dir / SETTINGS_FILE
    service = FlashcardService(
        vault=CsvVaultSource(str(data_dir / CARDS_FILE)),
        store=CsvProgressStore(str(data_dir / PROGRESS_FILE)),
        settings=load_settings(settings_path),
        on_settings_change=lambda s: save_settings(settings_path, s),
    )
    try:
        service.load_data()
    except StoreError as e:
        logger.error(f"Could not load progress on startup: {e}")
    return service


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.service = make_service()
    logger.info("Flashcard API ready")
    yield


app = FastAPI(title="Flashcard Review API", lifespan=lifespan)

# CORS Setup
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_service(request: Request) -> FlashcardService:
    return request.app.state.service


def _conflict(e: InvalidStateTransition):
    return HTTPException(status_code=409, detail=str(e))


@app.get("/stats")
def get_stats(service: FlashcardService = Depends(get_service)):
    return service.get_stats()


@app.get("/decks", response_model=List[DeckStats])
def get_decks(service: FlashcardService = Depends(get_service)):
    return service.get_deck_stats()


@app.get("/study/count")
def get_reviewable_count(deck: Optional[str] = None, service: FlashcardService = Depends(get_service)):
    return {"deck": deck, "count": service.reviewable_count(deck)}


@app.post("/study/start", response_model=SessionSnapshot)
def start_study(request: StudyRequest, service: FlashcardService = Depends(get_service)):
    try:
        return service.start_review(request.deck)
    except NoDueCards as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.get("/study/current", response_model=SessionSnapshot)
def get_current(service: FlashcardService = Depends(get_service)):
    return service.snapshot()


@app.post("/study/flip", response_model=SessionSnapshot)
def flip_card(service: FlashcardService = Depends(get_service)):
    try:
        return service.flip()
    except InvalidStateTransition as e:
        raise _conflict(e)


@app.post("/study/hint", response_model=SessionSnapshot)
def toggle_hint(service: FlashcardService = Depends(get_service)):
    try:
        return service.toggle_hint()
    except InvalidStateTransition as e:
        raise _conflict(e)


@app.post("/study/review")
def review_card(request: ReviewRequest, service: FlashcardService = Depends(get_service)):
    try:
        outcome = service.submit_review(request.rating)
    except InvalidStateTransition as e:
        raise _conflict(e)
    except StoreError as e:
        # the session has already moved on; only persistence failed
        raise HTTPException(status_code=503, detail=f"Rating applied but not saved: {e}")
    return {"progress": outcome.progress, "completed": outcome.completed, "session": service.snapshot()}


@app.post("/study/end", response_model=SessionSnapshot)
def end_study(service: FlashcardService = Depends(get_service)):
    return service.end_review()


@app.post("/study/retry-saves")
def retry_saves(service: FlashcardService = Depends(get_service)):
    try:
        return {"pending": service.retry_unsaved()}
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))


@app.get("/cards", response_model=List[Card])
def list_cards(deck: Optional[str] = None, service: FlashcardService = Depends(get_service)):
    return service.list_cards(deck)


@app.post("/cards", response_model=Card)
def add_card(card: NewCardInput, service: FlashcardService = Depends(get_service)):
    return service.add_card(card)


@app.get("/export", response_model=ExportPayload)
def export_data(service: FlashcardService = Depends(get_service)):
    return service.export_data()


@app.post("/import")
def import_data(payload: dict, mode: Literal["merge", "replace"] = Query("merge"),
                service: FlashcardService = Depends(get_service)):
    try:
        return service.import_data(payload, replace=(mode == "replace"))
    except InvalidImportFormat as e:
        raise HTTPException(status_code=422, detail=f"Invalid import format: {e}")
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))


@app.get("/settings", response_model=Settings)
def get_settings(service: FlashcardService = Depends(get_service)):
    return service.settings


@app.patch("/settings", response_model=Settings)
def update_settings(update: SettingsUpdate, service: FlashcardService = Depends(get_service)):
    return service.update_settings(update)


@app.post("/refresh")
def refresh(service: FlashcardService = Depends(get_service)):
    try:
        return {"cards": service.refresh()}
    except SyncError as e:
        raise HTTPException(status_code=502, detail=str(e))

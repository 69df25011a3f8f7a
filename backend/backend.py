# backend/backend.py

# 1️⃣ Imports
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from typing import List, Optional
from contextlib import asynccontextmanager
import logging
import os
from dotenv import load_dotenv

# 2️⃣ Local imports
from backend import llm_client, retrieval
from backend.errors import TutorError
from backend.persistence import make_store
from backend.sessions import SessionTracker
from backend.teaching import TeachResult, search_sources, teach, teach_topic

# 3️⃣ Configuration
load_dotenv()

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
SESSION_STORE = os.getenv("SESSION_STORE", "memory").lower()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", "3001"))

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Process-lifetime session tracker
tracker = SessionTracker(make_store(SESSION_STORE))


def get_tracker() -> SessionTracker:
    return tracker


# 4️⃣ FastAPI app
@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    tracker.store.init()
    logger.info("InventaLab backend starting on port %d", PORT)
    logger.info("LLM: %s", llm_client.provider_label())
    logger.info("RAG (Tavily): %s", "enabled" if retrieval.is_enabled() else "disabled")
    logger.info("Session store: %s", SESSION_STORE)
    yield


app = FastAPI(title="InventaLab Research Professor Backend", lifespan=lifespan)

# 5️⃣ CORS - configured from environment
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 6️⃣ Error handlers
@app.exception_handler(TutorError)
async def tutor_error_handler(request: Request, exc: TutorError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Server error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "details": str(exc)},
    )


# 7️⃣ Models
class SessionStartResponse(BaseModel):
    sessionId: str
    text: str
    microQuestions: List[str]


class RetrievedSource(BaseModel):
    title: str = ""
    content: str = ""
    url: str = ""


class TeachRequest(BaseModel):
    sessionId: Optional[str] = None
    message: Optional[str] = None
    # Retrieval-first variant
    topic: Optional[str] = None
    retrieved: Optional[List[RetrievedSource]] = None


class SourceOut(BaseModel):
    title: str
    url: str
    content: str


class TeachResponse(BaseModel):
    role: str
    agendaStep: Optional[str] = None
    agendaTitle: Optional[str] = None
    text: str
    output: str  # Same as text, kept for older clients
    sources: Optional[List[SourceOut]] = None
    mindmap: Optional[str] = None
    microQuestions: Optional[List[str]] = None
    isIntroduction: Optional[bool] = None


class SearchRequest(BaseModel):
    query: Optional[str] = None


class SearchResponse(BaseModel):
    source: str
    retrieved_at: str
    results: List[RetrievedSource]


def _to_response(result: TeachResult, stateless: bool = False) -> TeachResponse:
    return TeachResponse(
        role=result.role,
        agendaStep=None if stateless else result.topic,
        agendaTitle=result.topic if stateless else None,
        text=result.text,
        output=result.text,
        sources=result.sources or None,
        mindmap=result.mindmap or None,
        microQuestions=result.micro_questions or None,
        isIntroduction=result.is_introduction,
    )


# 8️⃣ Health
@app.get("/", response_class=PlainTextResponse)
def health():
    return f"✅ InventaLab Backend Running ({llm_client.provider_label()})"


# 9️⃣ Start session
@app.post("/session/start", response_model=SessionStartResponse)
def start_session(tracker: SessionTracker = Depends(get_tracker)):
    session, greeting = tracker.start_session()
    return SessionStartResponse(
        sessionId=session.id,
        text=greeting["text"],
        microQuestions=greeting["microQuestions"],
    )


# 🔟 Teach
@app.post("/rag/teach", response_model=TeachResponse, response_model_exclude_none=True)
def rag_teach(req: TeachRequest, tracker: SessionTracker = Depends(get_tracker)):
    if req.sessionId is None and req.topic is not None:
        retrieved = [r.model_dump() for r in req.retrieved] if req.retrieved else None
        return _to_response(teach_topic(req.topic, retrieved), stateless=True)

    result = teach(tracker, req.sessionId, req.message or "")
    return _to_response(result)


# 1️⃣1️⃣ Standalone search
@app.post("/rag/search", response_model=SearchResponse)
def rag_search(req: SearchRequest):
    return search_sources(req.query)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)

import logging
import re
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import CORS_ORIGINS, DATABASE_URL, LOG_LEVEL, PORT, SANDBOX_MODEL
from database import create_document, ensure_indexes, get_db, get_documents, serialize_doc
from errors import PromptLabError, ServiceUnavailable
from sandbox import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, generate_sandbox_response, get_completion_client
from schemas import (
    Author,
    Comment,
    CommentCreate,
    ForkRequest,
    Prompt,
    PromptCreate,
    PromptList,
    PromptUpdate,
    ReactionResult,
    ReactionState,
    ReactionToggle,
    SandboxRun,
    SandboxRunRequest,
    SandboxRunResult,
    SaveResult,
    SaveToggle,
    TagOut,
    new_id,
    utcnow,
)
from seed_data import DEFAULT_PROMPTS
from tagging import canonical_tags, normalize_tag

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = get_db()
    try:
        ensure_indexes(database)
        seed_prompts(database)
    except PyMongoError:
        logger.warning("Database not reachable at startup, skipping seed", exc_info=True)
    yield


app = FastAPI(title="Prompt Lab API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

DEFAULT_SANDBOX_USER = Author(id="user-casey", name="Casey Demo", email="casey@tracknamic.com")


# Errors are always returned as {"error": "..."}

@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_error(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg')}" if field else "Invalid request"
    return JSONResponse({"error": message}, status_code=422)


@app.exception_handler(PromptLabError)
async def prompt_lab_error(request: Request, exc: PromptLabError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# Utilities

def prompt_to_doc(prompt: Prompt) -> dict:
    doc = prompt.model_dump()
    doc["_id"] = doc.pop("id")
    return doc


def prompt_from_doc(doc) -> Prompt:
    return Prompt.model_validate(serialize_doc(doc))


def find_prompt(database, prompt_id: str) -> dict:
    doc = database["prompt"].find_one({"_id": prompt_id})
    if not doc:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return doc


def require_text(value: Optional[str], message: str) -> str:
    value = (value or "").strip()
    if not value:
        raise HTTPException(status_code=400, detail=message)
    return value


def seed_prompts(database) -> bool:
    if database["prompt"].count_documents({}) > 0:
        return False
    database["prompt"].insert_many([prompt_to_doc(p) for p in DEFAULT_PROMPTS])
    logger.info("Seeded %d default prompts", len(DEFAULT_PROMPTS))
    return True


# Health

@app.get("/")
def read_root():
    return {"message": "Prompt Lab API running"}


@app.get("/test")
def test_database(database=Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if DATABASE_URL else "❌ Not Set",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        response["database"] = "✅ Available"
        response["database_name"] = database.name
        response["connection_status"] = "Connected"
        response["collections"] = database.list_collection_names()[:10]
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Prompt endpoints

@app.get("/api/prompts", response_model=PromptList)
def list_prompts(q: str = "", tag: str = "", database=Depends(get_db)):
    filters = []
    if q.strip():
        pattern = {"$regex": re.escape(q.strip()), "$options": "i"}
        filters.append({"$or": [{"title": pattern}, {"body": pattern}, {"tip": pattern}, {"author.name": pattern}]})
    if tag.strip():
        filters.append({"tags": normalize_tag(tag)})
    query = {"$and": filters} if filters else {}

    prompts = [prompt_from_doc(d) for d in database["prompt"].find(query).sort("created_at", DESCENDING)]
    tags = sorted(database["prompt"].distinct("tags"))
    return PromptList(prompts=prompts, tags=[TagOut(name=t) for t in tags])


@app.get("/api/prompts/{prompt_id}", response_model=Prompt)
def get_prompt(prompt_id: str, database=Depends(get_db)):
    return prompt_from_doc(find_prompt(database, prompt_id))


@app.post("/api/prompts", response_model=Prompt)
def create_prompt(payload: PromptCreate, database=Depends(get_db)):
    now = utcnow()
    prompt = Prompt(
        id=payload.id or new_id(),
        title=require_text(payload.title, "Title is required"),
        body=require_text(payload.body, "Body is required"),
        tags=payload.tags,
        author=payload.author,
        tip=payload.tip.strip(),
        created_at=payload.created_at or now,
        updated_at=now,
    )
    try:
        database["prompt"].insert_one(prompt_to_doc(prompt))
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Prompt id already exists")
    return prompt_from_doc(find_prompt(database, prompt.id))


@app.put("/api/prompts/{prompt_id}", response_model=Prompt)
def update_prompt(prompt_id: str, payload: PromptUpdate, database=Depends(get_db)):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "title" in changes:
        changes["title"] = require_text(changes["title"], "Title cannot be empty")
    if "body" in changes:
        changes["body"] = require_text(changes["body"], "Body cannot be empty")
    if "tags" in changes:
        changes["tags"] = canonical_tags(changes["tags"])
    if "tip" in changes:
        changes["tip"] = changes["tip"].strip()
    changes["updated_at"] = utcnow()

    doc = database["prompt"].find_one_and_update(
        {"_id": prompt_id}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return prompt_from_doc(doc)


@app.delete("/api/prompts/{prompt_id}")
def delete_prompt(prompt_id: str, database=Depends(get_db)):
    result = database["prompt"].delete_one({"_id": prompt_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return {"deleted": prompt_id}


def toggle_member(database, prompt_id: str, field: str, value: str, counter: Optional[str] = None):
    """Add ``value`` to the array at ``field`` or remove it, in one atomic write.

    Returns the updated document and whether ``value`` is now a member.
    """
    collection = database["prompt"]
    now = utcnow()
    added = {"$addToSet": {field: value}, "$set": {"updated_at": now}}
    removed = {"$pull": {field: value}, "$set": {"updated_at": now}}
    if counter:
        added["$inc"] = {counter: 1}
        removed["$inc"] = {counter: -1}

    doc = collection.find_one_and_update(
        {"_id": prompt_id, field: {"$ne": value}}, added, return_document=ReturnDocument.AFTER
    )
    if doc is not None:
        return doc, True
    doc = collection.find_one_and_update(
        {"_id": prompt_id, field: value}, removed, return_document=ReturnDocument.AFTER
    )
    if doc is None:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return doc, False


@app.post("/api/prompts/{prompt_id}/reactions", response_model=ReactionResult)
def toggle_reaction(prompt_id: str, payload: ReactionToggle, database=Depends(get_db)):
    doc, active = toggle_member(
        database, prompt_id, f"reactions.{payload.kind}.users", payload.user_id, counter=f"reactions.{payload.kind}.count"
    )
    state = prompt_from_doc(doc).reactions.get(payload.kind, ReactionState())
    return ReactionResult(kind=payload.kind, count=state.count, active=active)


@app.post("/api/prompts/{prompt_id}/saves", response_model=SaveResult)
def toggle_save(prompt_id: str, payload: SaveToggle, database=Depends(get_db)):
    doc, saved = toggle_member(database, prompt_id, "saves", payload.user_id)
    return SaveResult(saved=saved, count=len(doc.get("saves", [])))


@app.post("/api/prompts/{prompt_id}/fork", response_model=Prompt)
def fork_prompt(prompt_id: str, payload: ForkRequest, database=Depends(get_db)):
    parent = prompt_from_doc(find_prompt(database, prompt_id))
    now = utcnow()
    copy = Prompt(
        id=payload.id or new_id(),
        title=f"{parent.title} (fork)",
        body=parent.body,
        tags=parent.tags,
        author=payload.author,
        tip=parent.tip,
        created_at=now,
        updated_at=now,
    )
    try:
        database["prompt"].insert_one(prompt_to_doc(copy))
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Prompt id already exists")
    database["prompt"].update_one({"_id": prompt_id}, {"$inc": {"forks": 1}, "$set": {"updated_at": now}})
    return copy


@app.post("/api/prompts/{prompt_id}/comments", response_model=Comment)
def add_comment(prompt_id: str, payload: CommentCreate, database=Depends(get_db)):
    comment = Comment(
        id=payload.id or new_id(),
        author=payload.author,
        body=require_text(payload.body, "Comment cannot be empty"),
        parent_id=payload.parent_id or None,
        created_at=utcnow(),
    )
    # newest first
    result = database["prompt"].update_one(
        {"_id": prompt_id},
        {
            "$push": {"comments": {"$each": [comment.model_dump()], "$position": 0}},
            "$set": {"updated_at": comment.created_at},
        },
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return comment


# Sandbox endpoints

@app.get("/api/sandbox/runs", response_model=List[SandboxRun])
def list_sandbox_runs(limit: int = 10, database=Depends(get_db)):
    limit = max(1, min(limit, 50))
    return [SandboxRun.model_validate(d) for d in get_documents(database, "sandbox_run", limit=limit)]


@app.post("/api/sandbox/run", response_model=SandboxRunResult)
def run_sandbox(payload: SandboxRunRequest, database=Depends(get_db), client=Depends(get_completion_client)):
    require_text(payload.prompt, "Prompt cannot be empty")
    try:
        text = generate_sandbox_response(payload, client)
    except ServiceUnavailable as e:
        raise HTTPException(status_code=502, detail=e.message)

    run = create_document(database, "sandbox_run", {
        "user": (payload.user or DEFAULT_SANDBOX_USER).model_dump(),
        "system": payload.system,
        "prompt": payload.prompt.strip(),
        "input": payload.input,
        "output": text,
        "model": payload.model or SANDBOX_MODEL,
        "temperature": payload.temperature if payload.temperature is not None else DEFAULT_TEMPERATURE,
        "max_tokens": payload.max_tokens or DEFAULT_MAX_TOKENS,
    })
    return SandboxRunResult(text=text, run=SandboxRun.model_validate(run))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from saaskit.api.deps import InvalidBodyError, get_providers, parse_positive_int, read_json
from saaskit.core.security import CurrentUser, json_error, with_auth
from saaskit.schemas.account import NoteResponse, dump

logger = logging.getLogger(__name__)

router = APIRouter()


class NotePayload(BaseModel):
    title: str | None = None
    content: str | None = None


def _note_id(request: Request) -> int | None:
    try:
        return int(request.path_params["note_id"])
    except (KeyError, ValueError):
        return None


async def list_notes(request: Request, user: CurrentUser) -> JSONResponse:
    page = parse_positive_int(request.query_params.get("page"), 1)
    page_size = parse_positive_int(request.query_params.get("pageSize"), 10)
    try:
        db = get_providers(request).database
        notes = await db.note.find_by_user_id(user.id, page=page, page_size=page_size)
        total = await db.note.count_by_user_id(user.id)
        return JSONResponse({"notes": [dump(NoteResponse, n) for n in notes], "total": total})
    except Exception:
        logger.exception("notes.list.failed user_id=%s", user.id)
        return json_error("Failed to fetch notes", 500)


async def create_note(request: Request, user: CurrentUser) -> JSONResponse:
    try:
        try:
            body = NotePayload.model_validate(await read_json(request))
        except (InvalidBodyError, ValueError):
            return json_error("Title and content are required", 400)
        if not body.title or not body.content:
            return json_error("Title and content are required", 400)

        note = await get_providers(request).database.note.create(
            {"user_id": user.id, "title": body.title, "content": body.content}
        )
        return JSONResponse(dump(NoteResponse, note), status_code=201)
    except Exception:
        logger.exception("notes.create.failed user_id=%s", user.id)
        return json_error("Failed to create note", 500)


async def get_note(request: Request, user: CurrentUser) -> JSONResponse:
    note_id = _note_id(request)
    if note_id is None:
        return json_error("Note not found", 404)
    try:
        note = await get_providers(request).database.note.find_by_id(note_id)
        if note is None:
            return json_error("Note not found", 404)
        if note.user_id != user.id:
            return json_error("Unauthorized", 403)
        return JSONResponse(dump(NoteResponse, note))
    except Exception:
        logger.exception("notes.get.failed note_id=%s", note_id)
        return json_error("Failed to fetch note", 500)


async def update_note(request: Request, user: CurrentUser) -> JSONResponse:
    note_id = _note_id(request)
    if note_id is None:
        return json_error("Note not found", 404)
    try:
        try:
            body = NotePayload.model_validate(await read_json(request))
        except (InvalidBodyError, ValueError):
            return json_error("At least one field (title or content) is required", 400)
        if not body.title and not body.content:
            return json_error("At least one field (title or content) is required", 400)

        db = get_providers(request).database
        existing = await db.note.find_by_id(note_id)
        if existing is None:
            return json_error("Note not found", 404)
        if existing.user_id != user.id:
            return json_error("Unauthorized", 403)

        fields = {k: v for k, v in (("title", body.title), ("content", body.content)) if v}
        note = await db.note.update(note_id, fields)
        return JSONResponse(dump(NoteResponse, note))
    except Exception:
        logger.exception("notes.update.failed note_id=%s", note_id)
        return json_error("Failed to update note", 500)


async def delete_note(request: Request, user: CurrentUser) -> JSONResponse:
    note_id = _note_id(request)
    if note_id is None:
        return json_error("Note not found", 404)
    try:
        db = get_providers(request).database
        existing = await db.note.find_by_id(note_id)
        if existing is None:
            return json_error("Note not found", 404)
        if existing.user_id != user.id:
            return json_error("Unauthorized", 403)
        await db.note.delete(note_id)
        return JSONResponse({"success": True})
    except Exception:
        logger.exception("notes.delete.failed note_id=%s", note_id)
        return json_error("Failed to delete note", 500)


router.add_api_route("/notes", with_auth(list_notes), methods=["GET"])
router.add_api_route("/notes", with_auth(create_note), methods=["POST"])
router.add_api_route("/notes/{note_id}", with_auth(get_note), methods=["GET"])
router.add_api_route("/notes/{note_id}", with_auth(update_note), methods=["PUT"])
router.add_api_route("/notes/{note_id}", with_auth(delete_note), methods=["DELETE"])

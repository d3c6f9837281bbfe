from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import get_current_user
from services.chat_service import (
    ChatService,
    ChatNotFoundError,
    ChatReplyError,
    QuotaExceededError,
)

router = APIRouter(prefix="/api/v1/chat", tags=["Chat"])


# ── Pydantic schemas ──────────────────────────────────────────────
class ChatMessage(BaseModel):
    id: str | None = None
    role: str
    content: str | None = None
    parts: list[dict] | None = None


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1)
    chat_id: str | None = None
    problem_url: str | None = None


class LinkProblemRequest(BaseModel):
    problem_id: str


# ── Routes ────────────────────────────────────────────────────────
@router.post("")
async def send_message(body: ChatRequest, user_id: str = Depends(get_current_user)):
    """Answer the latest message; creates the chat when chat_id is omitted."""
    try:
        return await ChatService.chat(
            user_id,
            [m.model_dump(exclude_none=True) for m in body.messages],
            chat_id=body.chat_id,
            problem_url=body.problem_url,
        )
    except QuotaExceededError as e:
        raise HTTPException(status_code=429, detail=str(e))
    except ChatNotFoundError:
        raise HTTPException(status_code=404, detail="Chat not found")
    except ChatReplyError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("")
async def list_chats(user_id: str = Depends(get_current_user)):
    return ChatService.list_chats(user_id)


@router.get("/by-problem")
async def get_chat_by_problem(problem_url: str, user_id: str = Depends(get_current_user)):
    return {"chat": ChatService.get_chat_by_problem_url(user_id, problem_url)}


@router.get("/{chat_id}")
async def load_chat(chat_id: str, user_id: str = Depends(get_current_user)):
    chat = ChatService.load_chat(chat_id, user_id)
    if chat is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat


@router.delete("/{chat_id}")
async def delete_chat(chat_id: str, user_id: str = Depends(get_current_user)):
    if not ChatService.delete_chat(chat_id, user_id):
        raise HTTPException(status_code=404, detail="Chat not found")
    return {"status": "success"}


@router.put("/{chat_id}/problem")
async def link_problem(chat_id: str, body: LinkProblemRequest, user_id: str = Depends(get_current_user)):
    try:
        linked = ChatService.link_problem(chat_id, user_id, body.problem_id)
        if linked is None:
            raise HTTPException(status_code=404, detail="Chat not found")
        return {"status": "success", "data": linked}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

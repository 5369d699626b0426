"""Registro del chat público: solo inserciones y lectura de los últimos mensajes."""

import logging
from typing import List
from sqlmodel import select

from database import Database
from errors import EmptyMessage, MessageTooLong
from models import ChatMessage
from privacy import mask_ip

logger = logging.getLogger(__name__)


# to_public_dict: Forma visible del mensaje (sin la IP cruda).
def to_public_dict(message: ChatMessage) -> dict:
    return {
        "id": message.id,
        "masked_ip": message.masked_ip,
        "message": message.message,
        "created_at": message.created_at,
    }


class ChatLog:
    """Mensajes inmutables; la IP se enmascara al escribir.

    max_length=0 desactiva el límite de longitud en servidor.
    """
    def __init__(self, db: Database, max_length: int = 0, history_limit: int = 50):
        self.db = db
        self.max_length = max_length
        self.history_limit = history_limit

    def post(self, raw_message: str, source_ip: str) -> dict:
        message = (raw_message or '').strip()
        if not message:
            raise EmptyMessage()
        if self.max_length and len(message) > self.max_length:
            raise MessageTooLong(f"Message exceeds {self.max_length} characters")

        masked = mask_ip(source_ip)
        with self.db.session() as s:
            entry = ChatMessage(user_ip=source_ip or '', masked_ip=masked, message=message)
            s.add(entry)
            s.commit()
            s.refresh(entry)
        logger.debug("Chat message %s from %s", entry.id, masked)
        return {"id": entry.id, "maskedIp": masked}

    def recent(self, limit: int = None) -> List[ChatMessage]:
        """Los `limit` mensajes más recientes, en orden cronológico (antiguo primero)."""
        limit = self.history_limit if limit is None else limit
        with self.db.session() as s:
            statement = (
                select(ChatMessage)
                .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
                .limit(limit)
            )
            rows = s.exec(statement).all()
        return list(reversed(rows))

from __future__ import annotations

from PySide6.QtCore import QObject, Signal, Slot

from .chat import ChatService
from .session import ChatSession


class ChatWorker(QObject):
    finished = Signal(object)
    failed = Signal(str)

    def __init__(
        self,
        service: ChatService,
        session: ChatSession,
        text: str,
        reasoning: bool = False,
    ) -> None:
        super().__init__()
        self._service = service
        self._session = session
        self._text = text
        self._reasoning = reasoning

    @Slot()
    def run(self) -> None:
        try:
            # Runs on a QThread so the window stays responsive during the request
            reply = self._service.submit(self._session, self._text, self._reasoning)
        except Exception as exc:  # pragma: no cover - runtime safety
            self.failed.emit(str(exc))
            return
        if reply.error is not None:
            self.failed.emit(reply.error)
            return
        self.finished.emit(reply)

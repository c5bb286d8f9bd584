"""
Máquina de estados común a los diálogos de mutación.

CLOSED -> EDITING -> SUBMITTING -> DONE -> CLOSED

Un submit inválido no sale de EDITING ni hace requests. Un submit
aceptado hace exactamente un request; si falla vuelve a EDITING sin
perder lo cargado. Tras un éxito el diálogo se cierra solo después de
`close_delay` segundos.
"""

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from homefit.api import REQUEST_ERRORS, error_message

logger = structlog.get_logger()


class DialogState(str, Enum):
    CLOSED = "closed"
    EDITING = "editing"
    SUBMITTING = "submitting"
    DONE = "done"


@dataclass
class Notice:
    """Mensaje inline/snackbar del diálogo."""

    severity: str  # success, warning, error, info
    text: str


class BaseDialog:
    """Diálogo de formulario con un único request por submit."""

    name = "dialog"
    close_delay: float = 0.0
    success_message = "Saved successfully."
    invalid_message = "Please correct the errors in the form before submitting."
    failure_message = "Something went wrong. Please try again."

    def __init__(
        self,
        on_success: Optional[Callable[[Any], Any]] = None,
        on_close: Optional[Callable[[], Any]] = None,
        close_delay: Optional[float] = None,
    ):
        self.on_success = on_success
        self.on_close = on_close
        if close_delay is not None:
            self.close_delay = close_delay

        self.state = DialogState.CLOSED
        self.values: dict[str, Any] = {}
        self.errors: dict[str, str] = {}
        self.notice: Optional[Notice] = None
        self.result: Any = None
        self._close_task: Optional[asyncio.Task] = None

    # -- Hooks de cada diálogo -------------------------------------------

    def initial_values(self, **prefill) -> dict[str, Any]:
        return dict(prefill)

    def validate(self) -> dict[str, str]:
        """Errores por campo; vacío si el formulario es válido."""
        return {}

    async def perform(self) -> Any:
        """El request del diálogo."""
        raise NotImplementedError

    def after_success(self) -> None:
        """Ajustes de estado tras un submit exitoso."""

    # -- Ciclo de vida ---------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self.state != DialogState.CLOSED

    def open(self, **prefill) -> None:
        self._cancel_pending_close()
        self.values = self.initial_values(**prefill)
        self.errors = {}
        self.notice = None
        self.result = None
        self.state = DialogState.EDITING

    def set_field(self, field_name: str, value: Any) -> None:
        if self.state != DialogState.EDITING:
            raise RuntimeError(f"{self.name}: no se puede editar en estado {self.state.value}")
        self.values[field_name] = value
        self.errors.pop(field_name, None)

    def update(self, **fields) -> None:
        for field_name, value in fields.items():
            self.set_field(field_name, value)

    async def submit(self) -> bool:
        """
        Valida y envía el formulario.

        Returns:
            True si el request fue exitoso

        Raises:
            RuntimeError: Si el diálogo no está en EDITING
        """
        if self.state != DialogState.EDITING:
            raise RuntimeError(f"{self.name}: submit en estado {self.state.value}")

        self.errors = self.validate()
        if self.errors:
            self.notice = Notice("warning", self.invalid_message)
            return False

        self.state = DialogState.SUBMITTING
        self.notice = None
        try:
            result = await self.perform()
        except REQUEST_ERRORS as e:
            logger.warning("Submit fallido", dialog=self.name, error=str(e))
            self.state = DialogState.EDITING
            self.notice = Notice("error", error_message(e, self.failure_message))
            return False

        self.result = result
        self.state = DialogState.DONE
        self.notice = Notice("success", self.success_message)
        self.after_success()
        logger.info("Submit exitoso", dialog=self.name)

        if self.on_success is not None:
            outcome = self.on_success(result)
            if inspect.isawaitable(outcome):
                await outcome

        self._schedule_close()
        return True

    def close(self) -> None:
        self._cancel_pending_close()
        if self.state == DialogState.CLOSED:
            return
        self.state = DialogState.CLOSED
        self.errors = {}
        if self.on_close is not None:
            self.on_close()

    async def wait_closed(self) -> None:
        """Espera el cierre automático pendiente, si lo hay."""
        if self._close_task is not None:
            await self._close_task

    def _schedule_close(self) -> None:
        if self.close_delay <= 0:
            self.close()
            return
        self._close_task = asyncio.create_task(self._close_later())

    async def _close_later(self) -> None:
        await asyncio.sleep(self.close_delay)
        self._close_task = None
        self.close()

    def _cancel_pending_close(self) -> None:
        task, self._close_task = self._close_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    # -- Helpers de validación -------------------------------------------

    def _text(self, field_name: str) -> str:
        value = self.values.get(field_name)
        return str(value).strip() if value is not None else ""

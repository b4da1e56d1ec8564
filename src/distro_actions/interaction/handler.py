"""User interaction handlers for credential and confirmation prompts."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from rich.console import Console
from rich.prompt import Confirm, Prompt

logger = logging.getLogger(__name__)


class InputType(str, Enum):
    """Type of user input expected."""
    CONFIRM = "confirm"     # yes / no
    SECRET = "secret"       # passwords, never echoed or logged


class QuestionCategory(str, Enum):
    CONFIRMATION = "confirmation"   # confirm before running an action
    CREDENTIAL = "credential"       # sudo password


@dataclass
class InteractionRequest:
    """A question put to the user."""

    question: str
    input_type: InputType = InputType.CONFIRM
    category: QuestionCategory = QuestionCategory.CONFIRMATION
    context: Optional[str] = None
    default: Optional[str] = None

    def format_prompt(self) -> str:
        icons = {
            QuestionCategory.CONFIRMATION: "⚠️",
            QuestionCategory.CREDENTIAL: "🔒",
        }
        lines = [f"{icons.get(self.category, '❓')} {self.question}"]
        if self.context:
            lines.append(f"   ℹ️  {self.context}")
        return "\n".join(lines)


@dataclass
class InteractionResponse:
    """The user's answer."""

    value: str
    cancelled: bool = False

    @property
    def confirmed(self) -> bool:
        return not self.cancelled and self.value.lower() in ("y", "yes", "true")

    @classmethod
    def cancelled_response(cls) -> "InteractionResponse":
        return cls(value="", cancelled=True)


class UserInteractionHandler(ABC):
    """Abstract base class for handling user interactions."""

    @abstractmethod
    def ask(self, request: InteractionRequest) -> InteractionResponse:
        """Present a request to the user and return their answer."""
        pass

    @abstractmethod
    def notify(self, message: str, level: str = "info") -> None:
        """Show a message that needs no answer (info, warning, error, success)."""
        pass

    def request_credential(self, action_name: str, distro: str) -> Optional[str]:
        """Ask for a sudo password; None when the user declines."""
        response = self.ask(
            InteractionRequest(
                question=f"'{action_name}' needs sudo on {distro}. Password:",
                input_type=InputType.SECRET,
                category=QuestionCategory.CREDENTIAL,
            )
        )
        if response.cancelled or not response.value:
            return None
        return response.value

    def confirm(self, question: str, context: Optional[str] = None) -> bool:
        response = self.ask(
            InteractionRequest(
                question=question,
                input_type=InputType.CONFIRM,
                category=QuestionCategory.CONFIRMATION,
                context=context,
                default="n",
            )
        )
        return response.confirmed


class CLIInteractionHandler(UserInteractionHandler):
    """Terminal prompts rendered with rich."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def ask(self, request: InteractionRequest) -> InteractionResponse:
        self.console.print(request.format_prompt())
        try:
            if request.input_type == InputType.CONFIRM:
                ok = Confirm.ask("   Continue?", default=request.default == "y", console=self.console)
                return InteractionResponse(value="yes" if ok else "no")
            value = Prompt.ask("   Password", password=True, console=self.console)
            return InteractionResponse(value=value)
        except (KeyboardInterrupt, EOFError):
            self.console.print("   (cancelled)")
            return InteractionResponse.cancelled_response()

    def notify(self, message: str, level: str = "info") -> None:
        styles = {
            "info": "cyan",
            "warning": "yellow",
            "error": "bold red",
            "success": "green",
        }
        self.console.print(message, style=styles.get(level, ""), markup=False)


class AutoResponseHandler(UserInteractionHandler):
    """
    Non-interactive handler for scripts and tests.
    Confirmations get `always_confirm`; credential prompts get `secret`.
    """

    def __init__(
        self,
        always_confirm: bool = True,
        secret: Optional[str] = None,
    ) -> None:
        self.always_confirm = always_confirm
        self.secret = secret
        self.asked: List[InteractionRequest] = []

    def ask(self, request: InteractionRequest) -> InteractionResponse:
        self.asked.append(request)
        if request.input_type == InputType.SECRET:
            if self.secret is None:
                return InteractionResponse.cancelled_response()
            return InteractionResponse(value=self.secret)

        logger.info("Auto-responding to: %s", request.question[:50])
        return InteractionResponse(value="yes" if self.always_confirm else "no")

    def notify(self, message: str, level: str = "info") -> None:
        logger.info("[%s] %s", level, message)

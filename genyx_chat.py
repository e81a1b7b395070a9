"""GENYX AI chat client
=====================

A small conversational client for OpenAI-compatible chat-completion endpoints
(Hugging Face router by default).  The module is organised around a handful of
collaborating pieces:

* **Sessions** – independent conversation threads kept in a registry, newest
  first, with exactly one of them active at a time.
* **Message store** – the active session's ordered turns, exposed as a
  read-only view for rendering.
* **Orchestration** – a single-flight request cycle that appends the user
  turn, calls the endpoint on a worker thread and folds the reply (or a fixed
  apology on any failure) back into the session that was active at send time.
* **Presentation** – a thin ``rich`` terminal front end that renders the state
  and turns keystrokes into intents.

Nothing is persisted; the conversation lives for the lifetime of the process.
"""

from __future__ import annotations

import json
import logging
import os
import statistics
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text


# ---------------------------------------------------------------------------
# Logging infrastructure
# ---------------------------------------------------------------------------

def _build_logger() -> logging.Logger:
    """Configure the module logger once; repeated imports reuse the handler."""

    logger = logging.getLogger("genyx_chat")
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(threadName)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    level_name = os.getenv("GENYX_LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    logger.propagate = False
    return logger


LOGGER = _build_logger()
CONSOLE = Console()


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------

class ConfigurationError(RuntimeError):
    """Raised when the application configuration is invalid."""


class APIError(RuntimeError):
    """Generic endpoint failure encompassing transport and HTTP status issues."""


class ResponseFormatError(APIError):
    """Raised when the endpoint returns a body we cannot interpret."""


class SessionNotFoundError(LookupError):
    """Raised when an operation references a session id the registry never issued."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Unknown session: {session_id!r}")
        self.session_id = session_id


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "https://router.huggingface.co/v1/chat/completions"
DEFAULT_MODEL = "Qwen/Qwen2.5-7B-Instruct"
DEFAULT_SYSTEM_PROMPT = (
    "You are GENYX AI, a helpful and intelligent assistant. "
    "You provide clear, accurate, and professional responses."
)
DEFAULT_SESSION_TITLE = "Nova Conversa"
EMPTY_REPLY_FALLBACK = "Desculpe, não consegui gerar uma resposta."
ERROR_REPLY = (
    "❌ Desculpe, ocorreu um erro ao processar sua mensagem. "
    "Verifique sua conexão e tente novamente."
)
TITLE_MAX_CHARS = 48


# ---------------------------------------------------------------------------
# Configuration handling
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class AppPaths:
    """Filesystem locations the client reads from."""

    base_dir: Path = field(default_factory=lambda: Path.cwd())
    config_file_name: str = "genyx_chat.json"

    @property
    def config_path(self) -> Path:
        return self.base_dir / self.config_file_name


def _parse_bool(raw: Any, name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    try:
        value = json.loads(str(raw).strip().lower())
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{name} must be true or false, got {raw!r}") from exc
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be true or false, got {raw!r}")
    return value


@dataclass(slots=True)
class AppConfig:
    """Endpoint, sampling and behaviour settings for the chat client."""

    api_url: str = DEFAULT_API_URL
    model_name: str = DEFAULT_MODEL
    api_token: Optional[str] = field(default=None, repr=False)
    max_tokens: int = 1000
    temperature: float = 0.7
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    timeout: Optional[float] = None
    verify_tls: bool = True
    auto_title: bool = True

    @classmethod
    def from_env(cls, paths: AppPaths) -> "AppConfig":
        """Load configuration from environment variables or disk.

        Precedence order (highest to lowest): environment variables, the JSON
        configuration file, built-in defaults.  A minimal file looks like:

        ```json
        {
            "api_url": "http://localhost:1234/v1/chat/completions",
            "model_name": "qwen2.5-7b-instruct"
        }
        ```

        The bearer token is normally supplied through ``HF_TOKEN``; a missing
        token is not an error here, the endpoint will simply reject the call.
        """

        config_data: Dict[str, Any] = {}
        if paths.config_path.exists():
            try:
                config_data = json.loads(paths.config_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise ConfigurationError(
                    f"Configuration file {paths.config_path} contains invalid JSON"
                ) from exc
            if not isinstance(config_data, dict):
                raise ConfigurationError(
                    f"Configuration file {paths.config_path} must contain a JSON object"
                )

        raw_timeout = os.getenv("GENYX_TIMEOUT", config_data.get("timeout"))
        try:
            data = {
                "api_url": os.getenv("GENYX_API_URL") or config_data.get("api_url", DEFAULT_API_URL),
                "model_name": os.getenv("GENYX_MODEL") or config_data.get("model_name", DEFAULT_MODEL),
                "api_token": os.getenv("HF_TOKEN") or config_data.get("api_token"),
                "max_tokens": int(os.getenv("GENYX_MAX_TOKENS", config_data.get("max_tokens", 1000))),
                "temperature": float(
                    os.getenv("GENYX_TEMPERATURE", config_data.get("temperature", 0.7))
                ),
                "system_prompt": config_data.get("system_prompt", DEFAULT_SYSTEM_PROMPT),
                "timeout": float(raw_timeout) if raw_timeout not in (None, "") else None,
            }
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid numeric configuration value: {exc}") from exc

        data["verify_tls"] = _parse_bool(
            os.getenv("GENYX_VERIFY_TLS", config_data.get("verify_tls", True)), "verify_tls"
        )
        data["auto_title"] = _parse_bool(
            os.getenv("GENYX_AUTO_TITLE", config_data.get("auto_title", True)), "auto_title"
        )

        config = cls(**data)
        config.validate()
        return config

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` for values the client cannot use."""

        if not self.api_url:
            raise ConfigurationError("API URL is required")
        if not self.api_url.startswith(("http://", "https://")):
            raise ConfigurationError("API URL must start with http:// or https://")
        if not self.model_name:
            raise ConfigurationError("Model name is required")
        if self.max_tokens < 1:
            raise ConfigurationError("max_tokens must be at least 1")
        if not 0.0 <= self.temperature <= 2.0:
            raise ConfigurationError("Temperature must be between 0 and 2")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("Timeout must be positive when set")


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

class MetricsTracker:
    """Latency and outcome counters for endpoint exchanges."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._durations: List[float] = []
        self._failures: int = 0

    def record(self, duration: float, success: bool) -> None:
        with self._lock:
            if success:
                self._durations.append(duration)
            else:
                self._failures += 1

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            durations = list(self._durations)
            failures = self._failures
        if not durations:
            return {"count": 0, "mean": 0.0, "p95": 0.0, "last": 0.0, "failures": failures}
        # quantiles() needs at least two points
        p95 = statistics.quantiles(durations, n=100)[94] if len(durations) > 1 else durations[0]
        return {
            "count": len(durations),
            "mean": statistics.fmean(durations),
            "p95": p95,
            "last": durations[-1],
            "failures": failures,
        }


# ---------------------------------------------------------------------------
# Conversation data model
# ---------------------------------------------------------------------------

class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


def new_id() -> str:
    return uuid.uuid4().hex


class TurnClock:
    """Hands out UTC instants that never go backwards, even if the wall clock does."""

    def __init__(self, source: Callable[[], datetime] = lambda: datetime.now(timezone.utc)) -> None:
        self._source = source
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = self._source()
            if self._last is not None and current < self._last:
                current = self._last
            self._last = current
            return current


@dataclass(frozen=True, slots=True)
class Turn:
    """One message in a conversation.  Immutable once created."""

    role: Role
    content: str
    timestamp: datetime
    id: str = field(default_factory=new_id)

    def as_payload(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(slots=True)
class Session:
    """An independent conversation thread and the turns it owns."""

    title: str
    created_at: datetime
    id: str = field(default_factory=new_id)
    turns: List[Turn] = field(default_factory=list)

    def append(self, turn: Turn) -> None:
        self.turns.append(turn)


@dataclass(frozen=True, slots=True)
class SessionInfo:
    """Read-only session metadata for list views."""

    id: str
    title: str
    created_at: datetime
    turn_count: int
    active: bool


def build_request_messages(system_prompt: str, turns: List[Turn]) -> List[Dict[str, str]]:
    """System instruction followed by every turn, ids and timestamps dropped."""

    messages = [{"role": "system", "content": system_prompt}]
    messages.extend(turn.as_payload() for turn in turns)
    return messages


def derive_session_title(text: str, limit: int = TITLE_MAX_CHARS) -> str:
    """Compact a first user message into a sidebar-sized title."""

    title = " ".join(text.split())
    if not title:
        return DEFAULT_SESSION_TITLE
    if len(title) <= limit:
        return title
    compact = title[:limit].rsplit(" ", 1)[0].strip()
    return (compact or title[:limit]) + "…"


# ---------------------------------------------------------------------------
# Session registry and message store
# ---------------------------------------------------------------------------

class SessionRegistry:
    """All sessions of the process, enumerated newest first."""

    def __init__(self, clock: Optional[TurnClock] = None) -> None:
        self._clock = clock or TurnClock()
        self._sessions: Dict[str, Session] = {}
        self._order: List[str] = []
        self._active_id: Optional[str] = None
        self._lock = threading.RLock()

    def create_session(self, title: Optional[str] = None) -> Session:
        """Allocate an empty session at the front of the list.  Does not activate it."""

        session = Session(title=title or DEFAULT_SESSION_TITLE, created_at=self._clock.now())
        with self._lock:
            self._sessions[session.id] = session
            self._order.insert(0, session.id)
        LOGGER.debug("Created session %s", session.id)
        return session

    def activate(self, session_id: str) -> Session:
        with self._lock:
            session = self.get(session_id)
            self._active_id = session_id
        LOGGER.debug("Activated session %s", session_id)
        return session

    def get(self, session_id: str) -> Session:
        with self._lock:
            try:
                return self._sessions[session_id]
            except KeyError:
                raise SessionNotFoundError(session_id) from None

    def rename(self, session_id: str, title: str) -> None:
        with self._lock:
            self.get(session_id).title = title

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    @property
    def active(self) -> Optional[Session]:
        with self._lock:
            if self._active_id is None:
                return None
            return self._sessions[self._active_id]

    def list(self) -> List[SessionInfo]:
        with self._lock:
            return [
                SessionInfo(
                    id=session.id,
                    title=session.title,
                    created_at=session.created_at,
                    turn_count=len(session.turns),
                    active=session.id == self._active_id,
                )
                for session in (self._sessions[sid] for sid in self._order)
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions


class MessageStore:
    """View of the active session's turns; appends go to whichever session is active."""

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry

    def append(self, turn: Turn) -> None:
        session = self._registry.active
        if session is None:
            raise RuntimeError("No active session to append to")
        session.append(turn)

    def current_turns(self) -> Tuple[Turn, ...]:
        session = self._registry.active
        if session is None:
            return ()
        return tuple(session.turns)


# ---------------------------------------------------------------------------
# HTTP client for the chat-completion endpoint
# ---------------------------------------------------------------------------

class ChatCompletionClient:
    """Performs exactly one chat-completion exchange per call."""

    def __init__(
        self,
        config: AppConfig,
        metrics: MetricsTracker,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config
        self._metrics = metrics
        self._session = session if session is not None else requests.Session()
        self._session.headers.update(
            {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {config.api_token or ''}",
            }
        )

    def close(self) -> None:
        self._session.close()

    def build_payload(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        return {
            "model": self._config.model_name,
            "messages": messages,
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
            "stream": False,
        }

    def chat_completion(self, messages: List[Dict[str, str]]) -> Optional[str]:
        """Send the conversation and return the first completion's text.

        Returns ``None`` when the endpoint answered but produced no content.
        Raises :class:`APIError` for transport failures and non-2xx statuses and
        :class:`ResponseFormatError` for bodies that are not a completion.
        """

        payload = self.build_payload(messages)
        start = time.perf_counter()
        try:
            reply = self._exchange(payload)
        except APIError:
            self._metrics.record(time.perf_counter() - start, success=False)
            raise
        duration = time.perf_counter() - start
        self._metrics.record(duration, success=True)
        LOGGER.debug("Received response in %.2fs", duration)
        return reply

    def _exchange(self, payload: Dict[str, Any]) -> Optional[str]:
        try:
            response = self._session.post(
                self._config.api_url,
                json=payload,
                timeout=self._config.timeout,
                verify=self._config.verify_tls,
            )
        except requests.RequestException as exc:
            raise APIError(f"Network failure contacting chat endpoint: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise APIError(f"Chat endpoint returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ResponseFormatError("Malformed JSON received from chat endpoint") from exc
        return self._extract_content(data)

    @staticmethod
    def _extract_content(data: Any) -> Optional[str]:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list):
            raise ResponseFormatError("Response body has no 'choices' list")
        if not choices:
            return None
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            return None
        content = message.get("content")
        if content is None or content == "":
            return None
        if not isinstance(content, str):
            raise ResponseFormatError("Completion content is not text")
        return content


# ---------------------------------------------------------------------------
# Chat orchestration layer
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class StateEvent:
    """Change notification delivered to presentation subscribers."""

    kind: str
    session_id: Optional[str] = None


Listener = Callable[[StateEvent], None]
Dispatcher = Callable[[Callable[[], None]], None]


def spawn_worker(job: Callable[[], None]) -> None:
    threading.Thread(target=job, name="ChatResponseWorker", daemon=True).start()


class PendingRequest:
    """Handle for an accepted submission; resolves to the paired response turn."""

    def __init__(self, session_id: str, user_turn: Turn) -> None:
        self.session_id = session_id
        self.user_turn = user_turn
        self.reply: Optional[Turn] = None
        self.failed = False
        self._done = threading.Event()

    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> Optional[Turn]:
        self._done.wait(timeout)
        return self.reply

    def complete(self, reply: Turn, failed: bool) -> None:
        self.reply = reply
        self.failed = failed
        self._done.set()


class ChatOrchestrator:
    """Turns user intents into state changes and endpoint exchanges.

    The in-flight flag is process wide: while any request is outstanding every
    other submission is dropped, whichever session it targets.  Navigation
    never aborts an outstanding request; its reply lands in the session that
    was active when it was sent.
    """

    def __init__(
        self,
        config: AppConfig,
        registry: SessionRegistry,
        client: ChatCompletionClient,
        metrics: MetricsTracker,
        dispatcher: Optional[Dispatcher] = None,
        clock: Optional[TurnClock] = None,
    ) -> None:
        self._config = config
        self._registry = registry
        self._store = MessageStore(registry)
        self._client = client
        self._metrics = metrics
        self._dispatch = dispatcher or spawn_worker
        self._clock = clock or TurnClock()
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._in_flight = False
        self._draft = ""
        self._bootstrap()

    def _bootstrap(self) -> None:
        if self._registry.active is not None:
            return
        sessions = self._registry.list()
        if sessions:
            self._registry.activate(sessions[0].id)
            return
        session = self._registry.create_session()
        self._registry.activate(session.id)

    # -- read-only projections -------------------------------------------------

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def draft(self) -> str:
        return self._draft

    @property
    def active_session_id(self) -> Optional[str]:
        return self._registry.active_id

    def current_turns(self) -> Tuple[Turn, ...]:
        with self._lock:
            return self._store.current_turns()

    def session_list(self) -> List[SessionInfo]:
        with self._lock:
            return self._registry.list()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""

        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, events: List[StateEvent]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for event in events:
            for listener in listeners:
                try:
                    listener(event)
                except Exception:
                    LOGGER.exception("State listener failed on %s", event.kind)

    # -- intents ----------------------------------------------------------------

    def update_draft(self, text: str) -> None:
        self._draft = text

    def new_session(self) -> Session:
        """Start a fresh chat and make it the active one."""

        with self._lock:
            session = self._registry.create_session()
            self._registry.activate(session.id)
        LOGGER.info("Started new session %s", session.id)
        self._notify(
            [
                StateEvent("session_created", session.id),
                StateEvent("session_activated", session.id),
            ]
        )
        return session

    def activate_session(self, session_id: str) -> Session:
        """Switch the visible session.  Raises :class:`SessionNotFoundError`."""

        with self._lock:
            session = self._registry.activate(session_id)
        self._notify([StateEvent("session_activated", session_id)])
        return session

    def submit(self, text: str) -> Optional[PendingRequest]:
        """Append ``text`` as a user turn and send the conversation upstream.

        Blank input and submissions made while a request is outstanding are
        ignored and return ``None``.
        """

        if not text.strip():
            return None

        events: List[StateEvent] = []
        with self._lock:
            if self._in_flight:
                LOGGER.debug("Dropping submission while a request is in flight")
                return None
            session = self._registry.active
            if session is None:
                LOGGER.warning("Dropping submission: no active session")
                return None

            user_turn = Turn(role=Role.USER, content=text, timestamp=self._clock.now())
            first_turn = not session.turns
            self._store.append(user_turn)
            events.append(StateEvent("turn_appended", session.id))

            if self._config.auto_title and first_turn and session.title == DEFAULT_SESSION_TITLE:
                self._registry.rename(session.id, derive_session_title(text))
                events.append(StateEvent("session_renamed", session.id))

            messages = build_request_messages(self._config.system_prompt, session.turns)
            pending = PendingRequest(session.id, user_turn)
            self._in_flight = True
            self._draft = ""
            events.append(StateEvent("in_flight_changed", session.id))

        LOGGER.info(
            "Dispatching %d messages for session %s", len(messages), pending.session_id
        )
        self._notify(events)
        try:
            self._dispatch(lambda: self._run_exchange(pending, messages))
        except Exception:
            LOGGER.exception("Could not dispatch chat request")
            self._resolve(pending, ERROR_REPLY, failed=True)
        return pending

    def _run_exchange(self, pending: PendingRequest, messages: List[Dict[str, str]]) -> None:
        try:
            reply = self._client.chat_completion(messages)
        except APIError as exc:
            LOGGER.error("Chat request for session %s failed: %s", pending.session_id, exc)
            self._resolve(pending, ERROR_REPLY, failed=True)
            return
        except Exception:
            LOGGER.exception("Unexpected failure during chat request")
            self._resolve(pending, ERROR_REPLY, failed=True)
            return
        self._resolve(pending, reply or EMPTY_REPLY_FALLBACK, failed=False)

    def _resolve(self, pending: PendingRequest, content: str, failed: bool) -> None:
        with self._lock:
            reply = Turn(role=Role.ASSISTANT, content=content, timestamp=self._clock.now())
            try:
                self._registry.get(pending.session_id).append(reply)
            finally:
                self._in_flight = False
        LOGGER.debug("Metrics snapshot: %s", self._metrics.snapshot())
        self._notify(
            [
                StateEvent("turn_appended", pending.session_id),
                StateEvent("in_flight_changed", pending.session_id),
            ]
        )
        pending.complete(reply, failed)

    def shutdown(self) -> None:
        LOGGER.info("Shutting down orchestrator")
        self._client.close()


# ---------------------------------------------------------------------------
# Terminal front end
# ---------------------------------------------------------------------------

HELP_TEXT = """Comandos
/new              Nova conversa
/sessions         Listar conversas
/switch <n|id>    Abrir a conversa n (da lista) ou pelo id
/help             Mostrar esta ajuda
/quit             Sair
"""


class ChatConsole:
    """Rich-based terminal client that renders state and forwards intents."""

    def __init__(
        self,
        orchestrator: ChatOrchestrator,
        metrics: MetricsTracker,
        console: Optional[Console] = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._metrics = metrics
        self._console = console or CONSOLE

    def render_turn(self, turn: Turn) -> None:
        is_user = turn.role is Role.USER
        label = "Você" if is_user else "GENYX AI"
        stamp = turn.timestamp.astimezone().strftime("%H:%M")
        self._console.print(
            Panel(
                Text(turn.content),
                title=f"{label} · {stamp}",
                title_align="right" if is_user else "left",
                border_style="blue" if is_user else "cyan",
            )
        )

    def render_conversation(self) -> None:
        turns = self._orchestrator.current_turns()
        if not turns:
            self._console.print(
                "[bold cyan]Olá! Sou GENYX AI.[/] Como posso ajudar você hoje?"
            )
            return
        for turn in turns:
            self.render_turn(turn)

    def render_sessions(self) -> None:
        table = Table(title="Conversas")
        table.add_column("#", justify="right")
        table.add_column("Título")
        table.add_column("Criada em")
        table.add_column("Mensagens", justify="right")
        for index, info in enumerate(self._orchestrator.session_list(), start=1):
            marker = "▶ " if info.active else ""
            table.add_row(
                str(index),
                Text(marker + info.title),
                info.created_at.astimezone().strftime("%d/%m/%Y"),
                str(info.turn_count),
            )
        self._console.print(table)

    def render_status(self) -> None:
        snapshot = self._metrics.snapshot()
        self._console.print(
            f"[dim]Respostas: {snapshot['count']} | Falhas: {snapshot['failures']} "
            f"| Latência média: {snapshot['mean']:.2f}s[/dim]"
        )

    def _resolve_session_ref(self, ref: str) -> str:
        if ref.isdigit():
            sessions = self._orchestrator.session_list()
            index = int(ref) - 1
            if 0 <= index < len(sessions):
                return sessions[index].id
        return ref

    def handle_line(self, line: str) -> bool:
        """Process one line of input; returns False when the user asked to quit."""

        stripped = line.strip()
        if not stripped.startswith("/"):
            self.send(line)
            return True

        command, _, argument = stripped.partition(" ")
        if command in ("/quit", "/exit"):
            return False
        if command == "/help":
            self._console.print(Text(HELP_TEXT))
        elif command == "/new":
            self._orchestrator.new_session()
            self.render_conversation()
        elif command == "/sessions":
            self.render_sessions()
        elif command == "/switch":
            if not argument.strip():
                self._console.print("[yellow]Uso: /switch <n|id>[/yellow]")
                return True
            try:
                self._orchestrator.activate_session(self._resolve_session_ref(argument.strip()))
            except SessionNotFoundError as exc:
                self._console.print(Text(str(exc), style="red"))
                return True
            self.render_conversation()
        else:
            self._console.print(f"[yellow]Comando desconhecido: {command}[/yellow]")
        return True

    def send(self, text: str) -> None:
        pending = self._orchestrator.submit(text)
        if pending is None:
            return
        with self._console.status("GENYX AI está pensando..."):
            reply = pending.wait()
        # the user may only see replies for the session on screen
        if reply is not None and pending.session_id == self._orchestrator.active_session_id:
            self.render_turn(reply)
        self.render_status()

    def run(self) -> None:  # pragma: no cover - interactive loop
        LOGGER.info("Starting console loop")
        self._console.rule("[bold cyan]GENYX AI[/]")
        self._console.print(Text(HELP_TEXT))
        self.render_conversation()
        try:
            while True:
                line = self._console.input("[bold blue]Você ›[/] ")
                if not self.handle_line(line):
                    break
        except (EOFError, KeyboardInterrupt):
            self._console.print()
        finally:
            self._orchestrator.shutdown()


# ---------------------------------------------------------------------------
# Application bootstrap
# ---------------------------------------------------------------------------

def build_application(paths: Optional[AppPaths] = None) -> ChatConsole:
    """Wire the components together in dependency order."""

    config = AppConfig.from_env(paths or AppPaths())
    metrics = MetricsTracker()
    clock = TurnClock()
    registry = SessionRegistry(clock)
    client = ChatCompletionClient(config, metrics)
    orchestrator = ChatOrchestrator(config, registry, client, metrics, clock=clock)
    return ChatConsole(orchestrator, metrics)


def main() -> None:  # pragma: no cover - entry point
    try:
        app = build_application()
    except ConfigurationError as exc:
        CONSOLE.print(f"[bold red]Configuration error:[/bold red] {exc}")
        return
    except Exception as exc:
        LOGGER.exception("Fatal error during application startup")
        CONSOLE.print(f"[bold red]Unexpected error:[/bold red] {exc}")
        return

    app.run()


if __name__ == "__main__":  # pragma: no cover - module executed directly
    main()

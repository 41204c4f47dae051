from typing import Any, Literal, NotRequired, TypedDict


class PingEvent(TypedDict):
    type: Literal["ping"]


class RunCodeMessage(TypedDict):
    """Client -> server over the session socket."""

    type: Literal["run_code"]
    id: str
    language: str
    code: str
    stdin: NotRequired[str | None]


class AckEvent(TypedDict):
    """Reply to one run_code message; carries either result or error."""

    type: Literal["ack"]
    id: str | None
    result: NotRequired[dict[str, Any]]
    error: NotRequired[str]


class ExecutionResultEvent(TypedDict):
    """Fan-out of a result to the other sockets of a room."""

    type: Literal["execution_result"]
    room: str
    origin: str
    result: dict[str, Any]
    timestamp: str

"""
Live streaming of an agent tool subprocess.

The adapter launches the tool, decodes its stream-json output as it arrives
and renders a transcript, carrying the session id across invocations.
"""

from agentlog.live.adapter import (
    AdapterState,
    LiveSessionAdapter,
    SessionContext,
    Transcript,
)
from agentlog.live.process import AgentProcess, StreamChunk, build_command
from agentlog.live.render import TranscriptRenderer
from agentlog.live.session_store import SessionIdStore

__all__ = [
    "AdapterState",
    "AgentProcess",
    "LiveSessionAdapter",
    "SessionContext",
    "SessionIdStore",
    "StreamChunk",
    "Transcript",
    "TranscriptRenderer",
    "build_command",
]

from .chat_listener import ChatListener, ListenerState
from .extractor import AttachmentExtractor, LinkExtractor, TrackExtractor, build_extractor
from .playlist_worker import PlaylistWorker, WorkerState

__all__ = [
    "AttachmentExtractor",
    "ChatListener",
    "LinkExtractor",
    "ListenerState",
    "PlaylistWorker",
    "TrackExtractor",
    "WorkerState",
    "build_extractor",
]

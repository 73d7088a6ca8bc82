from app.services.audio_transcoder import AudioTranscoder
from app.services.conversation_service import ConversationService
from app.services.media_service import MediaService
from app.services.notification_service import NotificationService

__all__ = [
    "AudioTranscoder",
    "ConversationService",
    "MediaService",
    "NotificationService",
]

from .audio import play_error_tone, play_success_tone, play_tone_async

__all__ = ["play_error_tone", "play_success_tone", "play_tone_async"]

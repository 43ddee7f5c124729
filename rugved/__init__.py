"""
Rugved - a voice-capable conversational client for Gemini.

Keeps an ordered conversation transcript, sends it to the remote model one
turn at a time, and renders or narrates the reply. Speech capture runs through
WhisperKit and narration through ElevenLabs.
"""

__version__ = "1.0.0"

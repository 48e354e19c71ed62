"""Cross-device video playback progress synchronization service."""

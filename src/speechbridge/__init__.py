"""SpeechBridge: ponte entre call legs telefonicos e engines STT em streaming."""

__version__ = "0.1.0"

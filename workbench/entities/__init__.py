"""
Entities package - the conversation state and request lifecycle.

- models.py: Shared pydantic models (messages, threads, presets)
- storage.py: Namespaced, validated key/value persistence
- threads.py / presets.py: Registries over the persisted collections
- orchestrator.py: Single-flight completion requests and message status
- session.py: The Workbench facade used by the API and other front ends
"""

from .models import ChatMessage, ChatThread, Preset, PresetInput, RequestParameter

__all__ = ["ChatMessage", "ChatThread", "Preset", "PresetInput", "RequestParameter"]

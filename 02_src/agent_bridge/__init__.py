"""Agent Bridge: a Feishu bot in front of Claude Code and Codex."""

__version__ = "0.1.0"

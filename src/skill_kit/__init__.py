"""
skill-kit - keep one canonical set of agent skills in sync across AI coding agents.

Skills live once in ~/.agents/skills/<name> (or <project>/.agents/skills/<name>)
and are linked into each agent app's skills folder:
- Claude Code (~/.claude/skills/)
- Codex (~/.codex/skills/)
- Cursor (~/.cursor/skills/)
- And more...

Usage:
    uv tool install skill-kit
    skill-kit scan
    skill-kit install anthropics/skills --skill pdf --agents claude-code,codex
"""

# Package version - keep in sync with pyproject.toml
__version__ = "0.1.0"

"""WSL Ubuntu developer environment setup (Python-first, checkpoint-driven).

Core design goals:
- Checkpointed and resumable
- Idempotent steps
- Single choke points for downloads, input validation and sudo
- Independent post-run verification
- Centralized logging
"""

__all__ = []

__version__ = "1.1.0"

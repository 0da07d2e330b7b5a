from __future__ import annotations

import logging
from typing import Optional

from ..context import StepContext
from ..lib.files import write_text
from ..lib.git import git_config_set
from ..pipeline import BaseStep, StepResult

logger = logging.getLogger(__name__)

PROJECT_DIRS = (
    "projects/personal",
    "projects/work",
    "projects/experiments",
    "thoughts",
    "scripts",
)

GITIGNORE_GLOBAL = """\
# OS files
.DS_Store
Thumbs.db
Desktop.ini

# IDEs
.vscode/
.idea/
*.swp
*~

# Dependencies
node_modules/
vendor/

# Python
__pycache__/
*.py[cod]
.venv/
venv/
.pytest_cache/
*.egg-info/

# Secrets
.env
.env.local
*.key
*.pem
id_rsa
id_ed25519
credentials.json

# Build output
dist/
build/
target/

# Logs and temporary files
*.log
tmp/
*.tmp
*.bak
"""


class FinalStep(BaseStep):
    step_id = "final"
    title = "Final configuration (project layout, global gitignore)"

    def is_present(self, ctx: StepContext) -> Optional[bool]:
        return (ctx.home / ".gitignore_global").is_file()

    def run(self, ctx: StepContext) -> StepResult:
        if not ctx.dry_run:
            for rel in PROJECT_DIRS:
                (ctx.home / rel).mkdir(parents=True, exist_ok=True)
        logger.warning("Keep projects under ~ rather than /mnt/c: the Windows mount is much slower")

        gitignore = ctx.home / ".gitignore_global"
        write_text(gitignore, GITIGNORE_GLOBAL, dry_run=ctx.dry_run)
        git_config_set("core.excludesfile", str(gitignore), runner=ctx.run)
        return StepResult.ok("project directories and global gitignore created")

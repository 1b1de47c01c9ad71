"""serverless-go: build Go serverless monorepos against private repositories.

Core operations:
- rewrite_unit: clone private requirements and redirect go.mod to the clones
- restore_unit: verify the rewrite checksum and put the original go.mod back
"""

__version__ = "0.3.0"

from .restore import restore_unit  # noqa: E402
from .rewrite import rewrite_unit  # noqa: E402

__all__ = ["__version__", "restore_unit", "rewrite_unit"]

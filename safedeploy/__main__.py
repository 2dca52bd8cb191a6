"""Console entrypoint bridging to :mod:`safedeploy.cli`."""

from __future__ import annotations

import sys
from typing import Optional, Sequence

from .cli import main as cli_main


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Delegate execution to :func:`safedeploy.cli.main`."""

    return cli_main(argv)


if __name__ == "__main__":
    sys.exit(main())

"""Test package initialisation.

The portal pages import ``woid_portal`` from the repository root, so the root
is appended to ``sys.path`` here for runs that do not install the package.
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

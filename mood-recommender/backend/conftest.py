import sys
from pathlib import Path


# Ensure backend/src is on sys.path so that imports like `services.*` and `models` work,
# and backend/tests so that test modules can share `helpers`.
ROOT = Path(__file__).resolve().parent
for path in (ROOT / "src", ROOT / "tests"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

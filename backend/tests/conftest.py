import os
import sys
import tempfile
from pathlib import Path

# The module-level storage engine reads this on import; keep it out of the repo.
os.environ.setdefault("SECUREPASS_WORKSPACE", tempfile.mkdtemp(prefix="securepass-tests-"))

sys.path.append(str(Path(__file__).resolve().parents[1]))

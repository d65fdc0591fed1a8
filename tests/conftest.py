import os
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# Keep the app's import-time config away from the developer's files and keys.
_SCRATCH = Path(tempfile.mkdtemp(prefix="prompt_relay_tests_"))
os.environ["PROMPT_RELAY_CONFIG_FILE"] = str(_SCRATCH / "absent.toml")
os.environ["PROMPT_RELAY_LOG_PATH"] = str(_SCRATCH / "logs" / "requests.jsonl")
os.environ["PROMPT_RELAY_PROVIDER_API_KEY"] = "test-key"

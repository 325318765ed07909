# config/tools/validate_env.py

import sys           # for exit codes
from pprint import pprint  # for structured printing

# make src discoverable if running as a script
from pathlib import Path
# __file__ is .../config/tools/validate_env.py
# parents[2] is the project root; append ROOT/src
PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.append(str(PROJECT_ROOT / "src"))

from env.loader import load_environment, events_log_path  # import our loader


def main() -> None:
    """Load and print the resolved world profile, failing fast on errors."""
    try:
        profile = load_environment()
    except (FileNotFoundError, KeyError, ValueError) as e:
        print("World config validation FAILED:", file=sys.stderr)
        print(repr(e), file=sys.stderr)
        sys.exit(1)                          # non-zero exit: CI will mark as failed

    print("World config validation OK.")
    print("\nActive profile:", profile.name)
    print("\nConnection:")
    pprint(profile.connection)
    print("\nIdentity:")
    pprint(profile.identity)
    print("\nTuning:")
    pprint(profile.tuning)
    print("\nEvents log:", events_log_path(profile))


if __name__ == "__main__":
    main()

# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – creates the tables, the default admin / guest accounts
and the guest's sample books.

Run once after a fresh checkout (the app also does this on start-up unless
SEED_ON_STARTUP=false):
    python bin/seed.py

Account names and passwords come from the FIRST_ADMIN_* / FIRST_GUEST_*
keys in etc/app.conf.
"""

import sys
import os

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/seed.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from seed import main  # noqa: E402


if __name__ == "__main__":
    main()

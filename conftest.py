# Ensure tests import the gateway package from this checkout first, so the
# suite runs from a plain clone as well as from an editable install.
import os
import sys

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

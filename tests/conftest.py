import sys
import os

# Make the worldmeet package importable when running from a source checkout
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

"""
Root conftest.py - Global configuration for all test layers.

Test Layers:
    - component/  : Component tests (mocked dependencies)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys

# Set testing environment BEFORE any imports
os.environ.setdefault("ENV", "testing")

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line("markers", "unit: pure tests, no I/O")
    config.addinivalue_line("markers", "component: service tests with mocked dependencies")

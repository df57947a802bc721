"""
Test configuration and fixtures
"""
import sys
from pathlib import Path

# Add src (for `stakepay.*`) and tests (for `stakepay_tests.*` helpers) to Python path
tests_root = Path(__file__).parent
src_path = tests_root.parent / "src"

sys.path.insert(0, str(tests_root))
sys.path.insert(0, str(src_path))

import pathlib
import sys

try:
    import rulegen
except ImportError:
    # Make 'rulegen' importable from a source checkout
    current_dir = pathlib.Path(__file__).resolve().parent
    src_path = current_dir.parent / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))

"""Pytest configuration for dirshare tests."""
import sys
from pathlib import Path

# Add src/back to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC_BACK = _PROJECT_ROOT / 'src' / 'back'
if str(_SRC_BACK) not in sys.path:
    sys.path.insert(0, str(_SRC_BACK))

import pytest

from dirshare.api.app import create_app
from dirshare.api.config import APIConfig
from dirshare.api.shares import ShareRegistry


@pytest.fixture
def root_dir(tmp_path):
    """Create a served root with a small tree.

    Layout::

        files/
          docs/readme.md      (10 bytes)
          docs/notes.txt
          photo.png
          data.bin
          .bashrc
          .git/config
        files-other/secret.txt   (sibling outside the root)
    """
    root = tmp_path / 'files'
    (root / 'docs').mkdir(parents=True)
    (root / 'docs' / 'readme.md').write_bytes(b'# Readme!\n')
    (root / 'docs' / 'notes.txt').write_text('some notes')
    (root / 'photo.png').write_bytes(b'\x89PNG\r\n\x1a\n' + b'\x00' * 32)
    (root / 'data.bin').write_bytes(bytes(range(256)) * 4)
    (root / '.bashrc').write_text('export PS1="$ "\n')
    (root / '.git').mkdir()
    (root / '.git' / 'config').write_text('[core]\n')

    outside = tmp_path / 'files-other'
    outside.mkdir()
    (outside / 'secret.txt').write_text('top secret')
    return root.resolve()


@pytest.fixture
def outside_dir(root_dir):
    """Sibling directory whose name textually extends the root's."""
    return root_dir.parent / 'files-other'


@pytest.fixture
def config(root_dir):
    """Validated API configuration for the test root."""
    cfg = APIConfig(root_dir=root_dir, cors_origins=['*'])
    cfg.validate_startup()
    return cfg


@pytest.fixture
def registry(config):
    return ShareRegistry(config.root_dir)


@pytest.fixture
def app(config, registry):
    """Fully wired application."""
    return create_app(config, registry)

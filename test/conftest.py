"""
Test configuration for Scheme front-end tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import create_parser


@pytest.fixture
def parser():
  """Provide a fresh parser with the built-in transformers"""
  return create_parser()


@pytest.fixture
def examples_dir():
  """Directory of example Scheme programs"""
  return Path(__file__).parent / "examples"

"""Shared test fixtures for all tests.

This file imports and re-exports fixtures from the fixtures/ module so they
are discovered by pytest for every test directory.
"""

from tests.fixtures.config import config_file, isolated_env  # noqa: F401
from tests.fixtures.filesystem import (  # noqa: F401
    allowed_dir,
    fs_tools,
    fs_tools_readonly,
    outside_dir,
    path_cache,
    sample_tree,
    sandbox,
    server_settings,
)
